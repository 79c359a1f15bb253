"""
Deal reconciler: merges extracted facts into the stored Deal.

Which fields may change, and how, is a declarative table (FIELD_POLICIES):
- overwrite: monetary facts; the latest document wins whenever it reports a
  value that differs from the stored one
- fill_if_empty: categorical facts; written only while the stored value is
  absent, so a target company or geography is never silently replaced

merge_facts() is pure. DealReconciler.reconcile() applies its patch and the
matching document_processed activity in ONE store transaction; an empty patch
writes nothing at all.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from ..clients.postgres_client import DealStore
from ..errors import ReconciliationError
from ..models.deal import ActivityType, Deal, NewActivity
from ..models.extraction import ExtractedFacts
from ..utils import format_millions

logger = structlog.get_logger(__name__)


class FieldPolicy(str, Enum):
    OVERWRITE = 'overwrite'
    FILL_IF_EMPTY = 'fill_if_empty'


class FieldKind(str, Enum):
    MONEY = 'money'
    TEXT = 'text'


@dataclass(frozen=True)
class FieldRule:
    """How one deal attribute is reconciled."""

    field: str
    kind: FieldKind
    policy: FieldPolicy
    label: str


# Order here is the order changes are listed in the activity description.
FIELD_POLICIES: tuple[FieldRule, ...] = (
    FieldRule('valuation', FieldKind.MONEY, FieldPolicy.OVERWRITE, 'Valuation'),
    FieldRule('revenue', FieldKind.MONEY, FieldPolicy.OVERWRITE, 'Revenue'),
    FieldRule('ebitda', FieldKind.MONEY, FieldPolicy.OVERWRITE, 'EBITDA'),
    FieldRule('target_company', FieldKind.TEXT, FieldPolicy.FILL_IF_EMPTY, 'Target Company'),
    FieldRule('geography', FieldKind.TEXT, FieldPolicy.FILL_IF_EMPTY, 'Geography'),
)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def merge_facts(
    current: Deal,
    incoming: ExtractedFacts,
    policies: tuple[FieldRule, ...] = FIELD_POLICIES,
) -> dict[str, Any]:
    """
    Compute the patch that reconciling ``incoming`` into ``current`` implies.

    Fields the document did not report are never touched, and fields whose
    value would not change are left out of the patch.

    Returns:
        Mapping of field name -> new value, in policy table order
    """
    patch: dict[str, Any] = {}
    for rule in policies:
        new_value = getattr(incoming, rule.field)
        if new_value is None:
            continue
        old_value = getattr(current, rule.field)

        if rule.policy is FieldPolicy.OVERWRITE:
            if old_value is None or old_value != new_value:
                patch[rule.field] = new_value
        elif rule.policy is FieldPolicy.FILL_IF_EMPTY:
            if _is_empty(old_value):
                patch[rule.field] = new_value
    return patch


def format_change(rule: FieldRule, value: Any) -> str:
    """Render one change for the activity text, e.g. ``Valuation: $50M``."""
    if rule.kind is FieldKind.MONEY and isinstance(value, Decimal):
        return f'{rule.label}: {format_millions(value)}'
    return f'{rule.label}: {value}'


def describe_changes(
    document_name: str,
    patch: dict[str, Any],
    policies: tuple[FieldRule, ...] = FIELD_POLICIES,
) -> str:
    changes = [format_change(rule, patch[rule.field]) for rule in policies if rule.field in patch]
    return f'Financial data extracted from "{document_name}": {", ".join(changes)}'


@dataclass
class ReconcileResult:
    """Outcome of reconciling one document's facts into a deal."""

    deal_id: int
    document_name: str
    changes: dict[str, Any] = field(default_factory=dict)
    activity_written: bool = False
    error: str | None = None

    @property
    def updated(self) -> bool:
        return bool(self.changes) and self.activity_written


class DealReconciler:
    """Applies FIELD_POLICIES to a deal and records what changed."""

    def __init__(self, store: DealStore, policies: tuple[FieldRule, ...] = FIELD_POLICIES):
        self.store = store
        self.policies = policies

    async def reconcile(
        self,
        deal_id: int,
        facts: ExtractedFacts,
        document_name: str,
    ) -> ReconcileResult:
        """
        Merge ``facts`` into the deal and append one document_processed activity.

        Never raises: failures are logged and reported on the result, since
        reconciliation runs after the document itself is already processed.
        """
        result = ReconcileResult(deal_id=deal_id, document_name=document_name)
        log = logger.bind(deal_id=deal_id, document_name=document_name)

        try:
            deal = await self.store.get_deal(deal_id)
            if deal is None:
                log.info('reconciler.deal_missing')
                return result

            patch = merge_facts(deal, facts, self.policies)
            if not patch:
                log.info('reconciler.no_changes')
                return result

            activity = NewActivity(
                type=ActivityType.DOCUMENT_PROCESSED,
                description=describe_changes(document_name, patch, self.policies),
                metadata=json.dumps({'document': document_name, 'fields': list(patch)}),
            )
            updated = await self.store.update_deal(deal_id, patch, activity=activity)
            if updated is None:
                log.info('reconciler.deal_missing')
                return result

            result.changes = patch
            result.activity_written = True
            log.info('reconciler.updated', fields=list(patch))
        except Exception as e:
            failure = ReconciliationError(
                f'Failed to apply facts from "{document_name}"',
                context={'original_error': str(e), 'error_type': type(e).__name__},
            )
            log.exception('reconciler.failed', error=str(failure))
            result.error = str(failure)

        return result
