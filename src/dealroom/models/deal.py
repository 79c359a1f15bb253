"""
Deal, Stage, Document, Message and Activity models for the Dealroom store.

Rows come back from Postgres as snake_case column mappings and validate
directly into these models. On the wire (HTTP API) every model serializes
with camelCase aliases (``targetCompany``, ``aiSummary``, ``objectPath``).

Key design decisions:
- Financial facts are Decimals in millions of currency units; None = unknown
- Deal owns Documents, Messages and Activities (cascade delete in the schema)
- Stage is referenced, not owned (stage_id nulls out when a stage is removed)
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DealStatus(str, Enum):
    """Lifecycle status of a deal."""

    ACTIVE = 'active'
    ON_HOLD = 'on_hold'
    CLOSED = 'closed'
    DROPPED = 'dropped'


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = 'user'
    ASSISTANT = 'assistant'


class ActivityType(str, Enum):
    """Kinds of audit entries appended to a deal's activity log."""

    DEAL_CREATED = 'deal_created'
    STAGE_CHANGED = 'stage_changed'
    DOCUMENT_UPLOADED = 'document_uploaded'
    DOCUMENT_PROCESSED = 'document_processed'
    SUMMARY_GENERATED = 'summary_generated'
    ANALYSIS_GENERATED = 'analysis_generated'


class DealroomModel(BaseModel):
    """Shared config: camelCase on the wire, snake_case in Python and SQL."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Stage(DealroomModel):
    """Ordered pipeline phase a deal can sit in."""

    id: int
    name: str
    description: str | None = None
    color: str = '#6366f1'
    sort_order: int = 0


class Deal(DealroomModel):
    """
    A tracked M&A / PE opportunity.

    valuation, revenue and ebitda are either None (unknown) or a non-negative
    Decimal scaled in millions. target_company and geography are categorical
    facts that, once set, are never overwritten by document extraction.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: int
    name: str
    description: str | None = None
    stage_id: int | None = None

    # Categorical facts
    target_company: str | None = None
    geography: str | None = None

    # Financial facts ($M)
    valuation: Decimal | None = Field(default=None, ge=0)
    revenue: Decimal | None = Field(default=None, ge=0)
    ebitda: Decimal | None = Field(default=None, ge=0)

    status: DealStatus = DealStatus.ACTIVE.value

    # Generated artifacts
    ai_summary: str | None = None
    ai_analysis: str | None = None

    # User-supplied generation instructions
    summary_context: str | None = None
    analysis_context: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def ev_ebitda_multiple(self) -> Decimal | None:
        """Valuation / EBITDA, when both are known and EBITDA is positive."""
        if self.valuation is None or self.ebitda is None or self.ebitda <= 0:
            return None
        return self.valuation / self.ebitda


class Document(DealroomModel):
    """An uploaded file attached to exactly one deal."""

    id: int
    deal_id: int
    name: str
    type: str | None = None
    size: int | None = None
    object_path: str
    category: str | None = 'general'
    ai_processed: bool = False
    ai_summary: str | None = None
    extracted_text: str | None = None
    uploaded_at: datetime | None = None


class Message(DealroomModel):
    """One turn of a deal's linear chat history."""

    id: int
    deal_id: int
    role: MessageRole
    content: str
    request_id: str | None = None
    created_at: datetime | None = None


class Activity(DealroomModel):
    """Append-only audit log entry for a deal."""

    id: int
    deal_id: int
    type: str
    description: str
    metadata: str | None = None
    created_at: datetime | None = None


class NewActivity(BaseModel):
    """An activity to append, written in the same transaction as a deal update."""

    type: ActivityType
    description: str
    metadata: str | None = None
