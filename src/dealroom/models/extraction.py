"""
Structured output models for document fact extraction.

The model is asked for JSON only, but its output is untrusted free text. These
models encode the acceptance policy applied to whatever JSON object was found:
- Monetary fields are accepted only as finite, non-negative JSON numbers
- Text fields are accepted only as non-empty strings
Anything else is treated as "not reported" rather than as an error.
"""

import math
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from .deal import DealroomModel

MONEY_FIELDS = ('valuation', 'revenue', 'ebitda')
TEXT_FIELDS = ('target_company', 'geography')

# JSON keys the model is instructed to emit -> model attribute names
PAYLOAD_KEYS = {
    'valuation': 'valuation',
    'revenue': 'revenue',
    'ebitda': 'ebitda',
    'targetCompany': 'target_company',
    'geography': 'geography',
}


def coerce_money(value: Any) -> Decimal | None:
    """Accept a JSON number (not a bool) that is finite and non-negative."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value < 0:
        return None
    return Decimal(str(value))


def coerce_text(value: Any) -> str | None:
    """Accept a non-empty string, stripped of surrounding whitespace."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class ExtractedFacts(BaseModel):
    """Deal facts reported by a single document. None means not reported."""

    valuation: Decimal | None = Field(default=None, description='Valuation in $M')
    revenue: Decimal | None = Field(default=None, description='Revenue in $M')
    ebitda: Decimal | None = Field(default=None, description='EBITDA in $M')
    target_company: str | None = Field(default=None, description='Target company name')
    geography: str | None = Field(default=None, description='Primary geography')

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> 'ExtractedFacts':
        """Build from the raw JSON object returned by the model."""
        values: dict[str, Any] = {}
        for key, attr in PAYLOAD_KEYS.items():
            raw = payload.get(key)
            if raw is None:
                raw = payload.get(attr)
            if attr in MONEY_FIELDS:
                values[attr] = coerce_money(raw)
            else:
                values[attr] = coerce_text(raw)
        return cls(**values)

    @property
    def is_empty(self) -> bool:
        """True when the document reported nothing usable."""
        return all(getattr(self, f) is None for f in (*MONEY_FIELDS, *TEXT_FIELDS))


class DealDraft(DealroomModel):
    """A new deal record proposed from a freshly uploaded document."""

    name: str
    description: str | None = None
    target_company: str | None = None
    geography: str | None = None
    valuation: Decimal | None = None
    revenue: Decimal | None = None
    ebitda: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any], fallback_name: str) -> 'DealDraft':
        """Build from the raw JSON object, falling back to the file stem for the name."""
        facts = ExtractedFacts.from_payload(payload)
        return cls(
            name=coerce_text(payload.get('name')) or fallback_name,
            description=coerce_text(payload.get('description')),
            target_company=facts.target_company,
            geography=facts.geography,
            valuation=facts.valuation,
            revenue=facts.revenue,
            ebitda=facts.ebitda,
        )
