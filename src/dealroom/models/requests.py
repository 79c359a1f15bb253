"""
Request payload schemas for the Dealroom HTTP API.

Validation happens before any side effect. Fields accept camelCase (wire) or
snake_case names.
"""

from decimal import Decimal

from pydantic import ConfigDict, Field, field_validator

from .deal import DealroomModel, DealStatus


def reject_null(value):
    """Explicit null is not allowed for columns that are NOT NULL in the store."""
    if value is None:
        raise ValueError('Field cannot be null')
    return value


class StageCreate(DealroomModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    color: str = '#6366f1'
    sort_order: int = 0


class StageUpdate(DealroomModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color: str | None = None
    sort_order: int | None = None

    @field_validator('name', 'color', 'sort_order')
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class DealCreate(DealroomModel):
    """Deal fields a user may set directly. Money values are in $M."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=1, description='Deal name is required')
    description: str | None = None
    stage_id: int | None = Field(default=None, gt=0)
    target_company: str | None = None
    geography: str | None = None
    valuation: Decimal | None = Field(default=None, ge=0)
    revenue: Decimal | None = Field(default=None, ge=0)
    ebitda: Decimal | None = Field(default=None, ge=0)
    status: DealStatus = DealStatus.ACTIVE.value
    summary_context: str | None = None
    analysis_context: str | None = None


class DealUpdate(DealroomModel):
    """Partial deal update. Only fields present in the payload are written."""

    model_config = ConfigDict(use_enum_values=True)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    stage_id: int | None = Field(default=None, gt=0)
    target_company: str | None = None
    geography: str | None = None
    valuation: Decimal | None = Field(default=None, ge=0)
    revenue: Decimal | None = Field(default=None, ge=0)
    ebitda: Decimal | None = Field(default=None, ge=0)
    status: DealStatus | None = None
    summary_context: str | None = None
    analysis_context: str | None = None

    @field_validator('name', 'status')
    @classmethod
    def not_null(cls, value):
        return reject_null(value)


class DocumentCreate(DealroomModel):
    name: str = Field(..., min_length=1)
    type: str | None = None
    size: int | None = Field(default=None, ge=0)
    object_path: str = Field(..., min_length=1)
    category: str = 'general'


class CreateFromDocumentRequest(DealroomModel):
    object_path: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)


class MessageCreate(DealroomModel):
    content: str
    request_id: str | None = Field(default=None, max_length=200)

    @field_validator('content')
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('Message content is required')
        return value
