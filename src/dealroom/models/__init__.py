"""
Data models for the Dealroom pipeline.

Provides store row models (Deal, Stage, Document, Message, Activity), the
structured extraction models used to parse model output, and HTTP request
payload schemas.
"""

from .deal import (
    Activity,
    ActivityType,
    Deal,
    DealStatus,
    Document,
    Message,
    MessageRole,
    NewActivity,
    Stage,
)
from .extraction import DealDraft, ExtractedFacts
from .requests import (
    CreateFromDocumentRequest,
    DealCreate,
    DealUpdate,
    DocumentCreate,
    MessageCreate,
    StageCreate,
    StageUpdate,
)

__all__ = [
    # Store rows
    'Activity',
    'ActivityType',
    'Deal',
    'DealStatus',
    'Document',
    'Message',
    'MessageRole',
    'NewActivity',
    'Stage',
    # Extraction
    'DealDraft',
    'ExtractedFacts',
    # Requests
    'CreateFromDocumentRequest',
    'DealCreate',
    'DealUpdate',
    'DocumentCreate',
    'MessageCreate',
    'StageCreate',
    'StageUpdate',
]
