"""
Document processing and conversational generation for the Dealroom pipeline.
"""

from .fact_extractor import FactExtractor
from .pipeline import DocumentPipeline, DocumentPipelineResult
from .reconciler import (
    FIELD_POLICIES,
    DealReconciler,
    FieldPolicy,
    FieldRule,
    ReconcileResult,
    merge_facts,
)
from .responder import (
    ChatTurn,
    ConversationalResponder,
    GenerationKind,
    GenerationTurn,
    StreamEvent,
)
from .summarizer import DocumentSummarizer
from .tasks import DocumentTaskRunner
from .text_extractor import TextExtractor

__all__ = [
    'ChatTurn',
    'ConversationalResponder',
    'DealReconciler',
    'DocumentPipeline',
    'DocumentPipelineResult',
    'DocumentSummarizer',
    'DocumentTaskRunner',
    'FIELD_POLICIES',
    'FactExtractor',
    'FieldPolicy',
    'FieldRule',
    'GenerationKind',
    'GenerationTurn',
    'ReconcileResult',
    'StreamEvent',
    'TextExtractor',
    'merge_facts',
]
