"""
Dealroom

A deal-pipeline tracker for M&A and private-equity workflows: documents are
ingested and summarized, financial facts are extracted with OpenAI and
reconciled into the deal record, and deal chat / summary / analysis output is
streamed token by token.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .pipeline import (
    ConversationalResponder,
    DealReconciler,
    DocumentPipeline,
    DocumentPipelineResult,
    DocumentSummarizer,
    DocumentTaskRunner,
    FactExtractor,
    StreamEvent,
    TextExtractor,
)
from .clients import DealStore, ObjectStorageClient, OpenAIClient
from .logging import (
    configure_logging,
    logging_context,
    PipelineTimer,
)
from .errors import (
    DealroomError,
    PipelineError,
    NotFoundError,
    ExtractionError,
    SummarizationError,
    OpenAIError,
    StorageError,
    DatabaseError,
)

__all__ = [
    # Pipeline
    'ConversationalResponder',
    'DealReconciler',
    'DocumentPipeline',
    'DocumentPipelineResult',
    'DocumentSummarizer',
    'DocumentTaskRunner',
    'FactExtractor',
    'StreamEvent',
    'TextExtractor',
    # Clients
    'DealStore',
    'ObjectStorageClient',
    'OpenAIClient',
    # Logging
    'configure_logging',
    'logging_context',
    'PipelineTimer',
    # Errors
    'DealroomError',
    'PipelineError',
    'NotFoundError',
    'ExtractionError',
    'SummarizationError',
    'OpenAIError',
    'StorageError',
    'DatabaseError',
]
