"""
Custom exceptions and error handling for the Dealroom pipeline.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for debugging
- Helpers that classify raw vendor exceptions
"""

from typing import Any


class DealroomError(Exception):
    """Base exception for all dealroom errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(DealroomError):
    """Base class for client-related errors."""

    pass


class OpenAIError(ClientError):
    """Error from OpenAI API calls."""

    pass


class OpenAIRateLimitError(OpenAIError):
    """Rate limit exceeded on OpenAI API."""

    pass


class OpenAIModelError(OpenAIError):
    """Model refused request or returned invalid response."""

    pass


class StorageError(ClientError):
    """Error from the object storage service."""

    pass


class DatabaseError(ClientError):
    """Error from relational store operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to the database."""

    pass


class DatabaseConstraintError(DatabaseError):
    """Constraint violation (foreign key, unique key)."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(DealroomError):
    """Base class for pipeline-related errors."""

    pass


class NotFoundError(PipelineError):
    """A referenced deal, document or stage does not exist."""

    def __init__(self, entity: str, entity_id: Any, context: dict[str, Any] | None = None):
        super().__init__(f"{entity} not found", context)
        self.entity = entity
        self.entity_id = entity_id


class ExtractionError(PipelineError):
    """Structured data could not be extracted from a document."""

    pass


class SummarizationError(PipelineError):
    """Document summarization failed."""

    pass


class ReconciliationError(PipelineError):
    """Error while merging extracted facts into a deal."""

    pass


class GenerationError(PipelineError):
    """Streaming chat or generation failed."""

    pass


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_openai_error(exc: Exception, context: dict[str, Any] | None = None) -> OpenAIError:
    """
    Wrap an OpenAI exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed OpenAIError subclass
    """
    if isinstance(exc, OpenAIError):
        return exc

    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if 'rate limit' in error_str or 'rate_limit' in error_str:
        return OpenAIRateLimitError(
            f"OpenAI rate limit exceeded: {exc}",
            context=ctx,
        )
    elif 'content policy' in error_str or 'refused' in error_str:
        return OpenAIModelError(
            f"OpenAI model refused request: {exc}",
            context=ctx,
        )
    else:
        return OpenAIError(
            f"OpenAI API error: {exc}",
            context=ctx,
        )


def wrap_database_error(exc: Exception, context: dict[str, Any] | None = None) -> DatabaseError:
    """
    Wrap a SQLAlchemy / asyncpg exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed DatabaseError subclass
    """
    if isinstance(exc, DatabaseError):
        return exc

    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if 'connection' in error_str or 'connect' in error_str:
        return DatabaseConnectionError(
            f"Database connection failed: {exc}",
            context=ctx,
        )
    elif 'constraint' in error_str or 'unique' in error_str or 'foreign key' in error_str:
        return DatabaseConstraintError(
            f"Database constraint violation: {exc}",
            context=ctx,
        )
    else:
        return DatabaseError(
            f"Database error: {exc}",
            context=ctx,
        )
