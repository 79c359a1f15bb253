"""
Structured logging configuration for the Dealroom pipeline.

Uses structlog for structured, context-aware logging with:
- JSON output for production
- Pretty console output for development
- Automatic timing context
- Trace, deal and document ID propagation
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config

# Context variables for request-scoped data
_trace_id: ContextVar[str | None] = ContextVar('trace_id', default=None)
_deal_id: ContextVar[int | None] = ContextVar('deal_id', default=None)
_document_id: ContextVar[int | None] = ContextVar('document_id', default=None)


def get_trace_id() -> str | None:
    """Get the current trace ID from context."""
    return _trace_id.get()


def get_deal_id() -> int | None:
    """Get the current deal ID from context."""
    return _deal_id.get()


def get_document_id() -> int | None:
    """Get the current document ID from context."""
    return _document_id.get()


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that adds context variables to log entries."""
    trace_id = get_trace_id()
    deal_id = get_deal_id()
    document_id = get_document_id()

    if trace_id:
        event_dict['trace_id'] = trace_id
    if deal_id is not None:
        event_dict.setdefault('deal_id', deal_id)
    if document_id is not None:
        event_dict.setdefault('document_id', document_id)

    return event_dict


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        json_output: If True, output JSON logs (for production).
                    If False, output pretty console logs (for development).
        log_level: Override log level (defaults to config.LOG_LEVEL)
    """
    level = log_level or config.LOG_LEVEL
    level_num = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format='%(message)s',
        stream=sys.stdout,
        level=level_num,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_info,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(
    trace_id: str | None = None,
    deal_id: int | None = None,
    document_id: int | None = None,
) -> Generator[None, None, None]:
    """
    Context manager for setting logging context variables.

    Usage:
        with logging_context(deal_id=12, document_id=40):
            logger.info("document_pipeline.start")  # Includes deal_id and document_id
    """
    old_trace = _trace_id.get()
    old_deal = _deal_id.get()
    old_document = _document_id.get()

    try:
        if trace_id is not None:
            _trace_id.set(trace_id)
        if deal_id is not None:
            _deal_id.set(deal_id)
        if document_id is not None:
            _document_id.set(document_id)
        yield
    finally:
        _trace_id.set(old_trace)
        _deal_id.set(old_deal)
        _document_id.set(old_document)


class PipelineTimer:
    """
    Timer for tracking pipeline stage durations.

    Usage:
        timer = PipelineTimer()
        with timer.stage("text_extraction"):
            # download and parse
        with timer.stage("summarization"):
            # model call
        print(timer.summary())
    """

    def __init__(self):
        self.stages: dict[str, float] = {}
        self.start_time: float = time.perf_counter()
        self._stage_start: float | None = None

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        """Time a pipeline stage."""
        self._stage_start = time.perf_counter()
        try:
            yield
        finally:
            if self._stage_start is not None:
                elapsed = time.perf_counter() - self._stage_start
                self.stages[name] = elapsed * 1000
            self._stage_start = None

    @property
    def total_ms(self) -> float:
        """Total elapsed time since timer creation in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        """Get timing summary as a dictionary."""
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {k: round(v, 2) for k, v in self.stages.items()},
        }


# Initialize logging on module import (development mode by default)
# Production deployments call configure_logging(json_output=True)
configure_logging(json_output=config.LOG_JSON)
