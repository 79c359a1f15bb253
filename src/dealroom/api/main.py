"""FastAPI application for the Dealroom service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dealroom.clients.object_storage import ObjectStorageClient
from dealroom.clients.openai_client import OpenAIClient
from dealroom.clients.postgres_client import DealStore
from dealroom.errors import (
    DealroomError,
    ExtractionError,
    NotFoundError,
    OpenAIError,
    SummarizationError,
)
from dealroom.logging import configure_logging, logging_context
from dealroom.pipeline.fact_extractor import FactExtractor
from dealroom.pipeline.pipeline import DocumentPipeline
from dealroom.pipeline.responder import ConversationalResponder
from dealroom.pipeline.summarizer import DocumentSummarizer
from dealroom.pipeline.tasks import DocumentTaskRunner
from dealroom.pipeline.text_extractor import TextExtractor
from dealroom.utils import uuid7

from .config import get_settings
from .routes.deals import router as deals_router
from .routes.documents import router as documents_router
from .routes.health import router as health_router
from .routes.messages import router as messages_router
from .routes.stages import router as stages_router

logger = structlog.get_logger(__name__)

TRACE_HEADER = "X-Trace-Id"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize persistent clients at startup, clean up at shutdown."""
    settings = get_settings()
    configure_logging(json_output=settings.LOG_JSON)

    logger.info("lifespan.startup", chat_model=settings.OPENAI_CHAT_MODEL)

    store = DealStore(settings.DATABASE_URL)
    await store.connect()
    await store.setup_schema()

    openai = OpenAIClient(
        api_key=settings.OPENAI_API_KEY,
        chat_model=settings.OPENAI_CHAT_MODEL,
        base_url=settings.OPENAI_BASE_URL,
    )
    storage = ObjectStorageClient(
        base_url=settings.OBJECT_STORAGE_URL,
        token=settings.OBJECT_STORAGE_TOKEN,
    )

    pipeline = DocumentPipeline(
        store=store,
        text_extractor=TextExtractor(storage),
        summarizer=DocumentSummarizer(openai),
        fact_extractor=FactExtractor(openai),
    )
    runner = DocumentTaskRunner(pipeline)

    # Store on app.state for request handlers
    app.state.store = store
    app.state.openai = openai
    app.state.storage = storage
    app.state.pipeline = pipeline
    app.state.runner = runner
    app.state.responder = ConversationalResponder(store, openai)

    logger.info("lifespan.ready")
    yield

    # Shutdown
    logger.info("lifespan.shutdown", pending_tasks=runner.pending)
    await runner.drain(timeout=settings.SHUTDOWN_DRAIN_SECONDS)
    await storage.close()
    await openai.close()
    await store.close()


app = FastAPI(
    title="dealroom",
    description="Deal pipeline tracker: document ingestion, AI fact extraction and streaming deal chat",
    lifespan=lifespan,
)


@app.middleware("http")
async def bind_trace_id(request: Request, call_next):
    """Bind a UUIDv7 trace id to every log line of the request."""
    trace_id = request.headers.get(TRACE_HEADER) or str(uuid7())
    with logging_context(trace_id=trace_id):
        response = await call_next(request)
    response.headers[TRACE_HEADER] = trace_id
    return response


# =============================================================================
# Error mapping
# =============================================================================


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts) or "body"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": exc.message})


@app.exception_handler(ExtractionError)
async def extraction_handler(request: Request, exc: ExtractionError):
    return JSONResponse(status_code=422, content={"error": exc.message})


@app.exception_handler(SummarizationError)
async def summarization_handler(request: Request, exc: SummarizationError):
    logger.error("api.summarization_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=502, content={"error": "Failed to summarize document"})


@app.exception_handler(OpenAIError)
async def openai_handler(request: Request, exc: OpenAIError):
    logger.error("api.openai_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=502, content={"error": "Language model request failed"})


@app.exception_handler(DealroomError)
async def dealroom_error_handler(request: Request, exc: DealroomError):
    logger.error(
        "api.request_failed",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("api.unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(health_router)
app.include_router(stages_router)
app.include_router(deals_router)
app.include_router(documents_router)
app.include_router(messages_router)
