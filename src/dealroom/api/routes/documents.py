"""Document upload registration, deletion and reprocessing."""

import structlog
from fastapi import APIRouter, Depends, Response

from dealroom.clients.postgres_client import DealStore
from dealroom.errors import NotFoundError
from dealroom.models.deal import ActivityType, NewActivity
from dealroom.models.requests import DocumentCreate
from dealroom.pipeline.pipeline import DocumentPipeline
from dealroom.pipeline.tasks import DocumentTaskRunner

from ..deps import get_pipeline, get_runner, get_store, require_deal, to_json

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["documents"])


@router.get("/deals/{deal_id}/documents")
async def list_documents(deal_id: int, store: DealStore = Depends(get_store)):
    await require_deal(store, deal_id)
    return [to_json(d) for d in await store.list_documents(deal_id)]


@router.post("/deals/{deal_id}/documents", status_code=201)
async def create_document(
    deal_id: int,
    payload: DocumentCreate,
    store: DealStore = Depends(get_store),
    runner: DocumentTaskRunner = Depends(get_runner),
):
    """
    Register an uploaded object against a deal.

    Returns as soon as the row and its activity are written; extraction,
    summarization and fact reconciliation continue in the background.
    """
    await require_deal(store, deal_id)
    document = await store.create_document(
        deal_id,
        payload.model_dump(),
        activity=NewActivity(
            type=ActivityType.DOCUMENT_UPLOADED,
            description=f'Document "{payload.name}" was uploaded',
        ),
    )
    runner.submit(document.id)
    logger.info("documents.created", deal_id=deal_id, document_id=document.id)
    return to_json(document)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(document_id: int, store: DealStore = Depends(get_store)):
    if not await store.delete_document(document_id):
        raise NotFoundError("Document", document_id)
    return Response(status_code=204)


@router.post("/documents/{document_id}/process")
async def process_document(
    document_id: int,
    store: DealStore = Depends(get_store),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Reprocess a document synchronously and return its updated row."""
    result = await pipeline.process_document(document_id)
    logger.info(
        "documents.reprocessed",
        document_id=document_id,
        deal_updated=result.deal_updated,
        processing_time_ms=result.processing_time_ms,
    )
    document = await store.get_document(document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    return to_json(document)
