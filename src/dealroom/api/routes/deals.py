"""Deal CRUD, create-from-document and the activity log."""

import structlog
from fastapi import APIRouter, Depends, Query, Response

from dealroom.clients.postgres_client import DealStore
from dealroom.errors import NotFoundError
from dealroom.models.deal import ActivityType, DealStatus, NewActivity
from dealroom.models.requests import CreateFromDocumentRequest, DealCreate, DealUpdate
from dealroom.pipeline.pipeline import DocumentPipeline
from dealroom.pipeline.tasks import DocumentTaskRunner

from ..deps import get_pipeline, get_runner, get_store, require_deal, to_json

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/deals", tags=["deals"])


@router.get("")
async def list_deals(
    stage_id: int | None = Query(default=None, alias="stageId"),
    status: DealStatus | None = None,
    search: str | None = None,
    store: DealStore = Depends(get_store),
):
    deals = await store.list_deals(stage_id=stage_id, status=status.value if status else None, search=search)
    return [to_json(d) for d in deals]


@router.post("", status_code=201)
async def create_deal(payload: DealCreate, store: DealStore = Depends(get_store)):
    deal = await store.create_deal(
        payload.model_dump(),
        activity=NewActivity(
            type=ActivityType.DEAL_CREATED,
            description=f'Deal "{payload.name}" was created',
        ),
    )
    logger.info("deals.created", deal_id=deal.id)
    return to_json(deal)


@router.post("/create-from-document", status_code=201)
async def create_deal_from_document(
    payload: CreateFromDocumentRequest,
    store: DealStore = Depends(get_store),
    pipeline: DocumentPipeline = Depends(get_pipeline),
    runner: DocumentTaskRunner = Depends(get_runner),
):
    """
    Draft a deal from an uploaded document, attach the document, and queue it
    for full processing.
    """
    draft = await pipeline.draft_deal(payload.object_path, payload.file_name, payload.file_type)

    stages = await store.list_stages()
    first_stage = stages[0] if stages else None

    deal = await store.create_deal(
        {
            **draft.model_dump(),
            "stage_id": first_stage.id if first_stage else None,
            "status": "active",
        },
        activity=NewActivity(
            type=ActivityType.DEAL_CREATED,
            description=f'Deal "{draft.name}" was created from document "{payload.file_name}"',
        ),
    )
    document = await store.create_document(
        deal.id,
        {
            "name": payload.file_name,
            "object_path": payload.object_path,
            "type": payload.file_type,
            "size": payload.file_size,
            "category": "general",
        },
        activity=NewActivity(
            type=ActivityType.DOCUMENT_UPLOADED,
            description=f'Document "{payload.file_name}" was uploaded',
        ),
    )
    runner.submit(document.id)

    logger.info("deals.created_from_document", deal_id=deal.id, document_id=document.id)
    return {
        "deal": to_json(deal),
        "document": to_json(document),
        "extracted": to_json(draft),
    }


@router.get("/{deal_id}")
async def get_deal(deal_id: int, store: DealStore = Depends(get_store)):
    return to_json(await require_deal(store, deal_id))


@router.patch("/{deal_id}")
async def update_deal(
    deal_id: int,
    payload: DealUpdate,
    store: DealStore = Depends(get_store),
):
    """Partial update. Moving to another stage is recorded as stage_changed."""
    updates = payload.model_dump(exclude_unset=True)

    activity = None
    if updates.get("stage_id") is not None:
        stage = await store.get_stage(updates["stage_id"])
        if stage is None:
            raise NotFoundError("Stage", updates["stage_id"])
        activity = NewActivity(
            type=ActivityType.STAGE_CHANGED,
            description=f'Deal moved to "{stage.name}" stage',
        )

    deal = await store.update_deal(deal_id, updates, activity=activity)
    if deal is None:
        raise NotFoundError("Deal", deal_id)
    return to_json(deal)


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(deal_id: int, store: DealStore = Depends(get_store)):
    """Delete a deal with its documents, messages and activities."""
    if not await store.delete_deal(deal_id):
        raise NotFoundError("Deal", deal_id)
    return Response(status_code=204)


@router.get("/{deal_id}/activities")
async def list_activities(deal_id: int, store: DealStore = Depends(get_store)):
    await require_deal(store, deal_id)
    return [to_json(a) for a in await store.list_activities(deal_id)]
