"""Pipeline stage CRUD."""

from fastapi import APIRouter, Depends, Response

from dealroom.clients.postgres_client import DealStore
from dealroom.errors import NotFoundError
from dealroom.models.requests import StageCreate, StageUpdate

from ..deps import get_store, to_json

router = APIRouter(prefix="/api/stages", tags=["stages"])


@router.get("")
async def list_stages(store: DealStore = Depends(get_store)):
    return [to_json(s) for s in await store.list_stages()]


@router.post("", status_code=201)
async def create_stage(payload: StageCreate, store: DealStore = Depends(get_store)):
    stage = await store.create_stage(payload.model_dump())
    return to_json(stage)


@router.patch("/{stage_id}")
async def update_stage(
    stage_id: int,
    payload: StageUpdate,
    store: DealStore = Depends(get_store),
):
    stage = await store.update_stage(stage_id, payload.model_dump(exclude_unset=True))
    if stage is None:
        raise NotFoundError("Stage", stage_id)
    return to_json(stage)


@router.delete("/{stage_id}", status_code=204)
async def delete_stage(stage_id: int, store: DealStore = Depends(get_store)):
    """Delete a stage; deals in it keep existing with no stage."""
    if not await store.delete_stage(stage_id):
        raise NotFoundError("Stage", stage_id)
    return Response(status_code=204)
