"""Deal chat (SSE) and summary / analysis generation (SSE)."""

from fastapi import APIRouter, Depends, Header, Response

from dealroom.clients.postgres_client import DealStore
from dealroom.models.requests import MessageCreate
from dealroom.pipeline.responder import ConversationalResponder, GenerationKind

from ..deps import get_responder, get_store, require_deal, to_json
from ..streaming import sse_response

router = APIRouter(prefix="/api/deals", tags=["messages"])


@router.get("/{deal_id}/messages")
async def list_messages(deal_id: int, store: DealStore = Depends(get_store)):
    await require_deal(store, deal_id)
    return [to_json(m) for m in await store.list_messages(deal_id)]


@router.post("/{deal_id}/messages")
async def send_message(
    deal_id: int,
    payload: MessageCreate,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    responder: ConversationalResponder = Depends(get_responder),
):
    """
    Append a user message and stream the assistant reply.

    The user message is stored before the stream opens. A ``requestId`` (or
    ``Idempotency-Key`` header) makes retries safe.
    """
    turn = await responder.prepare_chat(
        deal_id,
        payload.content,
        request_id=payload.request_id or idempotency_key,
    )
    return sse_response(responder.stream_chat(turn))


@router.delete("/{deal_id}/messages", status_code=204)
async def clear_messages(deal_id: int, store: DealStore = Depends(get_store)):
    await require_deal(store, deal_id)
    await store.clear_messages(deal_id)
    return Response(status_code=204)


@router.post("/{deal_id}/generate-summary")
async def generate_summary(
    deal_id: int,
    responder: ConversationalResponder = Depends(get_responder),
):
    turn = await responder.prepare_generation(deal_id, GenerationKind.SUMMARY)
    return sse_response(responder.stream_generation(turn))


@router.post("/{deal_id}/generate-analysis")
async def generate_analysis(
    deal_id: int,
    responder: ConversationalResponder = Depends(get_responder),
):
    turn = await responder.prepare_generation(deal_id, GenerationKind.ANALYSIS)
    return sse_response(responder.stream_generation(turn))
