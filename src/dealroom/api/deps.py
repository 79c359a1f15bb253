"""Request-scoped accessors for the clients created in the lifespan."""

from fastapi import Request

from dealroom.clients.postgres_client import DealStore
from dealroom.errors import NotFoundError
from dealroom.models.deal import Deal
from dealroom.pipeline.pipeline import DocumentPipeline
from dealroom.pipeline.responder import ConversationalResponder
from dealroom.pipeline.tasks import DocumentTaskRunner


def get_store(request: Request) -> DealStore:
    return request.app.state.store


def get_pipeline(request: Request) -> DocumentPipeline:
    return request.app.state.pipeline


def get_runner(request: Request) -> DocumentTaskRunner:
    return request.app.state.runner


def get_responder(request: Request) -> ConversationalResponder:
    return request.app.state.responder


async def require_deal(store: DealStore, deal_id: int) -> Deal:
    """Load a deal or raise NotFoundError (rendered as 404)."""
    deal = await store.get_deal(deal_id)
    if deal is None:
        raise NotFoundError("Deal", deal_id)
    return deal


def to_json(model) -> dict:
    """Serialize a model with camelCase keys."""
    return model.model_dump(mode="json", by_alias=True)
