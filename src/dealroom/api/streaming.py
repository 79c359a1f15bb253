"""Server-sent event responses for chat and generation streams."""

from contextlib import aclosing
from typing import AsyncIterator

from fastapi.responses import StreamingResponse

from dealroom.pipeline.responder import StreamEvent

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def sse_response(events: AsyncIterator[StreamEvent]) -> StreamingResponse:
    """
    Relay StreamEvents as ``data: <json>`` frames.

    When the client disconnects, the body generator is closed and closes
    ``events`` in turn, so the responder never reaches its persistence step.
    """

    async def event_generator():
        async with aclosing(events) as stream:
            async for event in stream:
                yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
