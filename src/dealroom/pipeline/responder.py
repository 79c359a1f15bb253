"""
Conversational responder: streaming chat, summary and analysis generation.

The model client produces text deltas; the responder relays each one as a
StreamEvent while accumulating the full text, then persists it and emits a
terminal ``done`` event. The async generators here ARE the single-producer /
single-consumer channel between the model and the HTTP layer:

- Model failure mid-stream -> one ``error`` event, then the stream ends.
  Nothing is persisted; already-relayed deltas are not retracted.
- Consumer closes the stream (client disconnect) -> GeneratorExit or
  CancelledError at the pending yield/await; the persistence step is never
  reached, so no partial Message / aiSummary / aiAnalysis is committed.

Work is split into a prepare step (validation, user message insert) that runs
before the HTTP response starts, and a stream step that runs inside it.
"""

import json
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Iterable

import structlog

from ..clients.openai_client import OpenAIClient
from ..clients.postgres_client import DealStore
from ..config import config
from ..errors import GenerationError, NotFoundError
from ..models.deal import ActivityType, Deal, Document, Message, MessageRole, NewActivity
from ..prompts.deal_chat import (
    DEAL_ANALYSIS_PROMPT,
    DEAL_ASSISTANT_SYSTEM_PROMPT,
    DEAL_SUMMARY_PROMPT,
    build_chat_messages,
    build_deal_context,
    build_generation_messages,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StreamEvent:
    """One server-sent event: a text delta, the done marker, or an error."""

    content: str | None = None
    done: bool = False
    error: str | None = None

    @classmethod
    def delta(cls, text: str) -> 'StreamEvent':
        return cls(content=text)

    @classmethod
    def finished(cls) -> 'StreamEvent':
        return cls(done=True)

    @classmethod
    def failed(cls, message: str) -> 'StreamEvent':
        return cls(error=message)

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {'error': self.error}
        if self.done:
            return {'done': True}
        return {'content': self.content or ''}

    def to_sse(self) -> str:
        """Frame as ``data: <json>`` followed by a blank line."""
        return f'data: {json.dumps(self.to_dict())}\n\n'


class GenerationKind(str, Enum):
    SUMMARY = 'summary'
    ANALYSIS = 'analysis'


@dataclass(frozen=True)
class GenerationSpec:
    """Prompt and persistence targets for one generation kind."""

    instructions: str
    label: str
    context_field: str
    result_field: str
    activity_type: ActivityType
    activity_description: str
    error_message: str


GENERATION_SPECS: dict[GenerationKind, GenerationSpec] = {
    GenerationKind.SUMMARY: GenerationSpec(
        instructions=DEAL_SUMMARY_PROMPT,
        label='Summary',
        context_field='summary_context',
        result_field='ai_summary',
        activity_type=ActivityType.SUMMARY_GENERATED,
        activity_description='AI deal summary was generated',
        error_message='Failed to generate summary',
    ),
    GenerationKind.ANALYSIS: GenerationSpec(
        instructions=DEAL_ANALYSIS_PROMPT,
        label='Analysis',
        context_field='analysis_context',
        result_field='ai_analysis',
        activity_type=ActivityType.ANALYSIS_GENERATED,
        activity_description='AI deal analysis was generated',
        error_message='Failed to generate analysis',
    ),
}

CHAT_ERROR_MESSAGE = 'Failed to generate response'


@dataclass
class ChatTurn:
    """A validated chat request, ready to stream."""

    deal: Deal
    documents: list[Document] = field(default_factory=list)
    history: list[Message] = field(default_factory=list)
    request_id: str | None = None
    # Stored assistant reply for a retried request id
    replay: Message | None = None


@dataclass
class GenerationTurn:
    """A validated summary/analysis request, ready to stream."""

    deal: Deal
    kind: GenerationKind
    documents: list[Document] = field(default_factory=list)


class ConversationalResponder:
    """
    Streams grounded model output for a deal and persists the final text.

    Chat requests may carry a request id. The (deal, request id, role) triple
    is unique in the store, so retrying a request never duplicates messages:
    a stored reply is replayed, a missing one is regenerated.
    """

    def __init__(self, store: DealStore, openai_client: OpenAIClient):
        self.store = store
        self.openai = openai_client

    async def respond(
        self,
        system_prompt: str,
        context_block: str,
        history: Iterable[Message],
        user_instructions: str | None = None,
        kind: GenerationKind | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream text deltas for one of the three call shapes.

        Args:
            system_prompt: Assistant persona
            context_block: Output of build_deal_context
            history: Chat history ending with the new user turn (chat only)
            user_instructions: Deal-level override text (generation only)
            kind: None for chat, otherwise the generation kind

        Yields:
            Non-empty text fragments in arrival order
        """
        if kind is None:
            messages = build_chat_messages(context_block, history, system_prompt=system_prompt)
        else:
            spec = GENERATION_SPECS[kind]
            messages = build_generation_messages(
                instructions=spec.instructions,
                label=spec.label,
                context_block=context_block,
                user_instructions=user_instructions,
                system_prompt=system_prompt,
            )

        async with aclosing(
            self.openai.chat_completion_stream(messages, max_tokens=config.STREAM_MAX_TOKENS)
        ) as stream:
            async for text in stream:
                yield text

    async def _relay(
        self,
        deltas: AsyncIterator[str],
        parts: list[str],
    ) -> AsyncIterator[StreamEvent]:
        async with aclosing(deltas) as stream:
            async for text in stream:
                parts.append(text)
                yield StreamEvent.delta(text)

    # =========================================================================
    # Chat
    # =========================================================================

    async def prepare_chat(
        self,
        deal_id: int,
        content: str,
        request_id: str | None = None,
    ) -> ChatTurn:
        """
        Validate the deal and append the user message before any model call.

        Raises:
            NotFoundError: When the deal does not exist
        """
        deal = await self.store.get_deal(deal_id)
        if deal is None:
            raise NotFoundError('Deal', deal_id)

        if request_id:
            reply = await self.store.get_message_by_request(deal_id, request_id, MessageRole.ASSISTANT)
            if reply is not None:
                logger.info('responder.chat_replay', deal_id=deal_id, request_id=request_id)
                return ChatTurn(deal=deal, request_id=request_id, replay=reply)

        inserted = await self.store.create_message(deal_id, MessageRole.USER, content, request_id)
        if inserted is None:
            # Retried request whose reply never got stored
            logger.info('responder.chat_retry', deal_id=deal_id, request_id=request_id)

        documents = await self.store.list_documents(deal_id)
        history = await self.store.list_messages(deal_id)
        return ChatTurn(deal=deal, documents=documents, history=history, request_id=request_id)

    async def stream_chat(self, turn: ChatTurn) -> AsyncIterator[StreamEvent]:
        """Relay the assistant reply, store it, then emit ``done``."""
        deal_id = turn.deal.id
        if turn.replay is not None:
            yield StreamEvent.delta(turn.replay.content)
            yield StreamEvent.finished()
            return

        context_block = build_deal_context(turn.deal, turn.documents)
        parts: list[str] = []
        try:
            deltas = self.respond(DEAL_ASSISTANT_SYSTEM_PROMPT, context_block, turn.history)
            async with aclosing(self._relay(deltas, parts)) as events:
                async for event in events:
                    yield event
            await self.store.create_message(
                deal_id, MessageRole.ASSISTANT, ''.join(parts), turn.request_id
            )
        except Exception as e:
            failure = GenerationError(CHAT_ERROR_MESSAGE, context={'deal_id': deal_id, 'original_error': str(e)})
            logger.error('responder.chat_failed', error=str(failure), error_type=type(e).__name__)
            yield StreamEvent.failed(failure.message)
            return

        logger.info('responder.chat_complete', deal_id=deal_id, chars=sum(len(p) for p in parts))
        yield StreamEvent.finished()

    # =========================================================================
    # Summary / Analysis
    # =========================================================================

    async def prepare_generation(self, deal_id: int, kind: GenerationKind) -> GenerationTurn:
        """
        Load the deal and its documents.

        Raises:
            NotFoundError: When the deal does not exist
        """
        deal = await self.store.get_deal(deal_id)
        if deal is None:
            raise NotFoundError('Deal', deal_id)
        documents = await self.store.list_documents(deal_id)
        return GenerationTurn(deal=deal, kind=kind, documents=documents)

    async def stream_generation(self, turn: GenerationTurn) -> AsyncIterator[StreamEvent]:
        """Relay a summary or analysis, store it with its activity, then emit ``done``."""
        spec = GENERATION_SPECS[turn.kind]
        deal_id = turn.deal.id
        context_block = build_deal_context(turn.deal, turn.documents)
        parts: list[str] = []
        try:
            deltas = self.respond(
                DEAL_ASSISTANT_SYSTEM_PROMPT,
                context_block,
                [],
                user_instructions=getattr(turn.deal, spec.context_field),
                kind=turn.kind,
            )
            async with aclosing(self._relay(deltas, parts)) as events:
                async for event in events:
                    yield event
            await self.store.update_deal(
                deal_id,
                {spec.result_field: ''.join(parts)},
                activity=NewActivity(
                    type=spec.activity_type,
                    description=spec.activity_description,
                ),
            )
        except Exception as e:
            failure = GenerationError(
                spec.error_message,
                context={'deal_id': deal_id, 'kind': turn.kind.value, 'original_error': str(e)},
            )
            logger.error('responder.generation_failed', error=str(failure), error_type=type(e).__name__)
            yield StreamEvent.failed(failure.message)
            return

        logger.info(
            'responder.generation_complete',
            deal_id=deal_id,
            kind=turn.kind.value,
            chars=sum(len(p) for p in parts),
        )
        yield StreamEvent.finished()
