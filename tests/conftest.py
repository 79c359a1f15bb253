"""
Pytest configuration and shared fixtures.

Key fixtures:
- make_engine(): AsyncEngine double whose begin() yields a mock connection
- mock_store: DealStore double with empty defaults
- sample_deal / sample_document: store rows as returned by DealStore
- fake_openai: OpenAIClient double with scripted plain and streaming replies

No network, database or API key is needed: every external client is mocked.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from dealroom.models.deal import Deal, Document, Message, MessageRole  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_result(first=None, rows=None, rowcount=1):
    """A SQLAlchemy CursorResult double supporting .mappings().first()/.all()."""
    result = MagicMock()
    mappings = MagicMock()
    mappings.first.return_value = first
    mappings.all.return_value = rows if rows is not None else ([first] if first else [])
    result.mappings.return_value = mappings
    result.rowcount = rowcount
    return result


def make_engine(*results):
    """Mock engine; each conn.execute call returns the next result."""
    mock_engine = AsyncMock()
    mock_conn = AsyncMock()
    if results:
        mock_conn.execute.side_effect = list(results)
    else:
        mock_conn.execute.return_value = make_result()
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=mock_conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    mock_engine.begin = MagicMock(return_value=ctx)
    return mock_engine, mock_conn


def deal_row(**overrides) -> dict:
    row = {
        'id': 7,
        'name': 'Project Falcon',
        'description': 'Carve-out of a logistics business',
        'stage_id': 1,
        'target_company': None,
        'geography': None,
        'valuation': None,
        'revenue': Decimal('100'),
        'ebitda': None,
        'status': 'active',
        'ai_summary': None,
        'ai_analysis': None,
        'summary_context': None,
        'analysis_context': None,
        'created_at': NOW,
        'updated_at': NOW,
    }
    row.update(overrides)
    return row


def document_row(**overrides) -> dict:
    row = {
        'id': 40,
        'deal_id': 7,
        'name': 'cim.pdf',
        'type': 'application/pdf',
        'size': 2048,
        'object_path': '/objects/uploads/cim.pdf',
        'category': 'financials',
        'ai_processed': False,
        'ai_summary': None,
        'extracted_text': None,
        'uploaded_at': NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def sample_deal() -> Deal:
    return Deal.model_validate(deal_row())


@pytest.fixture
def sample_document() -> Document:
    return Document.model_validate(document_row())


@pytest.fixture
def sample_history() -> list[Message]:
    return [
        Message(id=1, deal_id=7, role=MessageRole.USER, content='What is the revenue?', created_at=NOW),
        Message(id=2, deal_id=7, role=MessageRole.ASSISTANT, content='$100M.', created_at=NOW),
        Message(id=3, deal_id=7, role=MessageRole.USER, content='Hello', created_at=NOW),
    ]


@pytest.fixture
def mock_store() -> AsyncMock:
    """DealStore double; configure return values per test."""
    store = AsyncMock()
    store.get_deal.return_value = None
    store.get_document.return_value = None
    store.list_documents.return_value = []
    store.list_messages.return_value = []
    store.list_stages.return_value = []
    store.get_message_by_request.return_value = None
    return store


class FakeOpenAI:
    """Scripted OpenAIClient double recording every call."""

    def __init__(self, reply: str = '', chunks: list[str] | None = None, fail_after: int | None = None):
        self.reply = reply
        self.chunks = chunks or []
        self.fail_after = fail_after
        self.calls: list[dict] = []
        self.stream_calls: list[dict] = []
        self.stream_closed = False
        self.chat_completion = AsyncMock(side_effect=self._chat_completion)

    async def _chat_completion(self, messages, max_tokens=None, model=None):
        self.calls.append({'messages': messages, 'max_tokens': max_tokens})
        return self.reply

    async def chat_completion_stream(self, messages, max_tokens=None, model=None):
        from dealroom.errors import OpenAIError

        self.stream_calls.append({'messages': messages, 'max_tokens': max_tokens})
        try:
            for i, chunk in enumerate(self.chunks):
                if self.fail_after is not None and i >= self.fail_after:
                    raise OpenAIError('stream dropped')
                yield chunk
            if self.fail_after is not None and self.fail_after >= len(self.chunks):
                raise OpenAIError('stream dropped')
        finally:
            self.stream_closed = True


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()
