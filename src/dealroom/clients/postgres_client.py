"""
Postgres store for deals, stages, documents, messages and activities.

Uses SQLAlchemy 2.0 async engine + asyncpg for raw SQL execution. Every public
method runs in its own transaction; methods that take an ``activity`` write the
row change and the audit entry in the SAME transaction, so an activity never
appears without its deal mutation (or vice versa).

Tables:
- deal_stages
- deals (stage_id ON DELETE SET NULL)
- documents, deal_messages, deal_activities (deal_id ON DELETE CASCADE)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..errors import wrap_database_error
from ..models.deal import (
    Activity,
    Deal,
    Document,
    Message,
    MessageRole,
    NewActivity,
    Stage,
)

logger = structlog.get_logger(__name__)

# Writable columns per table. Dynamic INSERT/UPDATE statements only ever
# interpolate names from these sets.
STAGE_COLUMNS = frozenset({'name', 'description', 'color', 'sort_order'})

DEAL_COLUMNS = frozenset({
    'name', 'description', 'stage_id', 'target_company', 'geography',
    'valuation', 'revenue', 'ebitda', 'status', 'ai_summary', 'ai_analysis',
    'summary_context', 'analysis_context',
})

DOCUMENT_COLUMNS = frozenset({
    'name', 'type', 'size', 'object_path', 'category', 'ai_processed',
    'ai_summary', 'extracted_text',
})

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS deal_stages (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        color TEXT NOT NULL DEFAULT '#6366f1',
        sort_order INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deals (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        stage_id INTEGER REFERENCES deal_stages(id) ON DELETE SET NULL,
        target_company TEXT,
        geography TEXT,
        valuation NUMERIC CHECK (valuation >= 0),
        revenue NUMERIC CHECK (revenue >= 0),
        ebitda NUMERIC CHECK (ebitda >= 0),
        status TEXT NOT NULL DEFAULT 'active',
        ai_summary TEXT,
        ai_analysis TEXT,
        summary_context TEXT,
        analysis_context TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id SERIAL PRIMARY KEY,
        deal_id INTEGER NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        type TEXT,
        size INTEGER,
        object_path TEXT NOT NULL,
        category TEXT DEFAULT 'general',
        ai_processed BOOLEAN NOT NULL DEFAULT false,
        ai_summary TEXT,
        extracted_text TEXT,
        uploaded_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deal_messages (
        id SERIAL PRIMARY KEY,
        deal_id INTEGER NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        request_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_deal_messages_request
        ON deal_messages (deal_id, request_id, role)
        WHERE request_id IS NOT NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS deal_activities (
        id SERIAL PRIMARY KEY,
        deal_id INTEGER NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
        type TEXT NOT NULL,
        description TEXT NOT NULL,
        metadata TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS ix_documents_deal_id ON documents (deal_id)',
    'CREATE INDEX IF NOT EXISTS ix_deal_messages_deal_id ON deal_messages (deal_id)',
    'CREATE INDEX IF NOT EXISTS ix_deal_activities_deal_id ON deal_activities (deal_id)',
)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Hosted Postgres URLs often include ``sslmode`` / ``channel_binding``, which
    are libpq parameters. asyncpg rejects unknown connection params.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalize_driver(url: str) -> str:
    """Force the asyncpg driver prefix."""
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


def _filter_columns(values: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Drop keys that are not writable columns."""
    unknown = set(values) - allowed
    if unknown:
        logger.warning('deal_store.unknown_columns_ignored', columns=sorted(unknown))
    return {k: v for k, v in values.items() if k in allowed}


def _insert_sql(table: str, values: dict[str, Any]) -> Any:
    columns = ', '.join(values)
    params = ', '.join(f':{c}' for c in values)
    return text(f'INSERT INTO {table} ({columns}) VALUES ({params}) RETURNING *')


def _set_clause(values: dict[str, Any]) -> str:
    return ', '.join(f'{c} = :{c}' for c in values)


class DealStore:
    """
    Async Postgres store backing the deal pipeline.

    Uses SQLAlchemy 2.0 async engine with asyncpg for raw SQL execution.
    Read methods return pydantic models (or None when a row is missing).
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize with a Postgres connection URL.

        Args:
            database_url: Postgres connection URL. 'postgres://' and
                          'postgresql://' prefixes are converted to asyncpg.
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url

    async def connect(self, database_url: str | None = None) -> None:
        """
        Create the async engine. Idempotent: no-op if already connected.

        Args:
            database_url: Override the URL from __init__.
        """
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        url = _normalize_driver(_sanitize_url(url))

        self._engine = create_async_engine(
            url,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
        )
        logger.info('deal_store.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('deal_store.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('DealStore not connected: call connect() first')
        return self._engine

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncConnection]:
        """Run a block in one transaction, translating driver errors."""
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'operation': operation}) from e

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('deal_store.connectivity_check_failed')
            return False

    async def setup_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        async with self._transaction('setup_schema') as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(text(statement))
        logger.info('deal_store.schema_ready', statements=len(SCHEMA_STATEMENTS))

    async def _insert_activity(
        self,
        conn: AsyncConnection,
        deal_id: int,
        activity: NewActivity,
    ) -> Activity:
        result = await conn.execute(
            text("""
                INSERT INTO deal_activities (deal_id, type, description, metadata)
                VALUES (:deal_id, :type, :description, :metadata)
                RETURNING *
            """),
            {
                'deal_id': deal_id,
                'type': activity.type.value,
                'description': activity.description,
                'metadata': activity.metadata,
            },
        )
        return Activity.model_validate(dict(result.mappings().first()))

    # =========================================================================
    # Stages
    # =========================================================================

    async def list_stages(self) -> list[Stage]:
        async with self._transaction('list_stages') as conn:
            result = await conn.execute(
                text('SELECT * FROM deal_stages ORDER BY sort_order ASC, id ASC')
            )
            return [Stage.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_stage(self, stage_id: int) -> Stage | None:
        async with self._transaction('get_stage') as conn:
            result = await conn.execute(
                text('SELECT * FROM deal_stages WHERE id = :id'), {'id': stage_id}
            )
            row = result.mappings().first()
        return Stage.model_validate(dict(row)) if row else None

    async def create_stage(self, values: dict[str, Any]) -> Stage:
        values = _filter_columns(values, STAGE_COLUMNS)
        async with self._transaction('create_stage') as conn:
            result = await conn.execute(_insert_sql('deal_stages', values), values)
            row = result.mappings().first()
        return Stage.model_validate(dict(row))

    async def update_stage(self, stage_id: int, updates: dict[str, Any]) -> Stage | None:
        updates = _filter_columns(updates, STAGE_COLUMNS)
        if not updates:
            return await self.get_stage(stage_id)
        async with self._transaction('update_stage') as conn:
            result = await conn.execute(
                text(f'UPDATE deal_stages SET {_set_clause(updates)} WHERE id = :id RETURNING *'),
                {**updates, 'id': stage_id},
            )
            row = result.mappings().first()
        return Stage.model_validate(dict(row)) if row else None

    async def delete_stage(self, stage_id: int) -> bool:
        async with self._transaction('delete_stage') as conn:
            result = await conn.execute(
                text('DELETE FROM deal_stages WHERE id = :id'), {'id': stage_id}
            )
        return result.rowcount > 0

    # =========================================================================
    # Deals
    # =========================================================================

    async def list_deals(
        self,
        stage_id: int | None = None,
        status: str | None = None,
        search: str | None = None,
    ) -> list[Deal]:
        """List deals, most recently updated first, with optional filters."""
        conditions: list[str] = []
        params: dict[str, Any] = {}
        if stage_id is not None:
            conditions.append('stage_id = :stage_id')
            params['stage_id'] = stage_id
        if status:
            conditions.append('status = :status')
            params['status'] = status
        if search:
            conditions.append('name ILIKE :search')
            params['search'] = f'%{search}%'

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ''
        async with self._transaction('list_deals') as conn:
            result = await conn.execute(
                text(f'SELECT * FROM deals {where} ORDER BY updated_at DESC, id DESC'),
                params,
            )
            return [Deal.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_deal(self, deal_id: int) -> Deal | None:
        async with self._transaction('get_deal') as conn:
            result = await conn.execute(
                text('SELECT * FROM deals WHERE id = :id'), {'id': deal_id}
            )
            row = result.mappings().first()
        return Deal.model_validate(dict(row)) if row else None

    async def create_deal(
        self,
        values: dict[str, Any],
        activity: NewActivity | None = None,
    ) -> Deal:
        """Insert a deal, optionally appending an activity in the same transaction."""
        values = _filter_columns(values, DEAL_COLUMNS)
        async with self._transaction('create_deal') as conn:
            result = await conn.execute(_insert_sql('deals', values), values)
            deal = Deal.model_validate(dict(result.mappings().first()))
            if activity is not None:
                await self._insert_activity(conn, deal.id, activity)
        return deal

    async def update_deal(
        self,
        deal_id: int,
        updates: dict[str, Any],
        activity: NewActivity | None = None,
    ) -> Deal | None:
        """
        Apply a partial update to a deal and bump updated_at.

        When ``activity`` is given it is inserted in the same transaction, and
        only if the deal row exists.

        Returns:
            The updated deal, or None when no such deal exists
        """
        updates = _filter_columns(updates, DEAL_COLUMNS)
        assignments = _set_clause(updates)
        assignments = f'{assignments}, updated_at = now()' if assignments else 'updated_at = now()'

        async with self._transaction('update_deal') as conn:
            result = await conn.execute(
                text(f'UPDATE deals SET {assignments} WHERE id = :id RETURNING *'),
                {**updates, 'id': deal_id},
            )
            row = result.mappings().first()
            if row is None:
                return None
            if activity is not None:
                await self._insert_activity(conn, deal_id, activity)
        return Deal.model_validate(dict(row))

    async def delete_deal(self, deal_id: int) -> bool:
        """Delete a deal; documents, messages and activities cascade."""
        async with self._transaction('delete_deal') as conn:
            result = await conn.execute(
                text('DELETE FROM deals WHERE id = :id'), {'id': deal_id}
            )
        deleted = result.rowcount > 0
        logger.info('deal_store.deal_deleted', deal_id=deal_id, deleted=deleted)
        return deleted

    # =========================================================================
    # Documents
    # =========================================================================

    async def list_documents(self, deal_id: int) -> list[Document]:
        """All documents of a deal, newest upload first."""
        async with self._transaction('list_documents') as conn:
            result = await conn.execute(
                text("""
                    SELECT * FROM documents
                    WHERE deal_id = :deal_id
                    ORDER BY uploaded_at DESC, id DESC
                """),
                {'deal_id': deal_id},
            )
            return [Document.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_document(self, document_id: int) -> Document | None:
        async with self._transaction('get_document') as conn:
            result = await conn.execute(
                text('SELECT * FROM documents WHERE id = :id'), {'id': document_id}
            )
            row = result.mappings().first()
        return Document.model_validate(dict(row)) if row else None

    async def create_document(
        self,
        deal_id: int,
        values: dict[str, Any],
        activity: NewActivity | None = None,
    ) -> Document:
        """Insert an unprocessed document, optionally with an activity."""
        values = {**_filter_columns(values, DOCUMENT_COLUMNS), 'deal_id': deal_id}
        values.pop('ai_processed', None)
        async with self._transaction('create_document') as conn:
            result = await conn.execute(_insert_sql('documents', values), values)
            document = Document.model_validate(dict(result.mappings().first()))
            if activity is not None:
                await self._insert_activity(conn, deal_id, activity)
        return document

    async def update_document(self, document_id: int, updates: dict[str, Any]) -> Document | None:
        updates = _filter_columns(updates, DOCUMENT_COLUMNS)
        if not updates:
            return await self.get_document(document_id)
        async with self._transaction('update_document') as conn:
            result = await conn.execute(
                text(f'UPDATE documents SET {_set_clause(updates)} WHERE id = :id RETURNING *'),
                {**updates, 'id': document_id},
            )
            row = result.mappings().first()
        return Document.model_validate(dict(row)) if row else None

    async def delete_document(self, document_id: int) -> bool:
        async with self._transaction('delete_document') as conn:
            result = await conn.execute(
                text('DELETE FROM documents WHERE id = :id'), {'id': document_id}
            )
        return result.rowcount > 0

    # =========================================================================
    # Messages
    # =========================================================================

    async def list_messages(self, deal_id: int) -> list[Message]:
        """Conversation history in creation order."""
        async with self._transaction('list_messages') as conn:
            result = await conn.execute(
                text("""
                    SELECT * FROM deal_messages
                    WHERE deal_id = :deal_id
                    ORDER BY created_at ASC, id ASC
                """),
                {'deal_id': deal_id},
            )
            return [Message.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_message_by_request(
        self,
        deal_id: int,
        request_id: str,
        role: MessageRole,
    ) -> Message | None:
        async with self._transaction('get_message_by_request') as conn:
            result = await conn.execute(
                text("""
                    SELECT * FROM deal_messages
                    WHERE deal_id = :deal_id AND request_id = :request_id AND role = :role
                """),
                {'deal_id': deal_id, 'request_id': request_id, 'role': role.value},
            )
            row = result.mappings().first()
        return Message.model_validate(dict(row)) if row else None

    async def create_message(
        self,
        deal_id: int,
        role: MessageRole,
        content: str,
        request_id: str | None = None,
    ) -> Message | None:
        """
        Append a message.

        Returns:
            The new message, or None when a message with the same
            (deal_id, request_id, role) already exists
        """
        async with self._transaction('create_message') as conn:
            result = await conn.execute(
                text("""
                    INSERT INTO deal_messages (deal_id, role, content, request_id)
                    VALUES (:deal_id, :role, :content, :request_id)
                    ON CONFLICT (deal_id, request_id, role) WHERE request_id IS NOT NULL
                    DO NOTHING
                    RETURNING *
                """),
                {
                    'deal_id': deal_id,
                    'role': role.value,
                    'content': content,
                    'request_id': request_id,
                },
            )
            row = result.mappings().first()
        return Message.model_validate(dict(row)) if row else None

    async def clear_messages(self, deal_id: int) -> int:
        async with self._transaction('clear_messages') as conn:
            result = await conn.execute(
                text('DELETE FROM deal_messages WHERE deal_id = :deal_id'),
                {'deal_id': deal_id},
            )
        return result.rowcount

    # =========================================================================
    # Activities
    # =========================================================================

    async def list_activities(self, deal_id: int) -> list[Activity]:
        """Audit log, newest first."""
        async with self._transaction('list_activities') as conn:
            result = await conn.execute(
                text("""
                    SELECT * FROM deal_activities
                    WHERE deal_id = :deal_id
                    ORDER BY created_at DESC, id DESC
                """),
                {'deal_id': deal_id},
            )
            return [Activity.model_validate(dict(r)) for r in result.mappings().all()]

    async def create_activity(self, deal_id: int, activity: NewActivity) -> Activity:
        async with self._transaction('create_activity') as conn:
            return await self._insert_activity(conn, deal_id, activity)
