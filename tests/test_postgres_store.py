"""
Unit tests for DealStore with a mocked SQLAlchemy async engine.

No real database is touched: assertions are made on the SQL text and bound
parameters each method sends, and on how rows are turned into models.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import deal_row, document_row, make_engine, make_result
from dealroom.clients.postgres_client import (
    SCHEMA_STATEMENTS,
    DealStore,
    _normalize_driver,
    _sanitize_url,
)
from dealroom.errors import DatabaseConnectionError
from dealroom.models.deal import ActivityType, MessageRole, NewActivity


def _store(engine) -> DealStore:
    store = DealStore()
    store._engine = engine
    return store


def _sql(call) -> str:
    return str(call.args[0])


def _activity_row(**overrides) -> dict:
    row = {
        'id': 1,
        'deal_id': 7,
        'type': 'stage_changed',
        'description': 'Deal moved to a new stage',
        'metadata': None,
        'created_at': None,
    }
    row.update(overrides)
    return row


# =============================================================================
# URL handling
# =============================================================================


class TestUrlHelpers:
    def test_postgres_prefix(self):
        assert _normalize_driver('postgres://u:p@h/db') == 'postgresql+asyncpg://u:p@h/db'

    def test_postgresql_prefix(self):
        assert _normalize_driver('postgresql://u:p@h/db') == 'postgresql+asyncpg://u:p@h/db'

    def test_asyncpg_prefix_untouched(self):
        assert _normalize_driver('postgresql+asyncpg://h/db') == 'postgresql+asyncpg://h/db'

    def test_strips_libpq_params(self):
        url = _sanitize_url('postgresql://h/db?sslmode=require&channel_binding=require&application_name=x')
        assert 'sslmode' not in url
        assert 'channel_binding' not in url
        assert 'application_name=x' in url

    def test_not_connected(self):
        with pytest.raises(RuntimeError):
            DealStore().engine

    @pytest.mark.asyncio
    async def test_connect_requires_url(self):
        with pytest.raises(ValueError):
            await DealStore().connect()


# =============================================================================
# Schema
# =============================================================================


class TestSchema:
    @pytest.mark.asyncio
    async def test_setup_schema_runs_every_statement_in_one_transaction(self):
        engine, conn = make_engine()
        await _store(engine).setup_schema()

        engine.begin.assert_called_once()
        assert conn.execute.await_count == len(SCHEMA_STATEMENTS)

    def test_dependents_cascade_and_stage_is_nulled(self):
        ddl = '\n'.join(SCHEMA_STATEMENTS)
        assert 'REFERENCES deal_stages(id) ON DELETE SET NULL' in ddl
        assert ddl.count('REFERENCES deals(id) ON DELETE CASCADE') == 3

    def test_request_id_uniqueness(self):
        ddl = '\n'.join(SCHEMA_STATEMENTS)
        assert 'ON deal_messages (deal_id, request_id, role)' in ddl
        assert 'WHERE request_id IS NOT NULL' in ddl


# =============================================================================
# Deals
# =============================================================================


class TestDeals:
    @pytest.mark.asyncio
    async def test_get_deal_maps_row(self):
        engine, conn = make_engine(make_result(first=deal_row(valuation=Decimal('50'))))
        deal = await _store(engine).get_deal(7)

        assert deal.name == 'Project Falcon'
        assert deal.valuation == Decimal('50')
        assert conn.execute.await_args.args[1] == {'id': 7}

    @pytest.mark.asyncio
    async def test_get_missing_deal(self):
        engine, _ = make_engine(make_result(first=None))
        assert await _store(engine).get_deal(999) is None

    @pytest.mark.asyncio
    async def test_list_deals_filters(self):
        engine, conn = make_engine(make_result(rows=[deal_row(), deal_row(id=8, name='Orion')]))
        deals = await _store(engine).list_deals(stage_id=2, status='active', search='fal')

        assert [d.id for d in deals] == [7, 8]
        sql = _sql(conn.execute.await_args)
        assert 'stage_id = :stage_id AND status = :status AND name ILIKE :search' in sql
        assert 'ORDER BY updated_at DESC' in sql
        assert conn.execute.await_args.args[1] == {'stage_id': 2, 'status': 'active', 'search': '%fal%'}

    @pytest.mark.asyncio
    async def test_list_deals_unfiltered(self):
        engine, conn = make_engine(make_result(rows=[]))
        assert await _store(engine).list_deals() == []
        assert 'WHERE' not in _sql(conn.execute.await_args)

    @pytest.mark.asyncio
    async def test_create_deal_with_activity_shares_transaction(self):
        engine, conn = make_engine(
            make_result(first=deal_row()),
            make_result(first=_activity_row(type='deal_created')),
        )
        activity = NewActivity(type=ActivityType.DEAL_CREATED, description='Deal created')

        deal = await _store(engine).create_deal({'name': 'Project Falcon', 'bogus': 1}, activity=activity)

        assert deal.id == 7
        engine.begin.assert_called_once()
        insert_deal, insert_activity = conn.execute.await_args_list
        assert 'INSERT INTO deals (name)' in _sql(insert_deal)
        assert insert_deal.args[1] == {'name': 'Project Falcon'}
        assert 'INSERT INTO deal_activities' in _sql(insert_activity)
        assert insert_activity.args[1]['type'] == 'deal_created'

    @pytest.mark.asyncio
    async def test_update_deal_with_activity_shares_transaction(self):
        engine, conn = make_engine(
            make_result(first=deal_row(stage_id=3)),
            make_result(first=_activity_row()),
        )
        activity = NewActivity(type=ActivityType.STAGE_CHANGED, description='Deal moved to a new stage')

        deal = await _store(engine).update_deal(7, {'stage_id': 3}, activity=activity)

        assert deal.stage_id == 3
        engine.begin.assert_called_once()
        update, insert_activity = conn.execute.await_args_list
        assert 'UPDATE deals SET stage_id = :stage_id, updated_at = now() WHERE id = :id' in _sql(update)
        assert update.args[1] == {'stage_id': 3, 'id': 7}
        assert insert_activity.args[1]['deal_id'] == 7

    @pytest.mark.asyncio
    async def test_update_missing_deal_skips_activity(self):
        engine, conn = make_engine(make_result(first=None))
        activity = NewActivity(type=ActivityType.STAGE_CHANGED, description='moved')

        assert await _store(engine).update_deal(999, {'stage_id': 3}, activity=activity) is None
        assert conn.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_update_still_touches_updated_at(self):
        engine, conn = make_engine(make_result(first=deal_row()))
        await _store(engine).update_deal(7, {})
        assert 'SET updated_at = now()' in _sql(conn.execute.await_args)

    @pytest.mark.asyncio
    async def test_delete_deal(self):
        engine, _ = make_engine(make_result(rowcount=1))
        assert await _store(engine).delete_deal(7) is True

        engine, _ = make_engine(make_result(rowcount=0))
        assert await _store(engine).delete_deal(7) is False


# =============================================================================
# Documents
# =============================================================================


class TestDocuments:
    @pytest.mark.asyncio
    async def test_new_documents_are_unprocessed(self):
        engine, conn = make_engine(make_result(first=document_row()))
        await _store(engine).create_document(
            7, {'name': 'cim.pdf', 'object_path': '/objects/uploads/cim.pdf', 'ai_processed': True}
        )

        params = conn.execute.await_args.args[1]
        assert params['deal_id'] == 7
        assert 'ai_processed' not in params

    @pytest.mark.asyncio
    async def test_update_document(self):
        engine, conn = make_engine(make_result(first=document_row(ai_processed=True, ai_summary='s')))
        document = await _store(engine).update_document(40, {'ai_summary': 's', 'ai_processed': True})

        assert document.ai_processed
        assert 'UPDATE documents SET ai_summary = :ai_summary, ai_processed = :ai_processed' in _sql(
            conn.execute.await_args
        )


# =============================================================================
# Messages
# =============================================================================


class TestMessages:
    @pytest.mark.asyncio
    async def test_create_message(self):
        row = {'id': 3, 'deal_id': 7, 'role': 'user', 'content': 'Hello', 'request_id': 'req-1', 'created_at': None}
        engine, conn = make_engine(make_result(first=row))

        message = await _store(engine).create_message(7, MessageRole.USER, 'Hello', 'req-1')

        assert message.role is MessageRole.USER
        assert 'ON CONFLICT (deal_id, request_id, role)' in _sql(conn.execute.await_args)
        assert conn.execute.await_args.args[1]['role'] == 'user'

    @pytest.mark.asyncio
    async def test_duplicate_request_returns_none(self):
        engine, _ = make_engine(make_result(first=None))
        assert await _store(engine).create_message(7, MessageRole.USER, 'Hello', 'req-1') is None

    @pytest.mark.asyncio
    async def test_clear_messages_returns_count(self):
        engine, _ = make_engine(make_result(rowcount=4))
        assert await _store(engine).clear_messages(7) == 4


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self):
        engine, conn = make_engine()
        conn.execute.side_effect = OperationalError('SELECT 1', {}, Exception('connection refused'))

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await _store(engine).get_deal(7)
        assert exc_info.value.context['operation'] == 'get_deal'

    @pytest.mark.asyncio
    async def test_verify_connectivity_reports_failure(self):
        engine, conn = make_engine()
        conn.execute.side_effect = OperationalError('SELECT 1', {}, Exception('connection refused'))
        assert await _store(engine).verify_connectivity() is False
