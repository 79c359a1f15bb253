"""
Tests for DocumentPipeline orchestration and the background DocumentTaskRunner.

Stage collaborators are AsyncMocks so each test controls exactly which stage
succeeds, degrades or fails.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from dealroom.errors import NotFoundError, SummarizationError
from dealroom.models.extraction import DealDraft, ExtractedFacts
from dealroom.pipeline.pipeline import DocumentPipeline
from dealroom.pipeline.reconciler import ReconcileResult
from dealroom.pipeline.tasks import DocumentTaskRunner


@pytest.fixture
def stages():
    text_extractor = AsyncMock()
    text_extractor.extract.return_value = 'Revenue was $120M. ' * 10
    summarizer = AsyncMock()
    summarizer.summarize.return_value = 'Strong revenue growth.'
    fact_extractor = AsyncMock()
    fact_extractor.extract_facts.return_value = ExtractedFacts(revenue=Decimal('120'))
    reconciler = AsyncMock()
    reconciler.reconcile.return_value = ReconcileResult(
        deal_id=7, document_name='cim.pdf', changes={'revenue': Decimal('120')}, activity_written=True
    )
    return text_extractor, summarizer, fact_extractor, reconciler


def _pipeline(store, stages) -> DocumentPipeline:
    text_extractor, summarizer, fact_extractor, reconciler = stages
    return DocumentPipeline(
        store=store,
        text_extractor=text_extractor,
        summarizer=summarizer,
        fact_extractor=fact_extractor,
        reconciler=reconciler,
    )


class TestProcessDocument:
    @pytest.mark.asyncio
    async def test_full_run(self, mock_store, stages, sample_deal, sample_document):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        text_extractor, summarizer, fact_extractor, reconciler = stages

        result = await _pipeline(mock_store, stages).process_document(40)

        text_extractor.extract.assert_awaited_once_with('/objects/uploads/cim.pdf', 'cim.pdf', 'application/pdf')
        summarizer.summarize.assert_awaited_once()
        document_id, updates = mock_store.update_document.await_args.args
        assert document_id == 40
        assert updates['ai_summary'] == 'Strong revenue growth.'
        assert updates['ai_processed'] is True
        reconciler.reconcile.assert_awaited_once_with(7, ExtractedFacts(revenue=Decimal('120')), 'cim.pdf')

        assert result.deal_updated
        assert result.summary_chars == len('Strong revenue growth.')
        assert set(result.stage_timings) == {
            'text_extraction', 'summarization', 'document_update', 'fact_extraction', 'reconciliation',
        }
        assert result.processing_time_ms is not None

    @pytest.mark.asyncio
    async def test_extracted_text_is_truncated(self, mock_store, stages, sample_deal, sample_document):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        stages[0].extract.return_value = 'z' * 60000

        await _pipeline(mock_store, stages).process_document(40)

        updates = mock_store.update_document.await_args.args[1]
        assert len(updates['extracted_text']) == 50000

    @pytest.mark.asyncio
    async def test_summary_failure_leaves_document_unprocessed(
        self, mock_store, stages, sample_deal, sample_document
    ):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        stages[1].summarize.side_effect = SummarizationError('model down')

        with pytest.raises(SummarizationError):
            await _pipeline(mock_store, stages).process_document(40)

        mock_store.update_document.assert_not_awaited()
        stages[3].reconcile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_facts_skips_reconciliation(self, mock_store, stages, sample_deal, sample_document):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        stages[2].extract_facts.return_value = None

        result = await _pipeline(mock_store, stages).process_document(40)

        mock_store.update_document.assert_awaited_once()
        stages[3].reconcile.assert_not_awaited()
        assert not result.deal_updated

    @pytest.mark.asyncio
    async def test_empty_facts_skip_reconciliation(self, mock_store, stages, sample_deal, sample_document):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        stages[2].extract_facts.return_value = ExtractedFacts()

        await _pipeline(mock_store, stages).process_document(40)

        stages[3].reconcile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_document_deleted_mid_run_stops_before_facts(
        self, mock_store, stages, sample_deal, sample_document
    ):
        mock_store.get_document.return_value = sample_document
        mock_store.get_deal.return_value = sample_deal
        mock_store.update_document.return_value = None

        result = await _pipeline(mock_store, stages).process_document(40)

        stages[2].extract_facts.assert_not_awaited()
        stages[3].reconcile.assert_not_awaited()
        assert not result.deal_updated
        assert result.completed_at is not None
        assert set(result.stage_timings) == {'text_extraction', 'summarization', 'document_update'}

    @pytest.mark.asyncio
    async def test_missing_document(self, mock_store, stages):
        with pytest.raises(NotFoundError):
            await _pipeline(mock_store, stages).process_document(999)
        stages[0].extract.assert_not_awaited()


class TestDraftDeal:
    @pytest.mark.asyncio
    async def test_extracts_then_drafts(self, mock_store, stages):
        stages[0].extract.return_value = 'Acme teaser'
        stages[2].extract_deal_draft.return_value = DealDraft(name='Acme')

        draft = await _pipeline(mock_store, stages).draft_deal('/objects/t.pdf', 't.pdf', 'application/pdf')

        assert draft.name == 'Acme'
        stages[2].extract_deal_draft.assert_awaited_once_with('t.pdf', 'Acme teaser')


class TestDocumentTaskRunner:
    @pytest.mark.asyncio
    async def test_submit_does_not_block(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_process(document_id):
            started.set()
            await release.wait()

        pipeline = AsyncMock()
        pipeline.process_document.side_effect = slow_process
        runner = DocumentTaskRunner(pipeline)

        task = runner.submit(40)
        assert runner.pending == 1
        await started.wait()
        release.set()
        await task

        assert runner.pending == 0
        pipeline.process_document.assert_awaited_once_with(40)

    @pytest.mark.asyncio
    async def test_failures_are_contained(self):
        pipeline = AsyncMock()
        pipeline.process_document.side_effect = SummarizationError('model down')
        runner = DocumentTaskRunner(pipeline)

        await runner.submit(40)

        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        async def never_finishes(document_id):
            await asyncio.sleep(3600)

        pipeline = AsyncMock()
        pipeline.process_document.side_effect = never_finishes
        runner = DocumentTaskRunner(pipeline)
        task = runner.submit(40)

        await runner.drain(timeout=0.01)

        assert task.cancelled()
        assert runner.pending == 0
