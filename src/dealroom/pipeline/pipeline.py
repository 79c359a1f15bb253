"""
Document pipeline orchestrator.

Wires the per-document stages into a single process_document() call:

1. Text extraction (never fails; placeholders stand in for unreadable files)
2. Summarization (failure aborts the run; the document stays unprocessed)
3. Document update: summary, truncated extracted text, ai_processed=True
4. Fact extraction (failure degrades to "no facts")
5. Reconciliation into the owning deal (failure is logged and swallowed)

Also hosts draft_deal(), the extraction half of "create deal from document".
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from ..clients.postgres_client import DealStore
from ..config import config
from ..errors import NotFoundError
from ..logging import PipelineTimer, logging_context
from ..models.extraction import DealDraft, ExtractedFacts
from .fact_extractor import FactExtractor
from .reconciler import DealReconciler, ReconcileResult
from .summarizer import DocumentSummarizer
from .text_extractor import TextExtractor

logger = structlog.get_logger(__name__)


# =============================================================================
# Result Model
# =============================================================================


@dataclass
class DocumentPipelineResult:
    """What happened while processing one document."""

    document_id: int
    deal_id: int
    document_name: str

    extracted_chars: int = 0
    summary_chars: int = 0
    facts: ExtractedFacts | None = None
    reconcile: ReconcileResult | None = None

    # Timing
    started_at: datetime | None = None
    completed_at: datetime | None = None
    processing_time_ms: int | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    @property
    def deal_updated(self) -> bool:
        return self.reconcile is not None and self.reconcile.updated


# =============================================================================
# Pipeline
# =============================================================================


class DocumentPipeline:
    """
    Runs extraction, summarization and reconciliation for one document.

    Usage:
        pipeline = DocumentPipeline(store, text_extractor, summarizer, fact_extractor)
        result = await pipeline.process_document(document_id)
    """

    def __init__(
        self,
        store: DealStore,
        text_extractor: TextExtractor,
        summarizer: DocumentSummarizer,
        fact_extractor: FactExtractor,
        reconciler: DealReconciler | None = None,
    ):
        self.store = store
        self.text_extractor = text_extractor
        self.summarizer = summarizer
        self.fact_extractor = fact_extractor
        self.reconciler = reconciler or DealReconciler(store)

    async def process_document(self, document_id: int) -> DocumentPipelineResult:
        """
        Process (or reprocess) one document end to end.

        Reprocessing overwrites the previous summary and extracted text.

        Raises:
            NotFoundError: When the document or its deal no longer exists
            SummarizationError: When the summary call fails
        """
        document = await self.store.get_document(document_id)
        if document is None:
            raise NotFoundError('Document', document_id)

        with logging_context(deal_id=document.deal_id, document_id=document.id):
            deal = await self.store.get_deal(document.deal_id)
            if deal is None:
                raise NotFoundError('Deal', document.deal_id)

            timer = PipelineTimer()
            result = DocumentPipelineResult(
                document_id=document.id,
                deal_id=deal.id,
                document_name=document.name,
                started_at=datetime.now(timezone.utc),
            )
            logger.info('document_pipeline.start', document_name=document.name)

            with timer.stage('text_extraction'):
                text = await self.text_extractor.extract(
                    document.object_path, document.name, document.type
                )
            result.extracted_chars = len(text)

            with timer.stage('summarization'):
                summary = await self.summarizer.summarize(
                    document.name,
                    text,
                    category=document.category,
                    mime_type=document.type,
                )
            result.summary_chars = len(summary)

            with timer.stage('document_update'):
                updated = await self.store.update_document(
                    document.id,
                    {
                        'ai_summary': summary,
                        'extracted_text': text[:config.EXTRACTED_TEXT_MAX_CHARS],
                        'ai_processed': True,
                    },
                )
            if updated is None:
                # Deleted while the model calls were in flight
                logger.warning('document_pipeline.document_missing')
                return self._finish(result, timer)

            with timer.stage('fact_extraction'):
                result.facts = await self.fact_extractor.extract_facts(deal, document.name, text)

            if result.facts is not None and not result.facts.is_empty:
                with timer.stage('reconciliation'):
                    result.reconcile = await self.reconciler.reconcile(
                        deal.id, result.facts, document.name
                    )
            else:
                logger.info('document_pipeline.no_facts')

            return self._finish(result, timer)

    def _finish(self, result: DocumentPipelineResult, timer: PipelineTimer) -> DocumentPipelineResult:
        result.completed_at = datetime.now(timezone.utc)
        result.processing_time_ms = int(timer.total_ms)
        result.stage_timings = timer.summary()['stages']

        logger.info(
            'document_pipeline.complete',
            extracted_chars=result.extracted_chars,
            deal_updated=result.deal_updated,
            processing_time_ms=result.processing_time_ms,
            stage_timings=result.stage_timings,
        )
        return result

    async def draft_deal(
        self,
        object_path: str,
        file_name: str,
        mime_type: str | None = None,
    ) -> DealDraft:
        """
        Extract a new deal proposal from an uploaded object.

        Raises:
            ExtractionError: When the model output holds no usable JSON
        """
        text = await self.text_extractor.extract(object_path, file_name, mime_type)
        logger.info('document_pipeline.draft_text', file_name=file_name, chars=len(text))
        return await self.fact_extractor.extract_deal_draft(file_name, text)
