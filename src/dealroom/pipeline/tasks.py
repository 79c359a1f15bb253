"""
Background execution of document processing.

submit() schedules DocumentPipeline.process_document on the running event loop
and returns at once, so upload requests never wait on model calls. Failures
are logged only: the document's ai_processed flag staying false is the
user-visible signal, and reprocessing is the recovery path.
"""

import asyncio

import structlog

from .pipeline import DocumentPipeline

logger = structlog.get_logger(__name__)


class DocumentTaskRunner:
    """Tracks in-flight document tasks so they can be drained at shutdown."""

    def __init__(self, pipeline: DocumentPipeline):
        self.pipeline = pipeline
        # Strong references; the event loop only keeps weak ones
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, document_id: int) -> asyncio.Task:
        """Schedule processing of a document. Must be called inside a running loop."""
        task = asyncio.create_task(
            self._run(document_id),
            name=f'process-document-{document_id}',
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info('document_tasks.submitted', document_id=document_id, pending=len(self._tasks))
        return task

    async def _run(self, document_id: int) -> None:
        try:
            await self.pipeline.process_document(document_id)
        except Exception as e:
            logger.error(
                'document_tasks.failed',
                document_id=document_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self, timeout: float | None = 30.0) -> None:
        """Wait for in-flight tasks; cancel whatever is still running after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info('document_tasks.draining', pending=len(tasks))
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning('document_tasks.cancelled', count=len(still_running))
