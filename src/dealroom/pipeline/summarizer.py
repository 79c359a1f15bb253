"""
Due-diligence summaries of individual documents.
"""

import structlog

from ..clients.openai_client import OpenAIClient
from ..config import config
from ..errors import SummarizationError
from ..prompts.summarize_document import build_document_summary_prompt

logger = structlog.get_logger(__name__)


class DocumentSummarizer:
    """Produces one summary per document with a single non-streaming call."""

    def __init__(self, openai_client: OpenAIClient):
        self.openai = openai_client

    async def summarize(
        self,
        document_name: str,
        text: str,
        category: str | None = None,
        mime_type: str | None = None,
    ) -> str:
        """
        Summarize a document's text.

        Raises:
            SummarizationError: When the model call fails. Not retried.
        """
        messages = build_document_summary_prompt(
            document_name=document_name,
            content_text=text[:config.TEXT_PREVIEW_CHARS],
            category=category,
            mime_type=mime_type,
        )

        try:
            summary = await self.openai.chat_completion(
                messages=messages,
                max_tokens=config.SUMMARY_MAX_TOKENS,
            )
        except Exception as e:
            raise SummarizationError(
                f'Failed to summarize {document_name}: {e}',
                context={'document_name': document_name, 'error_type': type(e).__name__},
            ) from e

        logger.info('summarizer.complete', document_name=document_name, chars=len(summary))
        return summary
