"""
Financial fact extraction from document text.

Asks the model for a bare JSON object and applies the acceptance policy in
models.extraction. Two entry points:
- extract_facts: facts for an existing deal; degrades to None on any failure
- extract_deal_draft: a new deal record; raises ExtractionError when the
  model output holds no usable JSON object
"""

import os

import structlog

from ..clients.openai_client import OpenAIClient
from ..config import config
from ..errors import ExtractionError
from ..models.deal import Deal
from ..models.extraction import DealDraft, ExtractedFacts
from ..prompts.extract_facts import build_deal_draft_prompt, build_fact_extraction_prompt
from ..utils import extract_json_object

logger = structlog.get_logger(__name__)


class FactExtractor:
    """Extracts valuation, revenue, EBITDA, target company and geography."""

    def __init__(self, openai_client: OpenAIClient):
        """
        Initialize the extractor.

        Args:
            openai_client: OpenAI client for LLM calls
        """
        self.openai = openai_client

    async def extract_facts(
        self,
        deal: Deal,
        document_name: str,
        text: str,
    ) -> ExtractedFacts | None:
        """
        Extract facts reported by one document of an existing deal.

        Args:
            deal: Current deal state, shown to the model for reference
            document_name: Display name of the document
            text: Extracted document text (only a prefix is sent)

        Returns:
            ExtractedFacts, or None when the call failed or no JSON object
            could be parsed from the response
        """
        log = logger.bind(deal_id=deal.id, document_name=document_name)
        messages = build_fact_extraction_prompt(
            deal=deal,
            document_name=document_name,
            content_text=text[:config.TEXT_PREVIEW_CHARS],
        )

        try:
            response = await self.openai.chat_completion(
                messages=messages,
                max_tokens=config.FACT_MAX_TOKENS,
            )
        except Exception as e:
            log.warning('fact_extraction.llm_failed', error=str(e), error_type=type(e).__name__)
            return None

        payload = extract_json_object(response)
        if payload is None:
            log.info('fact_extraction.no_json', response_chars=len(response))
            return None

        facts = ExtractedFacts.from_payload(payload)
        log.info(
            'fact_extraction.complete',
            fields=[k for k, v in facts.model_dump().items() if v is not None],
        )
        return facts

    async def extract_deal_draft(self, file_name: str, text: str) -> DealDraft:
        """
        Propose a new deal from a freshly uploaded document.

        Args:
            file_name: Original file name; its stem is the fallback deal name
            text: Extracted document text (only a prefix is sent)

        Returns:
            DealDraft built from the model's JSON object

        Raises:
            ExtractionError: When the response holds no parseable JSON object
            OpenAIError: When the model call fails
        """
        messages = build_deal_draft_prompt(
            document_name=file_name,
            content_text=text[:config.TEXT_PREVIEW_CHARS],
        )
        response = await self.openai.chat_completion(
            messages=messages,
            max_tokens=config.FACT_MAX_TOKENS,
        )

        payload = extract_json_object(response)
        if payload is None:
            logger.warning('deal_draft.no_json', file_name=file_name)
            raise ExtractionError(
                'Could not extract deal information from document',
                context={'file_name': file_name},
            )

        draft = DealDraft.from_payload(payload, fallback_name=os.path.splitext(file_name)[0])
        logger.info('deal_draft.complete', file_name=file_name, name=draft.name)
        return draft
