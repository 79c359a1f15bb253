"""
LLM prompts for the Dealroom pipeline.

Provides system and user prompts for:
- Financial fact extraction (existing deal) and deal drafts (new deal)
- Document summarization
- Deal chat, executive summary and investment analysis
"""

from .deal_chat import (
    DEAL_ANALYSIS_PROMPT,
    DEAL_ASSISTANT_SYSTEM_PROMPT,
    DEAL_SUMMARY_PROMPT,
    build_chat_messages,
    build_deal_context,
    build_generation_messages,
)
from .extract_facts import build_deal_draft_prompt, build_fact_extraction_prompt
from .summarize_document import build_document_summary_prompt

__all__ = [
    'DEAL_ANALYSIS_PROMPT',
    'DEAL_ASSISTANT_SYSTEM_PROMPT',
    'DEAL_SUMMARY_PROMPT',
    'build_chat_messages',
    'build_deal_context',
    'build_deal_draft_prompt',
    'build_document_summary_prompt',
    'build_fact_extraction_prompt',
    'build_generation_messages',
]
