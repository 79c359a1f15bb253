"""
Financial fact extraction prompts.

Two modes:
- Fact update: pull financial facts for an EXISTING deal from one document.
  The deal's current values are shown for reference only; the reconciler, not
  the model, decides what gets written.
- Deal draft: propose a NEW deal record from a freshly uploaded document.

Both ask for a bare JSON object. Monetary values are in millions ($500 million
-> 500, $1.2 billion -> 1200) and null is preferred over any guess. Output is
parsed with utils.extract_json_object and validated by models.extraction.
"""

from decimal import Decimal

from ..models.deal import Deal
from ..utils import format_millions


# =============================================================================
# Fact Update (existing deal)
# =============================================================================

FACT_EXTRACTION_SYSTEM_PROMPT = """You are a financial data extraction assistant. Extract key financial metrics from the document content. Return ONLY valid JSON with no additional text. All monetary values must be in millions (e.g., if the document says "$500 million revenue", return 500; if it says "$1.2 billion", return 1200). CRITICAL: Only extract values explicitly stated in the document. Do NOT estimate, calculate, or infer values that are not directly present. If a field is not found, use null."""

FACT_EXTRACTION_USER_PROMPT_TEMPLATE = """Extract financial data from this document. Current deal info for reference (only update fields where the document provides NEW or MORE RECENT data):
- Target Company: {target_company}
- Geography: {geography}
- Valuation: {valuation}
- Revenue: {revenue}
- EBITDA: {ebitda}

--- DOCUMENT: {document_name} ---
{content_text}
--- END ---

Return JSON with these fields (use null for any not found in document):
{{"valuation": number|null, "revenue": number|null, "ebitda": number|null, "targetCompany": string|null, "geography": string|null}}"""


# =============================================================================
# Deal Draft (create deal from document)
# =============================================================================

DEAL_DRAFT_SYSTEM_PROMPT = """You are a deal creation assistant for M&A and Private Equity. Extract deal information from the document to create a new deal record. Return ONLY valid JSON with no additional text. All monetary values must be in millions (e.g., "$500 million" = 500, "$1.2 billion" = 1200). CRITICAL: Only extract values explicitly stated in the document. Do NOT estimate or fabricate any data. If a field is not found, use null."""

DEAL_DRAFT_USER_PROMPT_TEMPLATE = """Extract deal information from this document to create a new deal:

--- DOCUMENT: {document_name} ---
{content_text}
--- END ---

Return JSON with these fields:
{{"name": string (a short deal name, e.g. "Acme Corp Acquisition" or company name), "description": string|null (brief deal description), "targetCompany": string|null, "geography": string|null, "valuation": number|null (in millions), "revenue": number|null (in millions), "ebitda": number|null (in millions)}}"""


NOT_SET = 'not set'


def _money_or_not_set(value: Decimal | None) -> str:
    return format_millions(value) if value is not None else NOT_SET


def build_fact_extraction_prompt(
    deal: Deal,
    document_name: str,
    content_text: str,
) -> list[dict[str, str]]:
    """
    Build fact update messages for one document of an existing deal.

    Args:
        deal: Current deal state (shown to the model for reference)
        document_name: Display name of the document
        content_text: Text preview, already truncated by the caller

    Returns:
        List of message dicts for OpenAI chat completion
    """
    user_prompt = FACT_EXTRACTION_USER_PROMPT_TEMPLATE.format(
        target_company=deal.target_company or NOT_SET,
        geography=deal.geography or NOT_SET,
        valuation=_money_or_not_set(deal.valuation),
        revenue=_money_or_not_set(deal.revenue),
        ebitda=_money_or_not_set(deal.ebitda),
        document_name=document_name,
        content_text=content_text,
    )

    return [
        {'role': 'system', 'content': FACT_EXTRACTION_SYSTEM_PROMPT},
        {'role': 'user', 'content': user_prompt},
    ]


def build_deal_draft_prompt(document_name: str, content_text: str) -> list[dict[str, str]]:
    """Build messages proposing a new deal from a single document."""
    user_prompt = DEAL_DRAFT_USER_PROMPT_TEMPLATE.format(
        document_name=document_name,
        content_text=content_text,
    )

    return [
        {'role': 'system', 'content': DEAL_DRAFT_SYSTEM_PROMPT},
        {'role': 'user', 'content': user_prompt},
    ]
