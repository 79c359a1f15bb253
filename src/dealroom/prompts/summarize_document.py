"""
Document summarization prompts.

One non-streaming call per document. The summary is stored on the Document
row and later fed into every deal context block, so it should carry the
numbers a reviewer would look for.
"""

DOCUMENT_SUMMARY_SYSTEM_PROMPT = """You are a document analysis assistant specializing in M&A and Private Equity. Analyze the actual document content provided and create a thorough summary. Focus on financial data, legal terms, business metrics, and strategic insights. CRITICAL: Do NOT fabricate, invent, or hallucinate any data. Only use information explicitly present in the document content. If information is missing, state it is unavailable."""

DOCUMENT_SUMMARY_USER_PROMPT_TEMPLATE = """Please analyze and summarize this document:

Document Name: {document_name}
Category: {category}
Type: {mime_type}

--- DOCUMENT CONTENT ---
{content_text}
--- END DOCUMENT CONTENT ---

Provide a detailed summary focusing on key financial data, business metrics, legal terms, and strategic insights that would be relevant for M&A due diligence. Reference specific numbers and data points from the document."""


def build_document_summary_prompt(
    document_name: str,
    content_text: str,
    category: str | None = None,
    mime_type: str | None = None,
) -> list[dict[str, str]]:
    """
    Build summarization messages for one document.

    Args:
        document_name: Display name of the document
        content_text: Text preview, already truncated by the caller
        category: Document category (defaults to 'general')
        mime_type: Declared MIME type (defaults to 'unknown')

    Returns:
        List of message dicts for OpenAI chat completion
    """
    user_prompt = DOCUMENT_SUMMARY_USER_PROMPT_TEMPLATE.format(
        document_name=document_name,
        category=category or 'general',
        mime_type=mime_type or 'unknown',
        content_text=content_text,
    )

    return [
        {'role': 'system', 'content': DOCUMENT_SUMMARY_SYSTEM_PROMPT},
        {'role': 'user', 'content': user_prompt},
    ]
