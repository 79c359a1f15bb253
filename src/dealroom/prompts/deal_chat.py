"""
Deal assistant prompts: chat, executive summary and investment analysis.

All three share the assistant system prompt and the same deal context block
(build_deal_context). They differ in where the context goes:
- Chat: appended to the system prompt, followed by the full message history
- Summary / analysis: one user turn with the instructions, an optional
  user-supplied override section, then the deal data
"""

from typing import Iterable

from ..config import config
from ..models.deal import Deal, Document, Message
from ..utils import format_millions


NO_HALLUCINATION_INSTRUCTION = """

CRITICAL INSTRUCTION: You must ONLY use information that is explicitly provided in the deal context, uploaded documents, and conversation history. Do NOT fabricate, invent, or hallucinate any data, numbers, facts, company details, or financial figures. If information is not available, clearly state that the data has not been provided or is unavailable. Never fill in gaps with assumed or made-up information."""


# =============================================================================
# System Prompt
# =============================================================================

DEAL_ASSISTANT_SYSTEM_PROMPT = f"""You are an expert M&A and Private Equity associate AI assistant. You help analysts and associates manage their deal pipeline, analyze documents, create investment memos, and provide strategic insights.

Your capabilities:
- Analyze deal financials, valuation metrics, and market positioning
- Review and summarize uploaded documents (financial statements, pitch decks, legal docs, etc.)
- Generate investment thesis and risk assessment
- Create comprehensive deal summaries and investment memos
- Answer questions about specific deals using the document context provided
- Help structure due diligence processes
- Provide industry analysis and comparable transaction insights

All financial figures (Valuation, Revenue, EBITDA) are denominated in millions of dollars ($M) unless otherwise specified.

When responding:
- Be precise and data-driven when financial information is available
- Use professional M&A/PE terminology
- Structure responses clearly with headers and bullet points when appropriate
- Highlight key risks and opportunities
- Reference specific documents when available
- If asked to generate a memo or analysis, use a structured professional format
- If data is not available, explicitly say so; never guess or fabricate numbers

Format your responses using markdown for readability.{NO_HALLUCINATION_INSTRUCTION}"""


# =============================================================================
# Generation Instructions
# =============================================================================

DEAL_SUMMARY_PROMPT = f"""Based on the deal information and documents provided below, create a comprehensive executive summary of this deal. Include:

1. **Deal Overview** - Key transaction details
2. **Target Company Profile** - Business description, market position
3. **Financial Highlights** - Key financial metrics and trends (all values in $M)
4. **Strategic Rationale** - Why this deal makes sense
5. **Key Developments** - What has happened so far
6. **Next Steps** - What needs to be done

Be concise but thorough. Use data from the documents when available. Do NOT make up or fabricate any data, financial figures, or facts that are not explicitly provided in the deal context or documents. If information is missing, clearly note it as "Not provided" or "Data unavailable."{NO_HALLUCINATION_INSTRUCTION}"""

DEAL_ANALYSIS_PROMPT = f"""Based on the deal information and documents provided below, create a detailed investment analysis. Include:

1. **Investment Thesis** - Core reasons to pursue this deal
2. **Valuation Assessment** - Analysis of the deal valuation and comparables (all values in $M)
3. **Financial Analysis** - Revenue, EBITDA, margins, growth trajectory (all values in $M)
4. **Market Analysis** - Industry dynamics, competitive landscape
5. **Risk Assessment** - Key risks and mitigants
6. **Due Diligence Findings** - Key items identified from documents
7. **Recommendation** - Overall assessment with conditions

Use professional PE/M&A analysis frameworks. Reference specific data points when available. Do NOT make up or fabricate any data, financial figures, or facts that are not explicitly provided in the deal context or documents. If information is missing, clearly note it as "Not provided" or "Data unavailable."{NO_HALLUCINATION_INSTRUCTION}"""


CHAT_CONTEXT_HEADER = '\n\n--- Current Deal Context ---\n'
DEAL_DATA_HEADER = '\n\n--- Deal Data ---\n'
OVERRIDE_HEADER_TEMPLATE = '\n\n--- Additional Context/Instructions for {label} ---\n'


# =============================================================================
# Context Block
# =============================================================================


def build_deal_context(
    deal: Deal,
    documents: Iterable[Document],
    doc_chars: int | None = None,
) -> str:
    """
    Render a deal and its documents as the plain-text context block.

    Documents appear in the order given (the store returns newest upload
    first). Each contributes its summary and a prefix of its extracted text.

    Args:
        deal: The deal to describe
        documents: The deal's documents
        doc_chars: Extracted-text prefix length per document
            (defaults to config.CONTEXT_DOC_CHARS)

    Returns:
        The context block
    """
    limit = doc_chars if doc_chars is not None else config.CONTEXT_DOC_CHARS

    lines = [f'Deal: {deal.name}']
    if deal.target_company:
        lines.append(f'Target Company: {deal.target_company}')
    if deal.geography:
        lines.append(f'Geography: {deal.geography}')
    if deal.valuation is not None:
        lines.append(f'Valuation: {format_millions(deal.valuation, grouped=True)}')
    if deal.revenue is not None:
        lines.append(f'Revenue: {format_millions(deal.revenue, grouped=True)}')
    if deal.ebitda is not None:
        lines.append(f'EBITDA: {format_millions(deal.ebitda, grouped=True)}')
    multiple = deal.ev_ebitda_multiple
    if multiple is not None:
        lines.append(f'EV/EBITDA Multiple: {multiple:.1f}x')
    if deal.description:
        lines.append(f'Description: {deal.description}')
    if deal.status:
        lines.append(f'Status: {deal.status}')
    context = '\n'.join(lines) + '\n'

    documents = list(documents)
    if documents:
        context += '\n--- Documents in Dataroom ---\n'
        for doc in documents:
            context += f"\nDocument: {doc.name} ({doc.category or 'general'})"
            if doc.ai_summary:
                context += f'\nSummary: {doc.ai_summary}'
            if doc.extracted_text:
                context += f'\nContent:\n{doc.extracted_text[:limit]}'
            context += '\n'

    return context


# =============================================================================
# Builder Functions
# =============================================================================


def build_chat_messages(
    context_block: str,
    history: Iterable[Message],
    system_prompt: str = DEAL_ASSISTANT_SYSTEM_PROMPT,
) -> list[dict[str, str]]:
    """
    Build chat completion messages for a deal conversation.

    Args:
        context_block: Output of build_deal_context
        history: Full message history in order, ending with the new user turn
        system_prompt: Assistant persona

    Returns:
        List of message dicts for OpenAI chat completion
    """
    messages = [{'role': 'system', 'content': system_prompt + CHAT_CONTEXT_HEADER + context_block}]
    for message in history:
        messages.append({'role': message.role.value, 'content': message.content})
    return messages


def build_generation_messages(
    instructions: str,
    label: str,
    context_block: str,
    user_instructions: str | None = None,
    system_prompt: str = DEAL_ASSISTANT_SYSTEM_PROMPT,
) -> list[dict[str, str]]:
    """
    Build messages for a one-shot summary or analysis.

    Args:
        instructions: DEAL_SUMMARY_PROMPT or DEAL_ANALYSIS_PROMPT
        label: Section label for the override header ('Summary' / 'Analysis')
        context_block: Output of build_deal_context
        user_instructions: Deal's stored summary/analysis context, if any
        system_prompt: Assistant persona

    Returns:
        List of message dicts for OpenAI chat completion
    """
    user_prompt = instructions
    if user_instructions:
        user_prompt += OVERRIDE_HEADER_TEMPLATE.format(label=label) + user_instructions
    user_prompt += DEAL_DATA_HEADER + context_block

    return [
        {'role': 'system', 'content': system_prompt},
        {'role': 'user', 'content': user_prompt},
    ]
