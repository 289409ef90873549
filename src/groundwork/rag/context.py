"""Render retrieved chunks into a grounded system-prompt block.

The block wraps numbered reference sections in grounding rules. When any
chunk contains a Markdown link, link-classification rules are included;
otherwise contact-information safety rules are.
"""

from __future__ import annotations

import math
import re

from groundwork.rag.retriever import RagContext, RetrievedChunk

DEFAULT_MAX_CONTEXT_TOKENS = 8_192

SECTION_SEPARATOR = "\n\n---\n\n"

_MARKDOWN_LINK = re.compile(r"\[.+?\]\(https?://.+?\)")

GROUNDING_RULES = """\
### Grounding Rules (Anti-Hallucination)
You are operating in RAG (Retrieval-Augmented Generation) mode.
You MUST follow these rules strictly:
1. Base your answer ONLY on the retrieved sources below.
   Do not use prior training knowledge to answer factual questions about
   the product, its pricing, policies, or features.
2. If the answer is NOT contained in the sources below, say:
   "I don't have that information in my knowledge base. Please contact
   our team for help with this."
   Do NOT guess, speculate, or fill in gaps with plausible-sounding info.
3. NEVER fabricate URLs, email addresses, phone numbers, or prices.
   Only quote these if they appear verbatim in a source below.
4. NEVER cite or mention source names, source numbers, file names, or
   document titles in your response. Answer naturally as if you already
   know the information.

### Data Conflict Resolution
The sources below may contradict each other. Specific data overrides
generic statements:
- A list of items with concrete details (names, prices, addresses, dates)
  is the truth, even if a generic banner or disclaimer says otherwise.
- Treat an item with details as available unless that specific item is
  marked "Sold", "Booked", "Unavailable", or "Discontinued".
- Do not open with a generic negative when the sources contain specific
  items; present the specific data directly."""

LINK_RULES = """\
### Link Surfacing & Classification
The retrieved context contains Markdown links in the format [Text](URL).

Step 1: Classify every link by its purpose, using the anchor text first
and URL keywords as a fallback.
- Action link (apply, sign up, register, enroll, purchase, order):
  /apply, /application, /signup, /register
- Booking link (schedule, tour, book, calendar, visit, demo, consultation):
  /schedule, /tour, /book, calendly, /demo
- Info link (learn more, details, contact, pricing, FAQ):
  /contact, /pricing, /faq, /about

Step 2: Present links from different categories separately, booking and
exploration links first, then action and commitment links:
  **Interested? → [Schedule a Tour](URL)**
  **Ready to commit? → [Apply Now](URL)**

Step 3: General rules.
- Only use links that appear verbatim in the retrieved context below;
  never fabricate, guess, or modify a URL.
- Show at most 3 relevant links, ordered by relevance.
- If no link is relevant to the current question, do not force one."""

CONTACT_SAFETY_RULES = """\
### Contact Info Safety Net
No clickable links were found in the retrieved sources. The sources may
still contain phone numbers, email addresses, or street addresses. When
the user needs to take an action (apply, book, visit, purchase) and no
direct link is available:
1. Look for a phone number, email, or street address in the sources.
2. Present the contact info in the first person ("our", "us", "we"),
   never as a third party.
3. Only use contact info that appears verbatim in the sources below.
4. If no contact info exists either, say:
   "I don't have a direct link for that, but I'd love to help you get
   connected. Please visit our website or reach out to our team."""


def has_markdown_links(chunks: list[RetrievedChunk]) -> bool:
    return any(_MARKDOWN_LINK.search(c.content) for c in chunks)


def format_reference(index: int, chunk: RetrievedChunk) -> str:
    """Render one chunk as ``[ref-N]`` or ``[ref-N (Page P)]`` plus its content."""
    page = f" (Page {chunk.page_number})" if chunk.page_number else ""
    return f"[ref-{index}{page}]\n{chunk.content}"


def format_context_for_prompt(
    context: RagContext,
    max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
) -> str:
    """Render *context* as a ``<knowledge_base>`` block; ``""`` when it has no chunks.

    Chunks are taken best-first until the next one would push the estimated
    size (characters ÷ 4) past *max_tokens*. The first chunk is always kept.
    """
    if not context.chunks:
        return ""

    included: list[RetrievedChunk] = []
    used = 0
    for chunk in context.chunks:
        cost = math.ceil(len(chunk.content) / 4)
        if included and used + cost > max_tokens:
            break
        included.append(chunk)
        used += cost

    sections = [format_reference(i, c) for i, c in enumerate(included, start=1)]
    directive = LINK_RULES if has_markdown_links(included) else CONTACT_SAFETY_RULES

    return (
        "<knowledge_base>\n\n"
        f"{GROUNDING_RULES}\n\n"
        f"{directive}\n\n"
        "---\n"
        "Retrieved Context:\n\n"
        f"{SECTION_SEPARATOR.join(sections)}\n\n"
        "</knowledge_base>"
    )


def augment_system_prompt(
    base_prompt: str,
    context: RagContext,
    max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
) -> str:
    """Append the formatted context to *base_prompt*; unchanged when there is none."""
    block = format_context_for_prompt(context, max_tokens)
    if not block:
        return base_prompt
    return f"{base_prompt}\n\n{block}"


def extract_rag_metadata(context: RagContext) -> list[dict]:
    """Citation records for audit logging, one per retrieved chunk."""
    return [
        {
            "source_id": c.knowledge_source_id,
            "source_name": c.knowledge_source_name,
            "chunk_id": c.chunk_id,
            "score": c.score,
            "page_number": c.page_number,
        }
        for c in context.chunks
    ]


def extract_user_query(messages: list[dict]) -> str:
    """Content of the last ``user`` message, or ``""`` if there is none."""
    for message in reversed(messages):
        if message.get("role") == "user":
            return message.get("content") or ""
    return ""
