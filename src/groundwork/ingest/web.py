"""HTML → structured Markdown extraction for statically fetched pages.

Output is composed in three sections:

1. ``## Listings`` — entities from JSON-LD (products, listings, places),
   one small paragraph each.
2. FAQ pairs from ``<details>/<summary>``, ``<dl>`` and JSON-LD ``FAQPage``,
   rendered as ``Q: …\\nA: …``.
3. Generic block content (headings, paragraphs, list items, table cells,
   blockquotes) as lightweight Markdown with absolute links. Blocks that
   repeat a JSON-LD entity's name or description are dropped.

When the result is very short the visible body text is used instead.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.parse
from dataclasses import dataclass

import html2text
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 100
_MIN_BLOCK_LENGTH = 3
_MIN_DEDUP_LENGTH = 10

ENTITY_TYPES = frozenset(
    [
        "Product",
        "RealEstateListing",
        "Place",
        "ApartmentComplex",
        "Residence",
        "House",
        "SingleFamilyResidence",
        "Apartment",
        "LodgingBusiness",
        "Hotel",
        "LocalBusiness",
    ]
)

_STRIP_SELECTORS = (
    "script, style, nav, footer, header, aside, noscript, iframe, svg, "
    "[role=navigation], [role=banner], [role=contentinfo], "
    ".nav, .navbar, .footer, .sidebar, .menu, .advertisement, .ads"
)
_CONTENT_ROOTS = "main, article, [role=main], .content, .main-content, #content, #main"

# Page-builder text wrappers treated like paragraphs.
WP_TEXT_SELECTORS = ", ".join(
    [
        ".et_pb_text_inner",                 # Divi
        ".elementor-widget-text-editor",     # Elementor
        ".elementor-text-editor",
        ".wpb_text_column .wpb_wrapper",     # WPBakery
        ".fl-rich-text",                     # Beaver Builder
        ".wp-block-group__inner-container",  # Gutenberg group
        ".entry-content",                    # classic themes
        ".page-content",
        ".sqs-block-content",                # Squarespace
    ]
)

_BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "td", "th", "blockquote", "figcaption"]
_HEADING_PREFIX = {"h1": "# ", "h2": "## ", "h3": "### ", "h4": "#### ", "h5": "#### ", "h6": "#### "}

# html2text converter for the visible-text fallback
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


@dataclass
class ExtractedPage:
    content: str
    title: str | None = None
    has_faq_structure: bool = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_markdown(markdown: str) -> str:
    """Collapse blank-line runs and horizontal whitespace in provider Markdown."""
    content = re.sub(r"\n{3,}", "\n\n", markdown)
    content = re.sub(r"[ \t]+", " ", content)
    return content.strip()


def extract_page(html: str, base_url: str) -> ExtractedPage:
    """Convert raw *html* fetched from *base_url* into structured Markdown."""
    soup = BeautifulSoup(html, "html.parser")
    title = _extract_title(soup)

    faq_parts: list[str] = []
    entity_parts: list[str] = []
    fingerprints: set[str] = set()
    _extract_json_ld(soup, faq_parts, entity_parts, fingerprints)

    for el in soup.select(_STRIP_SELECTORS):
        if not el.decomposed:
            el.decompose()

    roots = _content_roots(soup)
    for root in roots:
        faq_parts.extend(_extract_details(root, base_url))
        faq_parts.extend(_extract_definition_lists(root, base_url))

    blocks = _extract_blocks(roots, base_url)
    if fingerprints:
        blocks = [b for b in blocks if not is_duplicate_of_entity(b[1], fingerprints)]

    sections = []
    if entity_parts:
        sections.append("## Listings\n\n" + "\n\n---\n\n".join(entity_parts))
    if faq_parts:
        sections.append("\n\n".join(faq_parts))
    generic = _join_blocks(blocks)
    if generic:
        sections.append(generic)
    content = "\n\n".join(sections)

    if len(content) < MIN_CONTENT_LENGTH:
        body = soup.body or soup
        content = re.sub(r"\s+", " ", _h2t.handle(str(body))).strip()

    content = re.sub(r"\n{3,}", "\n\n", content)
    content = re.sub(r"[ \t]+", " ", content).strip()

    return ExtractedPage(content=content, title=title, has_faq_structure=bool(faq_parts))


def normalize_for_dedup(text: str) -> str:
    """Lowercase, strip Markdown emphasis/links and punctuation, collapse whitespace."""
    text = text.lower()
    text = re.sub(r"\*{1,2}", "", text)
    text = re.sub(r"\[([^\]]*)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def is_duplicate_of_entity(block: str, fingerprints: set[str]) -> bool:
    """True if *block* repeats (or is contained in) a JSON-LD entity fingerprint."""
    normalized = normalize_for_dedup(block)
    if len(normalized) < _MIN_DEDUP_LENGTH:
        return False
    return any(fp in normalized or normalized in fp for fp in fingerprints)


def resolve_url(href: str, base_url: str | None) -> str:
    """Resolve a possibly-relative *href* against *base_url*."""
    if not base_url or re.match(r"^https?://", href, re.IGNORECASE):
        return href
    if href.startswith("//"):
        return f"https:{href}"
    try:
        return urllib.parse.urljoin(base_url, href)
    except ValueError:
        return href


def inline_markdown(node: Tag, base_url: str | None = None) -> str:
    """Render *node*'s content as lightweight Markdown.

    Links become ``[text](absolute-url)``, ``<strong>/<b>`` → ``**…**``,
    ``<em>/<i>`` → ``*…*``, ``<code>`` → backticks, ``<br>`` → newline.
    Other tags are flattened to their text.
    """
    out: list[str] = []
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            out.append(str(child))
            continue
        if not isinstance(child, Tag):
            continue

        name = child.name.lower()
        if name == "a":
            href = (child.get("href") or "").strip()
            text = child.get_text().strip()
            if text and href and not href.startswith("#") and not href.lower().startswith("javascript"):
                out.append(f"[{text}]({resolve_url(href, base_url)})")
            else:
                out.append(text)
        elif name in ("strong", "b"):
            inner = inline_markdown(child, base_url)
            if inner:
                out.append(f"**{inner}**")
        elif name in ("em", "i"):
            inner = inline_markdown(child, base_url)
            if inner:
                out.append(f"*{inner}*")
        elif name == "code":
            out.append(f"`{child.get_text()}`")
        elif name == "br":
            out.append("\n")
        else:
            out.append(inline_markdown(child, base_url))
    return "".join(out)


# ---------------------------------------------------------------------------
# Title + JSON-LD
# ---------------------------------------------------------------------------


def _extract_title(soup: BeautifulSoup) -> str | None:
    if soup.title and soup.title.get_text().strip():
        return soup.title.get_text().strip()
    h1 = soup.find("h1")
    if h1 and h1.get_text().strip():
        return h1.get_text().strip()
    og = soup.find("meta", attrs={"property": "og:title"})
    if og and og.get("content"):
        return og["content"].strip()
    return None


def _types_of(node: dict) -> list[str]:
    t = node.get("@type")
    if isinstance(t, list):
        return [str(x) for x in t]
    return [str(t)] if t else []


def _json_ld_nodes(data) -> list[dict]:
    """Flatten a JSON-LD document (object, array, or ``@graph``) into nodes."""
    nodes: list[dict] = []
    items = data if isinstance(data, list) else [data]
    for item in items:
        if not isinstance(item, dict):
            continue
        nodes.append(item)
        graph = item.get("@graph")
        if isinstance(graph, list):
            nodes.extend(n for n in graph if isinstance(n, dict))
    return nodes


def _extract_json_ld(
    soup: BeautifulSoup,
    faq_parts: list[str],
    entity_parts: list[str],
    fingerprints: set[str],
) -> None:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue

        for node in _json_ld_nodes(data):
            types = _types_of(node)
            if "FAQPage" in types:
                faq_parts.extend(_faq_from_json_ld(node.get("mainEntity")))
            if ENTITY_TYPES.intersection(types):
                block = _render_entity(node, fingerprints)
                if block:
                    entity_parts.append(block)


def _faq_from_json_ld(main_entity) -> list[str]:
    items = main_entity if isinstance(main_entity, list) else [main_entity]
    pairs: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = item.get("name") or item.get("text")
        answer = item.get("acceptedAnswer")
        if isinstance(answer, list):
            answer = answer[0] if answer else None
        answer_text = answer.get("text") if isinstance(answer, dict) else None
        if question and answer_text:
            pairs.append(f"Q: {question}\nA: {answer_text}")
    return pairs


def _render_entity(entity: dict, fingerprints: set[str]) -> str:
    parts: list[str] = []

    name = entity.get("name") or entity.get("headline")
    if isinstance(name, str) and name.strip():
        parts.append(f"**{name.strip()}**")
        _add_fingerprint(fingerprints, name)

    description = entity.get("description")
    if isinstance(description, str) and description.strip():
        parts.append(description.strip())
        _add_fingerprint(fingerprints, description)

    address = entity.get("address")
    if isinstance(address, str) and address.strip():
        parts.append(f"Address: {address.strip()}")
    elif isinstance(address, dict) and (address.get("streetAddress") or address.get("addressLocality")):
        fields = ("streetAddress", "addressLocality", "addressRegion", "postalCode")
        formatted = ", ".join(str(address[f]) for f in fields if address.get(f))
        if formatted:
            parts.append(f"Address: {formatted}")

    offers = entity.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    offers = offers if isinstance(offers, dict) else {}
    price = entity.get("price") or offers.get("price") or offers.get("lowPrice")
    currency = entity.get("priceCurrency") or offers.get("priceCurrency") or ""
    if price:
        parts.append(" ".join(str(p) for p in ("Price:", currency, price) if p))

    return "\n".join(parts)


def _add_fingerprint(fingerprints: set[str], text: str) -> None:
    normalized = normalize_for_dedup(text)
    if normalized:
        fingerprints.add(normalized)


# ---------------------------------------------------------------------------
# FAQ markup
# ---------------------------------------------------------------------------


def _extract_details(root: Tag, base_url: str) -> list[str]:
    pairs: list[str] = []
    for details in root.find_all("details"):
        if details.decomposed:
            continue
        summary = details.find("summary")
        question = summary.get_text().strip() if summary else ""
        if summary:
            summary.decompose()
        answer = inline_markdown(details, base_url).strip()
        if question and answer:
            pairs.append(f"Q: {question}\nA: {answer}")
        details.decompose()
    return pairs


def _extract_definition_lists(root: Tag, base_url: str) -> list[str]:
    pairs: list[str] = []
    for dl in root.find_all("dl"):
        if dl.decomposed:
            continue
        for dt in dl.find_all("dt"):
            question = dt.get_text().strip()
            answers: list[str] = []
            sibling = dt.find_next_sibling()
            while sibling is not None and sibling.name == "dd":
                answers.append(inline_markdown(sibling, base_url).strip())
                sibling = sibling.find_next_sibling()
            answers = [a for a in answers if a]
            if question and answers:
                pairs.append(f"Q: {question}\nA: " + "\n".join(answers))
        dl.decompose()
    return pairs


# ---------------------------------------------------------------------------
# Generic blocks
# ---------------------------------------------------------------------------


def _content_roots(soup: BeautifulSoup) -> list[Tag]:
    """Outermost content containers, or ``<body>`` when there are none."""
    roots: list[Tag] = []
    root_ids: set[int] = set()
    for el in soup.select(_CONTENT_ROOTS):
        if not any(id(parent) in root_ids for parent in el.parents):
            roots.append(el)
            root_ids.add(id(el))
    if roots:
        return roots
    return [soup.body or soup]


def _extract_blocks(roots: list[Tag], base_url: str) -> list[tuple[str, str]]:
    """Return ``(tag, markdown)`` for each content block in document order."""
    blocks: list[tuple[str, str]] = []
    for root in roots:
        rescued = {
            id(el) for el in root.select(WP_TEXT_SELECTORS) if el.find(_BLOCK_TAGS) is None
        }
        taken: set[int] = set()
        for el in root.find_all(True):
            if el.name not in _BLOCK_TAGS and id(el) not in rescued:
                continue
            if any(id(parent) in taken for parent in el.parents):
                continue
            taken.add(id(el))

            md = inline_markdown(el, base_url).strip()
            if len(md) < _MIN_BLOCK_LENGTH:
                continue
            if el.name in _HEADING_PREFIX:
                md = _HEADING_PREFIX[el.name] + md
            elif el.name == "li":
                md = f"- {md}"
            elif el.name == "blockquote":
                md = f"> {md}"
            blocks.append((el.name, md))
    return blocks


def _join_blocks(blocks: list[tuple[str, str]]) -> str:
    """Join blocks with blank lines, keeping consecutive list items together."""
    out: list[str] = []
    prev_tag = None
    for tag, md in blocks:
        if out:
            out.append("\n" if tag == "li" and prev_tag == "li" else "\n\n")
        out.append(md)
        prev_tag = tag
    return "".join(out).strip()
