"""Document parsing: uploaded files (PDF, text, Markdown) and web pages."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from pathlib import PurePath

import pypdf

from groundwork.db.models import SourceType
from groundwork.ingest.pages import PAGE_BREAK
from groundwork.ingest.scraper import DEFAULT_WAIT_FOR_SELECTOR, FetchOptions, fetch_page
from groundwork.ingest.web import extract_page, normalize_markdown

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

PDF_MIME = "application/pdf"
TEXT_MIME = "text/plain"
MARKDOWN_MIME = "text/markdown"

_MIME_BY_EXTENSION: dict[str, str] = {
    "pdf": PDF_MIME,
    "txt": TEXT_MIME,
    "md": MARKDOWN_MIME,
    "markdown": MARKDOWN_MIME,
}

_SOURCE_TYPE_BY_EXTENSION: dict[str, SourceType] = {
    "pdf": SourceType.PDF,
    "txt": SourceType.TXT,
    "md": SourceType.MD,
    "markdown": SourceType.MD,
    "docx": SourceType.DOCX,
}

_FAQ_LINE = re.compile(r"^Q:\s.+", re.IGNORECASE | re.MULTILINE)


class UnsupportedFileTypeError(ValueError):
    """Raised for a file whose type cannot be parsed."""


class FileTooLargeError(ValueError):
    """Raised for a file over ``MAX_FILE_SIZE``."""


@dataclass
class ParsedDocument:
    """Normalized text of a document plus what was learned while parsing it."""

    content: str
    char_count: int
    page_count: int | None = None
    title: str | None = None
    has_faq_structure: bool = False

    def metadata(self) -> dict:
        meta: dict = {"char_count": self.char_count}
        if self.page_count is not None:
            meta["page_count"] = self.page_count
        if self.title:
            meta["title"] = self.title
        return meta


# ---------------------------------------------------------------------------
# File type helpers
# ---------------------------------------------------------------------------


def _extension(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")


def detect_mime_type(filename: str) -> str | None:
    """Return the MIME type for *filename*'s extension, or None if unsupported."""
    return _MIME_BY_EXTENSION.get(_extension(filename))


def validate_file(filename: str, size: int) -> None:
    """Reject a file before any processing starts.

    Raises:
        FileTooLargeError: If *size* exceeds ``MAX_FILE_SIZE``.
        UnsupportedFileTypeError: If the extension is not pdf, txt, md or markdown.
    """
    if size > MAX_FILE_SIZE:
        raise FileTooLargeError(
            f"File exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit ({size} bytes): {filename}"
        )
    if detect_mime_type(filename) is None:
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {filename}. Use PDF, TXT, or MD."
        )


def get_source_type(name_or_url: str) -> SourceType:
    """Classify an upload name or URL as a knowledge-source type (default ``txt``)."""
    if name_or_url.lower().startswith(("http://", "https://")):
        return SourceType.URL
    return _SOURCE_TYPE_BY_EXTENSION.get(_extension(name_or_url), SourceType.TXT)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_document(data: bytes, mime_type: str) -> ParsedDocument:
    """Parse raw file bytes of a supported *mime_type*.

    Raises:
        UnsupportedFileTypeError: For any other MIME type.
    """
    if mime_type == PDF_MIME:
        return parse_pdf(data)
    if mime_type in (TEXT_MIME, MARKDOWN_MIME):
        return parse_text(data)
    raise UnsupportedFileTypeError(f"Unsupported mime type: {mime_type}")


def parse_pdf(data: bytes) -> ParsedDocument:
    """Extract text page by page; pages are joined with a form feed.

    Pages without extractable text (scanned images) keep their slot as an
    empty page so page numbers stay aligned.
    """
    reader = pypdf.PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or "").strip() for page in reader.pages]
    content = PAGE_BREAK.join(pages)

    title = None
    if reader.metadata is not None and reader.metadata.title:
        title = str(reader.metadata.title).strip() or None

    return ParsedDocument(
        content=content,
        char_count=len(content),
        page_count=len(reader.pages),
        title=title,
    )


def parse_text(data: bytes) -> ParsedDocument:
    content = data.decode("utf-8", errors="replace")
    return ParsedDocument(content=content, char_count=len(content))


def parse_url(url: str, options: FetchOptions | None = None) -> ParsedDocument:
    """Fetch *url* through the tiered scraper and return its structured text.

    Provider Markdown is used as-is after whitespace normalization; raw HTML
    from the static tier goes through the HTML extractor.
    """
    opts = options or FetchOptions(wait_for_selector=DEFAULT_WAIT_FOR_SELECTOR)
    result = fetch_page(url, opts)

    if result.markdown:
        content = normalize_markdown(result.markdown)
        return ParsedDocument(
            content=content,
            char_count=len(content),
            title=result.title,
            has_faq_structure=len(_FAQ_LINE.findall(content)) >= 2,
        )

    page = extract_page(result.html or "", url)
    return ParsedDocument(
        content=page.content,
        char_count=len(page.content),
        title=page.title,
        has_faq_structure=page.has_faq_structure,
    )
