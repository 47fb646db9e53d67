"""PDF page extraction built on pymupdf span geometry."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import PurePath
import re
from typing import Callable, Iterator

import pymupdf

from bookcondense.extraction.assembler import DEFAULT_MIN_CHARS, FragmentAssembler
from bookcondense.extraction.models import ExtractedDocument, Page, PagePreview, PositionedFragment
from bookcondense.extraction.normalization import collapse_whitespace, normalize_whitespace

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200
UNREADABLE_MESSAGE = "Unable to read text from the PDF. The file may be scanned, encrypted, or corrupted."

_TITLE_SPLIT_RE = re.compile(r"[._\-]+")

FragmentReader = Callable[[pymupdf.Page], list[PositionedFragment]]


@dataclass(slots=True)
class ExtractionFailed(Exception):
    """Raised when a document yields no readable page at all."""

    message: str = UNREADABLE_MESSAGE

    def __str__(self) -> str:
        return self.message


def _title_from_filename(filename: str) -> str | None:
    stem = _TITLE_SPLIT_RE.sub(" ", PurePath(filename).stem)
    return normalize_whitespace(stem).title() or None


def _first_non_empty(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = normalize_whitespace(value)
    return cleaned or None


def _iter_spans(page_dict: dict) -> Iterator[tuple[dict, bool]]:
    for block in page_dict.get("blocks", []):
        # image blocks carry no "lines"
        for line in block.get("lines", []):
            spans = line.get("spans", [])
            for position, span in enumerate(spans):
                yield span, position == len(spans) - 1


def page_fragments(page: pymupdf.Page) -> list[PositionedFragment]:
    """Return one fragment per text span, in pymupdf traversal order.

    The last span of every pymupdf line is flagged as a line end.
    """

    fragments: list[PositionedFragment] = []
    for span, is_line_end in _iter_spans(page.get_text("dict")):
        text = span.get("text", "")
        if not text:
            continue
        origin_x, origin_y = span["origin"]
        x0, _, x1, _ = span["bbox"]
        fragments.append(
            PositionedFragment(
                text=text,
                origin_x=float(origin_x),
                origin_y=float(origin_y),
                advance_width=float(x1 - x0),
                is_line_end=is_line_end,
            )
        )
    return fragments


def _open_document(data: bytes) -> pymupdf.Document:
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ExtractionFailed() from exc

    if doc.needs_pass:
        doc.close()
        raise ExtractionFailed()
    return doc


def extract_document(
    data: bytes,
    *,
    filename: str | None = None,
    read_fragments: FragmentReader = page_fragments,
    min_chars: int = DEFAULT_MIN_CHARS,
) -> ExtractedDocument:
    """Extract readable pages and metadata from PDF bytes.

    Pages whose extraction raises are logged and skipped; pages with too
    little text are dropped silently. Both kinds are left unnumbered, so the
    surviving pages are numbered sequentially from 1.
    """

    assembler = FragmentAssembler(min_chars=min_chars)
    pages: list[Page] = []
    skipped = 0

    with _open_document(data) as doc:
        metadata = doc.metadata or {}
        for page_index, pdf_page in enumerate(doc, start=1):
            try:
                fragments = read_fragments(pdf_page)
            except Exception as exc:
                skipped += 1
                logger.warning("Skipping unreadable page %d: %s", page_index, exc)
                continue

            page = assembler.assemble(fragments)
            if page is not None:
                pages.append(page)

    if not pages:
        raise ExtractionFailed()

    if skipped:
        logger.warning("%d page(s) could not be read and were skipped", skipped)

    title = _first_non_empty(metadata.get("title"))
    if title is None and filename:
        title = _title_from_filename(filename)

    return ExtractedDocument(
        pages=pages,
        title=title,
        author=_first_non_empty(metadata.get("author")),
    )


def extract_pages(data: bytes, **kwargs) -> list[Page]:
    return extract_document(data, **kwargs).pages


def build_preview(page: Page) -> PagePreview:
    preview = collapse_whitespace(page.text[:PREVIEW_CHARS])
    return PagePreview(page_number=page.page_number, word_count=page.word_count, preview=preview)


def inspect_document(data: bytes) -> list[PagePreview]:
    """Summarize readable pages without condensing anything."""

    return [build_preview(page) for page in extract_pages(data)]
