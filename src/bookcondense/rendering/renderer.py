"""Render condensed pages into a fixed-layout PDF with pymupdf."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
import logging
from typing import Sequence

import pymupdf

from bookcondense.condensation.policy import CondensedPage
from bookcondense.rendering.layout import wrap_text
from bookcondense.rendering.sanitize import sanitize

logger = logging.getLogger(__name__)

PAGE_WIDTH = 612
PAGE_HEIGHT = 792
PAGE_MARGIN = 72
LINE_HEIGHT = 18
CONTENT_WIDTH = PAGE_WIDTH - PAGE_MARGIN * 2

REGULAR_FONT = "tiro"
BOLD_FONT = "tibo"
ITALIC_FONT = "tiit"

DEFAULT_TITLE = "Condensed Book"
COVER_BLURB = (
    "This edition condenses the original manuscript while preserving narrative "
    "structure and notable quotations."
)

TITLE_COLOR = (0.08, 0.13, 0.22)
BODY_COLOR = (0.15, 0.2, 0.3)
FOOTER_COLOR = (0.4, 0.44, 0.55)


@dataclass(slots=True)
class EmptyInput(Exception):
    message: str = "No condensed pages provided for PDF rendering."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class RenderMetadata:
    summary_density: int
    quote_density: int
    title: str | None = None
    author: str | None = None


def _resolve_font(fontname: str) -> str:
    try:
        pymupdf.Font(fontname)
    except Exception as exc:
        logger.warning("Font %s unavailable, using %s: %s", fontname, REGULAR_FONT, exc)
        return REGULAR_FONT
    return fontname


def _add_paragraph(
    page: pymupdf.Page,
    text: str,
    *,
    fontname: str,
    fontsize: float,
    x: float,
    y: float,
    max_width: float = CONTENT_WIDTH,
    line_height: float = LINE_HEIGHT,
    color: tuple[float, float, float] = BODY_COLOR,
) -> float:
    """Draw wrapped text with its first baseline at ``y``; return the next free baseline."""

    measure = partial(pymupdf.get_text_length, fontname=fontname, fontsize=fontsize)
    lines = wrap_text(text, measure, max_width, x, y, line_height)
    for line in lines:
        page.insert_text((line.x, line.y), line.text, fontname=fontname, fontsize=fontsize, color=color)

    if not lines:
        return y + line_height
    return lines[-1].y + line_height


def _draw_cover(doc: pymupdf.Document, metadata: RenderMetadata, fonts: dict[str, str]) -> None:
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    page.insert_text(
        (PAGE_MARGIN, PAGE_MARGIN * 2),
        sanitize(metadata.title or DEFAULT_TITLE),
        fontname=fonts["bold"],
        fontsize=28,
        color=TITLE_COLOR,
    )

    cursor = PAGE_MARGIN * 2.8
    if metadata.author:
        cursor = _add_paragraph(
            page,
            f"Author: {metadata.author}",
            fontname=fonts["regular"],
            fontsize=16,
            x=PAGE_MARGIN,
            y=cursor,
            line_height=22,
        )

    cursor = _add_paragraph(
        page,
        f"Summary density: {metadata.summary_density}%  |  Quote density: {metadata.quote_density}%",
        fontname=fonts["regular"],
        fontsize=14,
        x=PAGE_MARGIN,
        y=cursor + 12,
    )
    _add_paragraph(
        page,
        COVER_BLURB,
        fontname=fonts["regular"],
        fontsize=12,
        x=PAGE_MARGIN,
        y=cursor + 24,
    )


def _draw_content_page(
    doc: pymupdf.Document,
    condensed: CondensedPage,
    output_index: int,
    fonts: dict[str, str],
) -> None:
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)

    cursor = _add_paragraph(
        page,
        f"Condensed Page {output_index}",
        fontname=fonts["bold"],
        fontsize=18,
        x=PAGE_MARGIN,
        y=PAGE_MARGIN,
        line_height=26,
    )
    # long summaries run past the bottom margin; there is no continuation page
    _add_paragraph(
        page,
        condensed.summary,
        fontname=fonts["regular"],
        fontsize=12,
        x=PAGE_MARGIN,
        y=cursor + 12,
        line_height=16,
    )

    page.insert_text(
        (PAGE_MARGIN, PAGE_HEIGHT - PAGE_MARGIN / 2),
        sanitize(
            f"Condensed edition page {output_index} • Sourced from original page {condensed.page_number}"
        ),
        fontname=fonts["italic"],
        fontsize=10,
        color=FOOTER_COLOR,
    )


def render_condensed_pdf(pages: Sequence[CondensedPage], metadata: RenderMetadata) -> bytes:
    """Build the condensed edition: a cover page, then one page per summary."""

    if not pages:
        raise EmptyInput()

    fonts = {
        "regular": REGULAR_FONT,
        "bold": _resolve_font(BOLD_FONT),
        "italic": _resolve_font(ITALIC_FONT),
    }

    with pymupdf.open() as doc:
        _draw_cover(doc, metadata, fonts)
        for output_index, condensed in enumerate(pages, start=1):
            _draw_content_page(doc, condensed, output_index, fonts)

        doc.set_metadata(
            {
                "title": sanitize(metadata.title or DEFAULT_TITLE),
                "author": sanitize(metadata.author or ""),
                "creator": "bookcondense",
            }
        )
        return doc.tobytes(garbage=3, deflate=True)
