"""Rebuild page text from positioned fragments using their geometry."""

from __future__ import annotations

from typing import Iterable

from bookcondense.extraction.models import Page, PositionedFragment
from bookcondense.extraction.normalization import count_words, normalize_page_text

DEFAULT_MIN_CHARS = 14
LINE_DELTA_THRESHOLD = 1.0
SPACE_GAP_THRESHOLD = 5.0

# Marks that attach to the preceding word, so no space goes before them.
_CLOSING_MARKS = frozenset(".,;:!?'\"’”)]}«»")
# Marks that attach to the following word, so no space goes after them.
_OPENING_MARKS = frozenset("-–—({[<'\"“‘")
_HYPHENS = frozenset("-‐‑")


def _should_insert_space(previous_char: str, next_fragment: str) -> bool:
    if not previous_char:
        return False
    if previous_char.isspace() or previous_char in _OPENING_MARKS:
        return False

    # the fragment brings its own separator
    if not next_fragment or next_fragment[0].isspace():
        return False

    if next_fragment[0] in _CLOSING_MARKS:
        return False

    # hyphenated continuation across fragments
    return previous_char not in _HYPHENS


def assemble_text(fragments: Iterable[PositionedFragment]) -> str:
    """Return normalized page text for fragments in their traversal order.

    A vertical jump of more than one unit starts a new line; a horizontal gap
    of more than five units implies a space. Smaller positive gaps fall back
    to a punctuation heuristic, and touching or overlapping runs are joined
    as-is.
    """

    buffer = ""
    last_x: float | None = None
    last_y: float | None = None

    for fragment in fragments:
        if last_y is not None and abs(fragment.origin_y - last_y) > LINE_DELTA_THRESHOLD:
            buffer = buffer.rstrip() + "\n"
            last_x = None
        elif last_x is None or fragment.origin_x > last_x:
            if last_x is not None and fragment.origin_x - last_x > SPACE_GAP_THRESHOLD:
                if buffer and not buffer[-1].isspace() and not fragment.text[:1].isspace():
                    buffer += " "
            elif _should_insert_space(buffer[-1:], fragment.text):
                buffer += " "

        buffer += fragment.text
        last_y = fragment.origin_y
        last_x = fragment.origin_x + fragment.advance_width

        if fragment.is_line_end:
            buffer = buffer.rstrip() + "\n"
            last_x = None

    return normalize_page_text(buffer)


class FragmentAssembler:
    """Turn per-page fragment streams into numbered pages.

    One assembler covers one extraction pass: readable pages are numbered
    1, 2, 3... in the order they are assembled, and pages whose text is
    shorter than ``min_chars`` are dropped without consuming a number.
    """

    def __init__(self, *, min_chars: int = DEFAULT_MIN_CHARS) -> None:
        if min_chars < 0:
            raise ValueError("min_chars cannot be negative")
        self._min_chars = min_chars
        self._next_page_number = 1

    @property
    def assembled_count(self) -> int:
        return self._next_page_number - 1

    def assemble(self, fragments: Iterable[PositionedFragment]) -> Page | None:
        text = assemble_text(fragments)
        if len(text) < self._min_chars:
            return None

        page = Page(page_number=self._next_page_number, text=text, word_count=count_words(text))
        self._next_page_number += 1
        return page
