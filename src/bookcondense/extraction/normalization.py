"""Whitespace helpers shared by page assembly and inspection."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_LINE_SPACE_RE = re.compile(r"\s+\n")


def collapse_whitespace(text: str) -> str:
    """Replace every whitespace run with a single space, boundaries included."""

    return _WHITESPACE_RE.sub(" ", text)


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return collapse_whitespace(text).strip()


def normalize_page_text(text: str) -> str:
    """Keep line breaks but drop whitespace that runs into them."""

    unified = text.replace("\r\n", "\n")
    return _TRAILING_LINE_SPACE_RE.sub("\n", unified).strip()


def count_words(text: str) -> int:
    return len(text.split())
