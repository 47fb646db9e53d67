"""Greedy word wrapping against a width measurement function."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from bookcondense.rendering.sanitize import sanitize

Measure = Callable[[str], float]


@dataclass(frozen=True, slots=True)
class WrappedLine:
    text: str
    x: float
    y: float


def _hard_break(word: str, measure: Measure, max_width: float) -> list[str]:
    chunks: list[str] = []
    chunk = ""
    for char in word:
        candidate = chunk + char
        if measure(candidate) <= max_width or not chunk:
            chunk = candidate
        else:
            chunks.append(chunk)
            chunk = char
    if chunk:
        chunks.append(chunk)
    return chunks


def wrap_text(
    text: str,
    measure: Measure,
    max_width: float,
    start_x: float,
    start_y: float,
    line_height: float,
) -> list[WrappedLine]:
    """Place sanitized words on lines no wider than ``max_width``.

    Lines move down the page by ``line_height`` starting at ``start_y``. A word
    wider than a full line is split character by character, and its last
    piece closes the line it sits on.
    """

    rows: list[str] = []
    current = ""

    for word in sanitize(text).split():
        candidate = f"{current} {word}" if current else word
        if measure(candidate) <= max_width:
            current = candidate
            continue

        if current:
            rows.append(current)
            current = ""

        if measure(word) > max_width:
            rows.extend(_hard_break(word, measure, max_width))
        else:
            current = word

    if current:
        rows.append(current)

    return [
        WrappedLine(text=row, x=start_x, y=start_y + index * line_height)
        for index, row in enumerate(rows)
    ]
