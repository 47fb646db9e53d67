"""Data structures produced by page extraction."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PositionedFragment:
    """A run of text placed at a point on the page, before line reconstruction."""

    text: str
    origin_x: float
    origin_y: float
    advance_width: float
    is_line_end: bool = False


@dataclass(frozen=True, slots=True)
class Page:
    """Readable page text with its sequential number among readable pages."""

    page_number: int
    text: str
    word_count: int


@dataclass(frozen=True, slots=True)
class PagePreview:
    page_number: int
    word_count: int
    preview: str

    def to_dict(self) -> dict[str, int | str]:
        return {
            "pageNumber": self.page_number,
            "wordCount": self.word_count,
            "preview": self.preview,
        }


@dataclass(slots=True)
class ExtractedDocument:
    """Readable pages plus whatever metadata the source document carries."""

    pages: list[Page] = field(default_factory=list)
    title: str | None = None
    author: str | None = None
