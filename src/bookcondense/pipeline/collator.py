"""Restore page order for results that complete out of order."""

from __future__ import annotations

from bookcondense.condensation.policy import CondensedPage


class ResultCollator:
    """Buffer condensed pages as they arrive and hand them back by page number."""

    def __init__(self) -> None:
        self._pages: dict[int, CondensedPage] = {}

    def __len__(self) -> int:
        return len(self._pages)

    def add(self, page: CondensedPage) -> None:
        if page.page_number in self._pages:
            raise ValueError(f"Page {page.page_number} was already collated")
        self._pages[page.page_number] = page

    def collated(self) -> list[CondensedPage]:
        return [self._pages[number] for number in sorted(self._pages)]
