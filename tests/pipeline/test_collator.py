from __future__ import annotations

import random

import pytest

from bookcondense.condensation.policy import CondensedPage
from bookcondense.pipeline.collator import ResultCollator


def _condensed(number: int) -> CondensedPage:
    return CondensedPage(
        page_number=number,
        summary=f"Summary of page {number}",
        quotes=(),
        target_summary_words=120,
        target_quote_words=36,
        actual_summary_words=4,
        actual_quoted_words=0,
    )


def test_shuffled_arrivals_come_back_in_page_order() -> None:
    numbers = list(range(1, 51))
    random.Random(7).shuffle(numbers)

    collator = ResultCollator()
    for number in numbers:
        collator.add(_condensed(number))

    assert len(collator) == 50
    assert [page.page_number for page in collator.collated()] == list(range(1, 51))


def test_sparse_page_numbers_keep_relative_order() -> None:
    collator = ResultCollator()
    for number in (9, 2, 4):
        collator.add(_condensed(number))

    assert [page.page_number for page in collator.collated()] == [2, 4, 9]


def test_duplicate_page_is_rejected() -> None:
    collator = ResultCollator()
    collator.add(_condensed(3))

    with pytest.raises(ValueError, match="Page 3"):
        collator.add(_condensed(3))
