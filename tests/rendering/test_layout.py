from __future__ import annotations

from bookcondense.rendering.layout import WrappedLine, wrap_text


def _measure(text: str) -> float:
    return len(text) * 10.0


def test_words_wrap_greedily_and_move_down_the_page() -> None:
    lines = wrap_text("one two three four five", _measure, 100.0, 72.0, 100.0, 16.0)

    assert lines == [
        WrappedLine(text="one two", x=72.0, y=100.0),
        WrappedLine(text="three four", x=72.0, y=116.0),
        WrappedLine(text="five", x=72.0, y=132.0),
    ]


def test_every_line_fits_the_width() -> None:
    text = "The quick brown fox jumps over the lazy dog " * 12

    lines = wrap_text(text, _measure, 180.0, 0.0, 0.0, 12.0)

    assert all(_measure(line.text) <= 180.0 for line in lines)
    assert " ".join(line.text for line in lines) == " ".join(text.split())


def test_oversized_word_is_hard_broken_and_ends_its_line() -> None:
    lines = wrap_text("ab abcdefghijkl cd", _measure, 50.0, 0.0, 0.0, 10.0)

    assert [line.text for line in lines] == ["ab", "abcde", "fghij", "kl", "cd"]


def test_single_character_wider_than_the_line_still_progresses() -> None:
    lines = wrap_text("xyz", _measure, 5.0, 0.0, 0.0, 10.0)

    assert [line.text for line in lines] == ["x", "y", "z"]


def test_text_is_sanitized_and_whitespace_collapsed() -> None:
    lines = wrap_text("  “Hi”\n\tthere…  ", _measure, 500.0, 0.0, 0.0, 10.0)

    assert [line.text for line in lines] == ['"Hi" there...']


def test_blank_text_has_no_lines() -> None:
    assert wrap_text(" \n ", _measure, 100.0, 0.0, 0.0, 10.0) == []
