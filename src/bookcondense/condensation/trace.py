"""Observers that receive a trace of every condensed page."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_RULE = "=" * 60


@dataclass(frozen=True, slots=True)
class CondensationTrace:
    timestamp: str
    page_number: int
    summary_density: int
    quote_density: int
    original_word_count: int
    target_summary_words: int
    target_quote_words: int
    actual_summary_words: int
    actual_quoted_words: int
    calculation_steps: str
    prompt: str
    response: str


class TraceObserver(Protocol):
    def record(self, trace: CondensationTrace) -> None:
        """Receive one page trace; must not raise for ordinary I/O hiccups."""


def format_trace(trace: CondensationTrace) -> str:
    lines = [
        f"=== Condensation Trace :: Page {trace.page_number} :: {trace.timestamp} ===",
        f"Summary density: {trace.summary_density}% | Quote density: {trace.quote_density}%",
        f"Original words: {trace.original_word_count}",
        f"Target summary words: {trace.target_summary_words}",
        f"Target quoted words: {trace.target_quote_words}",
        f"Actual summary words: {trace.actual_summary_words}",
        f"Actual quoted words: {trace.actual_quoted_words}",
        f"Calculations: {trace.calculation_steps}",
        "",
        "--- Prompt ---",
        trace.prompt,
        "",
        "--- Response ---",
        trace.response,
        "",
        _RULE,
    ]
    return "\n".join(lines)


class LoggingTraceSink:
    """Emit traces through ``logging`` at DEBUG level."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def record(self, trace: CondensationTrace) -> None:
        self._logger.debug(
            "Condensed page %d: target %d/%d words, actual %d/%d words",
            trace.page_number,
            trace.target_summary_words,
            trace.target_quote_words,
            trace.actual_summary_words,
            trace.actual_quoted_words,
        )


class FileTraceSink:
    """Append formatted traces to a file, one block per page."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, trace: CondensationTrace) -> None:
        entry = format_trace(trace) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(entry)
        except OSError as exc:
            logger.warning("Failed to write condensation trace to %s: %s", self._path, exc)
