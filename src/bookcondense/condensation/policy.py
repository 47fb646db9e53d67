"""Per-page condensation: word targets, prompt, and quote measurement."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
import re
from typing import Protocol

from bookcondense.condensation.config import DensitySettings
from bookcondense.condensation.trace import CondensationTrace, TraceObserver
from bookcondense.extraction.models import Page
from bookcondense.extraction.normalization import count_words

logger = logging.getLogger(__name__)

MIN_SUMMARY_WORDS = 120
MAX_SUMMARY_WORDS = 650
MIN_QUOTE_WORDS = 12
CONNECTIVE_PROSE_WORDS = 20

_SMART_QUOTE_RE = re.compile(r"“([^”]+)”")
_STRAIGHT_QUOTE_RE = re.compile(r'"([^"]+)"')


class CondensationBackend(Protocol):
    async def condense_text(self, *, prompt: str) -> str:
        ...


@dataclass(slots=True)
class EmptyCondensationResult(Exception):
    page_number: int

    def __str__(self) -> str:
        return f"Model returned empty response for page {self.page_number}"


@dataclass(slots=True)
class CondensationTimeout(Exception):
    page_number: int
    timeout_seconds: float

    def __str__(self) -> str:
        return f"Condensation of page {self.page_number} timed out after {self.timeout_seconds:g}s"


@dataclass(frozen=True, slots=True)
class ExtractedQuote:
    text: str
    original_page: int


@dataclass(frozen=True, slots=True)
class CondensedPage:
    page_number: int
    summary: str
    quotes: tuple[ExtractedQuote, ...]
    target_summary_words: int
    target_quote_words: int
    actual_summary_words: int
    actual_quoted_words: int


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def target_summary_words(word_count: int, summary_density: int) -> int:
    ratio = _clamp(summary_density, 5, 95) / 100
    return _clamp(_round_half_up(word_count * ratio), MIN_SUMMARY_WORDS, MAX_SUMMARY_WORDS)


def target_quote_words(summary_words: int, quote_density: int) -> int:
    ratio = _clamp(quote_density, 0, 100) / 100
    desired = _round_half_up(summary_words * ratio)
    ceiling = max(0, summary_words - CONNECTIVE_PROSE_WORDS)
    return _clamp(desired, MIN_QUOTE_WORDS if ratio > 0 else 0, ceiling)


def extract_quotes(text: str, original_page: int) -> list[ExtractedQuote]:
    """Collect quoted spans in order of first appearance, deduplicated by text."""

    matches: list[tuple[int, str]] = []
    for pattern in (_SMART_QUOTE_RE, _STRAIGHT_QUOTE_RE):
        matches.extend((match.start(), match.group(1)) for match in pattern.finditer(text))
    matches.sort(key=lambda item: item[0])

    seen: set[str] = set()
    quotes: list[ExtractedQuote] = []
    for _, raw in matches:
        quoted = raw.strip()
        if not quoted or quoted in seen:
            continue
        seen.add(quoted)
        quotes.append(ExtractedQuote(text=quoted, original_page=original_page))
    return quotes


def build_prompt(
    page: Page,
    settings: DensitySettings,
    *,
    summary_words: int,
    quote_words: int,
    title: str | None = None,
) -> str:
    sections = [
        "You are a meticulous literary editor. Follow every instruction below exactly "
        "and read all of them before writing.",
        f"Total length requirement: {summary_words} words. Count your words and revise "
        "until the passage meets this target.",
        f"Quoted word requirement: at least {quote_words} of those words must be copied "
        f"verbatim from the page, wrapped in quotation marks and attributed inline with "
        f"[p.{page.page_number}]. Add quotations until the quota is met.",
        "Blend quotations naturally into the prose but never paraphrase a quoted segment; "
        "copy it exactly as it appears in the source.",
        "Write polished, natural prose that keeps the narrative of the page. Do not invent facts.",
        "Check every requirement before answering and correct anything that is unmet.",
        f"Book title: {title}" if title else "Book title: (unspecified)",
        f"Original page number: {page.page_number}",
        f"Original word count: {page.word_count}",
        f"Summary density target: {settings.summary_density}% | "
        f"Quote density target: {settings.quote_density}%",
        f"Page text:\n{page.text}",
        "Produce ONLY the condensed passage. Do not explain your work.",
    ]
    return "\n\n".join(sections)


class CondensationPolicy:
    """Condense one page per call through the injected backend.

    Each call issues exactly one backend request. Targets are requests to the
    model; the ``actual_*`` counts on the result are measured from what came
    back.
    """

    def __init__(
        self,
        backend: CondensationBackend,
        *,
        title: str | None = None,
        observer: TraceObserver | None = None,
        request_timeout_seconds: float | None = None,
    ) -> None:
        if request_timeout_seconds is not None and request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        self._backend = backend
        self._title = title
        self._observer = observer
        self._timeout = request_timeout_seconds

    async def condense(self, page: Page, settings: DensitySettings) -> CondensedPage:
        summary_target = target_summary_words(page.word_count, settings.summary_density)
        quote_target = target_quote_words(summary_target, settings.quote_density)
        prompt = build_prompt(
            page,
            settings,
            summary_words=summary_target,
            quote_words=quote_target,
            title=self._title,
        )

        logger.debug("Requesting condensation of page %d", page.page_number)
        try:
            raw = await asyncio.wait_for(self._backend.condense_text(prompt=prompt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise CondensationTimeout(page.page_number, self._timeout or 0.0) from exc

        summary = (raw or "").strip()
        if not summary:
            raise EmptyCondensationResult(page.page_number)

        quotes = extract_quotes(summary, page.page_number)
        condensed = CondensedPage(
            page_number=page.page_number,
            summary=summary,
            quotes=tuple(quotes),
            target_summary_words=summary_target,
            target_quote_words=quote_target,
            actual_summary_words=count_words(summary),
            actual_quoted_words=sum(count_words(quote.text) for quote in quotes),
        )

        if self._observer is not None:
            self._observer.record(self._trace(page, settings, condensed, prompt))
        return condensed

    def _trace(
        self,
        page: Page,
        settings: DensitySettings,
        condensed: CondensedPage,
        prompt: str,
    ) -> CondensationTrace:
        steps = " | ".join(
            [
                f"{page.word_count} original words x {settings.summary_density}% = "
                f"{condensed.target_summary_words}",
                f"{condensed.target_summary_words} target summary words x "
                f"{settings.quote_density}% = {condensed.target_quote_words}",
            ]
        )
        return CondensationTrace(
            timestamp=datetime.now(timezone.utc).isoformat(),
            page_number=page.page_number,
            summary_density=settings.summary_density,
            quote_density=settings.quote_density,
            original_word_count=page.word_count,
            target_summary_words=condensed.target_summary_words,
            target_quote_words=condensed.target_quote_words,
            actual_summary_words=condensed.actual_summary_words,
            actual_quoted_words=condensed.actual_quoted_words,
            calculation_steps=steps,
            prompt=prompt,
            response=condensed.summary,
        )
