"""Compose extraction, bounded condensation, collation and rendering."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import AsyncIterator, Callable, Sequence

from bookcondense.condensation.config import DEFAULT_CONCURRENCY, DensitySettings
from bookcondense.condensation.policy import CondensationPolicy, CondensedPage
from bookcondense.extraction.models import ExtractedDocument, Page
from bookcondense.extraction.pdf_source import extract_document
from bookcondense.pipeline.collator import ResultCollator
from bookcondense.pipeline.events import (
    ErrorEvent,
    MetaEvent,
    PageProgress,
    ProgressEvent,
    ResultEvent,
)
from bookcondense.pipeline.scheduler import SchedulerTaskFailure, run_bounded
from bookcondense.rendering.renderer import RenderMetadata, render_condensed_pdf

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_FILENAME = "condensed-book.pdf"
FALLBACK_ERROR_MESSAGE = "Failed to condense PDF."

Renderer = Callable[[Sequence[CondensedPage], RenderMetadata], bytes]

_DONE = object()


@dataclass(slots=True)
class NoMatchingPages(Exception):
    selection: tuple[int, ...]

    def __str__(self) -> str:
        return "None of the selected pages contained readable text. Try choosing different pages."


def select_pages(pages: Sequence[Page], selection: Sequence[int] | None) -> list[Page]:
    """Keep pages whose number is in ``selection``; an empty selection keeps all."""

    if not selection:
        return list(pages)

    wanted = set(selection)
    selected = [page for page in pages if page.page_number in wanted]
    if not selected:
        raise NoMatchingPages(tuple(selection))
    return selected


def prepare_document(
    data: bytes,
    *,
    selection: Sequence[int] | None = None,
    filename: str | None = None,
) -> ExtractedDocument:
    """Extract and filter pages before any streaming starts.

    Raises ``ExtractionFailed`` or ``NoMatchingPages`` so callers can answer
    with a plain error instead of an event stream.
    """

    document = extract_document(data, filename=filename)
    document.pages = select_pages(document.pages, selection)
    return document


class CondensationPipeline:
    """Stream progress events while pages are condensed under a concurrency cap."""

    def __init__(
        self,
        policy: CondensationPolicy,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        renderer: Renderer = render_condensed_pdf,
        filename: str = DEFAULT_OUTPUT_FILENAME,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._policy = policy
        self._concurrency = concurrency
        self._renderer = renderer
        self._filename = filename

    async def stream(
        self,
        pages: Sequence[Page],
        settings: DensitySettings,
        *,
        title: str | None = None,
        author: str | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield ``meta``, one ``progress`` per page, then ``result`` or ``error``.

        Closing the generator early cancels outstanding requests; nothing is
        rendered unless every page was condensed.
        """

        total = len(pages)
        yield MetaEvent(total_pages=total)

        collator = ResultCollator()
        updates: asyncio.Queue[object] = asyncio.Queue()

        def on_progress(page: CondensedPage, completed: int) -> None:
            collator.add(page)
            updates.put_nowait(PageProgress.from_page(page, processed_pages=completed, total_pages=total))

        async def drive() -> None:
            try:
                await run_bounded(
                    pages,
                    lambda page: self._policy.condense(page, settings),
                    concurrency=self._concurrency,
                    on_progress=on_progress,
                )
            finally:
                updates.put_nowait(_DONE)

        runner = asyncio.ensure_future(drive())
        try:
            while True:
                update = await updates.get()
                if update is _DONE:
                    break
                yield update

            await runner
            metadata = RenderMetadata(
                summary_density=settings.summary_density,
                quote_density=settings.quote_density,
                title=title,
                author=author,
            )
            document = self._renderer(collator.collated(), metadata)
        except SchedulerTaskFailure as failure:
            logger.error("Condensation aborted on page task %d: %s", failure.index, failure.cause)
            yield ErrorEvent(message=str(failure.cause) or FALLBACK_ERROR_MESSAGE)
            return
        except Exception as exc:
            logger.exception("Unexpected error while condensing document")
            yield ErrorEvent(message=str(exc) or FALLBACK_ERROR_MESSAGE)
            return
        finally:
            if not runner.done():
                runner.cancel()
                await asyncio.gather(runner, return_exceptions=True)

        logger.info("Condensed %d page(s) into %s", total, self._filename)
        yield ResultEvent(filename=self._filename, document=document)
