from __future__ import annotations

import asyncio
from typing import Sequence

import pymupdf
import pytest

from bookcondense.condensation.config import DensitySettings
from bookcondense.condensation.policy import CondensationPolicy, CondensedPage
from bookcondense.extraction.models import Page
from bookcondense.pipeline.events import ErrorEvent, EventOrderTracker, MetaEvent, PageProgress, ResultEvent
from bookcondense.pipeline.orchestrator import (
    CondensationPipeline,
    NoMatchingPages,
    prepare_document,
    select_pages,
)
from bookcondense.rendering.renderer import RenderMetadata


class _ScriptedBackend:
    """Answer each prompt after a per-page delay; ``None`` answers come back empty."""

    def __init__(self, delays: dict[int, float] | None = None, empty_pages: set[int] | None = None) -> None:
        self.delays = delays or {}
        self.empty_pages = empty_pages or set()
        self.calls: list[int] = []
        self.cancelled: list[int] = []

    async def condense_text(self, *, prompt: str) -> str:
        number = int(prompt.split("Original page number: ", 1)[1].split("\n", 1)[0])
        self.calls.append(number)
        try:
            await asyncio.sleep(self.delays.get(number, 0.0))
        except asyncio.CancelledError:
            self.cancelled.append(number)
            raise
        if number in self.empty_pages:
            return ""
        return f'Condensed page {number} keeps "a short line" verbatim.'


class _RecordingRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[list[CondensedPage], RenderMetadata]] = []

    def __call__(self, pages: Sequence[CondensedPage], metadata: RenderMetadata) -> bytes:
        self.calls.append((list(pages), metadata))
        return b"%PDF-rendered"


def _pages(count: int) -> list[Page]:
    return [
        Page(page_number=number, text=f"Original text of page {number} with several words.", word_count=8)
        for number in range(1, count + 1)
    ]


def _four_page_pdf() -> bytes:
    doc = pymupdf.open()
    for number in range(1, 5):
        doc.new_page().insert_text((72, 72), f"Readable text on source page {number}.")
    data = doc.tobytes()
    doc.close()
    return data


async def _collect(stream) -> list:
    return [event async for event in stream]


def test_prepare_document_keeps_only_selected_pages() -> None:
    document = prepare_document(_four_page_pdf(), selection=[2, 4])

    assert [page.page_number for page in document.pages] == [2, 4]
    assert document.pages[0].text == "Readable text on source page 2."


def test_prepare_document_without_selection_keeps_everything() -> None:
    assert len(prepare_document(_four_page_pdf(), selection=[]).pages) == 4
    assert len(prepare_document(_four_page_pdf()).pages) == 4


def test_selection_without_matches_is_rejected() -> None:
    with pytest.raises(NoMatchingPages, match="None of the selected pages"):
        prepare_document(_four_page_pdf(), selection=[99])

    with pytest.raises(NoMatchingPages):
        select_pages(_pages(3), [0, 7])


@pytest.mark.asyncio
async def test_stream_emits_meta_progress_then_result_in_page_order() -> None:
    backend = _ScriptedBackend(delays={1: 0.04, 2: 0.0, 3: 0.02})
    renderer = _RecordingRenderer()
    pipeline = CondensationPipeline(CondensationPolicy(backend), concurrency=3, renderer=renderer)

    events = await _collect(
        pipeline.stream(_pages(3), DensitySettings(50, 20), title="Sea Stories", author="A. Writer")
    )

    tracker = EventOrderTracker()
    for event in events:
        tracker.observe(event)

    assert events[0] == MetaEvent(total_pages=3)
    progress = [event for event in events if isinstance(event, PageProgress)]
    assert [event.processed_pages for event in progress] == [1, 2, 3]
    assert [event.page_number for event in progress] == [2, 3, 1]
    assert all(event.total_pages == 3 for event in progress)
    assert events[-1] == ResultEvent(filename="condensed-book.pdf", document=b"%PDF-rendered")

    rendered_pages, metadata = renderer.calls[0]
    assert [page.page_number for page in rendered_pages] == [1, 2, 3]
    assert metadata == RenderMetadata(summary_density=50, quote_density=20, title="Sea Stories", author="A. Writer")


@pytest.mark.asyncio
async def test_single_page_stream_has_three_events() -> None:
    pipeline = CondensationPipeline(CondensationPolicy(_ScriptedBackend()), renderer=_RecordingRenderer())

    events = await _collect(pipeline.stream(_pages(1), DensitySettings()))

    assert [type(event) for event in events] == [MetaEvent, PageProgress, ResultEvent]


@pytest.mark.asyncio
async def test_empty_model_answer_ends_stream_with_error_and_no_render() -> None:
    backend = _ScriptedBackend(delays={1: 0.0, 2: 0.01, 3: 0.5}, empty_pages={2})
    renderer = _RecordingRenderer()
    pipeline = CondensationPipeline(CondensationPolicy(backend), concurrency=3, renderer=renderer)

    events = await _collect(pipeline.stream(_pages(3), DensitySettings()))

    assert events[-1] == ErrorEvent(message="Model returned empty response for page 2")
    assert not any(isinstance(event, ResultEvent) for event in events)
    assert renderer.calls == []
    assert backend.cancelled == [3]


@pytest.mark.asyncio
async def test_renderer_failure_becomes_error_event() -> None:
    def broken_renderer(pages: Sequence[CondensedPage], metadata: RenderMetadata) -> bytes:
        raise RuntimeError("font table exploded")

    pipeline = CondensationPipeline(CondensationPolicy(_ScriptedBackend()), renderer=broken_renderer)

    events = await _collect(pipeline.stream(_pages(2), DensitySettings()))

    assert events[-1] == ErrorEvent(message="font table exploded")


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_outstanding_requests() -> None:
    backend = _ScriptedBackend(delays={1: 0.0, 2: 1.0, 3: 1.0})
    renderer = _RecordingRenderer()
    pipeline = CondensationPipeline(CondensationPolicy(backend), concurrency=3, renderer=renderer)

    stream = pipeline.stream(_pages(3), DensitySettings())
    assert isinstance(await stream.__anext__(), MetaEvent)
    assert isinstance(await stream.__anext__(), PageProgress)
    await stream.aclose()

    assert sorted(backend.cancelled) == [2, 3]
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_backend_is_called_once_per_page() -> None:
    backend = _ScriptedBackend()
    pipeline = CondensationPipeline(CondensationPolicy(backend), concurrency=2, renderer=_RecordingRenderer())

    await _collect(pipeline.stream(_pages(5), DensitySettings()))

    assert sorted(backend.calls) == [1, 2, 3, 4, 5]


def test_pipeline_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError):
        CondensationPipeline(CondensationPolicy(_ScriptedBackend()), concurrency=0)
