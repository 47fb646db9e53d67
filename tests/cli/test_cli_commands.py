from __future__ import annotations

import json
from pathlib import Path

import httpx
import pymupdf
import pytest

from bookcondense.api.app import create_app
from bookcondense.cli import condense_book, inspect_pages
from bookcondense.cli.stream_client import consume_event_stream, request_condensation
from bookcondense.condensation.config import CondenserSettings, DensitySettings
from bookcondense.pipeline.events import (
    ErrorEvent,
    EventStreamError,
    MetaEvent,
    PageProgress,
    ResultEvent,
    encode_event,
)


class _FakeBackend:
    def __init__(self, reply: str = 'Condensed with "a kept phrase" intact.') -> None:
        self.reply = reply
        self.calls = 0

    async def condense_text(self, *, prompt: str) -> str:
        self.calls += 1
        return self.reply


class _NullObserver:
    def record(self, trace: object) -> None:
        return None


def _write_pdf(path: Path, page_count: int = 3) -> Path:
    doc = pymupdf.open()
    for number in range(1, page_count + 1):
        doc.new_page().insert_text((72, 72), f"Readable text on source page {number}.")
    doc.save(str(path))
    doc.close()
    return path


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _progress(processed: int) -> PageProgress:
    return PageProgress(
        processed_pages=processed,
        total_pages=2,
        page_number=processed,
        target_summary_words=120,
        target_quote_words=36,
        actual_summary_words=110,
        actual_quoted_words=30,
    )


def test_inspect_pages_prints_previews(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_pdf(tmp_path / "book.pdf", page_count=2)

    exit_code = inspect_pages.main(["--path", str(source)])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["path"] == str(source)
    assert [page["pageNumber"] for page in payload["pages"]] == [1, 2]


def test_inspect_pages_reports_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = inspect_pages.main(["--path", str(tmp_path / "missing.pdf")])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert "error" in payload


@pytest.mark.asyncio
async def test_condense_file_writes_output(tmp_path: Path) -> None:
    source = _write_pdf(tmp_path / "book.pdf")
    output = tmp_path / "out" / "condensed.pdf"
    output.parent.mkdir()
    backend = _FakeBackend()

    payload = await condense_book.condense_file(
        source,
        output,
        density=DensitySettings(50, 30),
        settings=CondenserSettings(api_key="sk-or-v1-test", concurrency=2),
        selection=[1, 3],
        backend=backend,
    )

    assert payload == {"path": str(source), "pages": 2, "output": str(output)}
    assert backend.calls == 2
    with pymupdf.open(str(output)) as doc:
        assert doc.page_count == 3


@pytest.mark.asyncio
async def test_condense_file_reports_stream_error(tmp_path: Path) -> None:
    source = _write_pdf(tmp_path / "book.pdf", page_count=1)
    output = tmp_path / "condensed.pdf"

    payload = await condense_book.condense_file(
        source,
        output,
        density=DensitySettings(),
        settings=CondenserSettings(api_key="sk-or-v1-test"),
        backend=_FakeBackend(reply=""),
    )

    assert payload["error"] == "Model returned empty response for page 1"
    assert not output.exists()


def test_condense_main_requires_api_key(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    source = _write_pdf(tmp_path / "book.pdf")

    with pytest.raises(SystemExit) as excinfo:
        condense_book.main(["--path", str(source)])

    assert excinfo.value.code == 2
    assert "OPENROUTER_API_KEY" in capsys.readouterr().err


def test_condense_main_rejects_bad_density(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        condense_book.main(["--path", str(tmp_path / "book.pdf"), "--summary-density", "250"])

    assert "summaryDensity must be between 5 and 100" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_consume_event_stream_collects_result_across_chunks() -> None:
    body = b"".join(
        encode_event(event)
        for event in (
            MetaEvent(total_pages=2),
            _progress(1),
            _progress(2),
            ResultEvent(filename="condensed-book.pdf", document=b"%PDF-bytes"),
        )
    )

    outcome = await consume_event_stream(_chunks(body[:10], body[10:57], body[57:]))

    assert len(outcome.events) == 4
    assert outcome.result == ResultEvent(filename="condensed-book.pdf", document=b"%PDF-bytes")
    assert outcome.error is None


@pytest.mark.asyncio
async def test_consume_event_stream_surfaces_error_event() -> None:
    body = encode_event(MetaEvent(total_pages=2)) + encode_event(ErrorEvent(message="Upstream failed"))

    outcome = await consume_event_stream(_chunks(body))

    assert outcome.result is None
    assert outcome.error == "Upstream failed"


@pytest.mark.asyncio
async def test_consume_event_stream_rejects_stream_without_terminal_event() -> None:
    body = encode_event(MetaEvent(total_pages=2)) + encode_event(_progress(1))

    with pytest.raises(EventStreamError, match="without a result or error"):
        await consume_event_stream(_chunks(body))


@pytest.mark.asyncio
async def test_request_condensation_against_the_app(tmp_path: Path) -> None:
    source = _write_pdf(tmp_path / "book.pdf", page_count=3)
    app = create_app(backend=_FakeBackend(), observer=_NullObserver())

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        outcome = await request_condensation(client, source, summary_density="30", selection=[2])

    assert outcome.error is None
    assert outcome.result is not None
    assert [type(event) for event in outcome.events] == [MetaEvent, PageProgress, ResultEvent]


@pytest.mark.asyncio
async def test_request_condensation_reports_http_errors(tmp_path: Path) -> None:
    source = _write_pdf(tmp_path / "book.pdf", page_count=1)
    app = create_app(backend=_FakeBackend(), observer=_NullObserver())

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        outcome = await request_condensation(client, source, quote_density="-5")

    assert outcome.result is None
    assert outcome.error == "HTTP 400: Invalid density or metadata values."
