"""CLI client that uploads a PDF to the HTTP service and follows the event stream."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import AsyncIterable, Sequence

import httpx

from bookcondense.pipeline.events import (
    ErrorEvent,
    EventOrderTracker,
    EventStreamDecoder,
    EventStreamError,
    PageProgress,
    ProgressEvent,
    ResultEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "http://127.0.0.1:8000"
DEFAULT_TIMEOUT_SECONDS = 600.0


@dataclass(slots=True)
class StreamOutcome:
    events: list[ProgressEvent]
    result: ResultEvent | None = None
    error: str | None = None


async def consume_event_stream(chunks: AsyncIterable[bytes]) -> StreamOutcome:
    """Decode a byte stream into events, checking their order as they arrive."""

    decoder = EventStreamDecoder()
    tracker = EventOrderTracker()
    outcome = StreamOutcome(events=[])

    async for chunk in chunks:
        for event in decoder.feed(chunk):
            tracker.observe(event)
            outcome.events.append(event)
            if isinstance(event, PageProgress):
                logger.info("Processed %d/%d pages", event.processed_pages, event.total_pages)
    decoder.close()

    terminal = tracker.terminal
    if terminal is None:
        raise EventStreamError("Event stream ended without a result or error")
    if isinstance(terminal, ResultEvent):
        outcome.result = terminal
    elif isinstance(terminal, ErrorEvent):
        outcome.error = terminal.message
    return outcome


async def request_condensation(
    client: httpx.AsyncClient,
    source_path: Path,
    *,
    summary_density: str = "",
    quote_density: str = "",
    selection: Sequence[int] | None = None,
) -> StreamOutcome:
    form = {"summaryDensity": summary_density, "quoteDensity": quote_density}
    if selection:
        form["selectedPages"] = json.dumps(list(selection))
    files = {"file": (source_path.name, source_path.read_bytes(), "application/pdf")}

    async with client.stream("POST", "/api/condense", data=form, files=files) as response:
        if response.status_code != 200:
            body = await response.aread()
            try:
                detail = json.loads(body).get("error", "Unknown error")
            except (json.JSONDecodeError, AttributeError):
                detail = body.decode("utf-8", errors="replace") or "Failed to condense PDF."
            return StreamOutcome(events=[], error=f"HTTP {response.status_code}: {detail}")

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" not in content_type:
            raise EventStreamError(f"Unexpected response format: {content_type!r}")
        return await consume_event_stream(response.aiter_bytes())


async def _run(args: argparse.Namespace) -> dict[str, object]:
    source_path = Path(args.path)
    selection = [int(part) for part in args.pages.split(",") if part.strip()] if args.pages else None

    async with httpx.AsyncClient(base_url=args.url, timeout=DEFAULT_TIMEOUT_SECONDS) as client:
        outcome = await request_condensation(
            client,
            source_path,
            summary_density=args.summary_density,
            quote_density=args.quote_density,
            selection=selection,
        )

    payload: dict[str, object] = {"path": str(source_path), "events": len(outcome.events)}
    if outcome.result is not None:
        output_path = Path(args.output or outcome.result.filename)
        output_path.write_bytes(outcome.result.document)
        payload["output"] = str(output_path)
    if outcome.error is not None:
        payload["error"] = outcome.error
    return payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Condense a PDF through a running bookcondense service")
    parser.add_argument("--url", default=DEFAULT_SERVICE_URL, help="Service base URL")
    parser.add_argument("--path", required=True, help="Source PDF file")
    parser.add_argument("--output", default="", help="Output path (defaults to the server filename)")
    parser.add_argument("--summary-density", default="", help="Target summary length in percent (5-100)")
    parser.add_argument("--quote-density", default="", help="Target quoted share in percent (0-100)")
    parser.add_argument("--pages", default="", help="Comma-separated page numbers, e.g. 1,3,4")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    try:
        payload = asyncio.run(_run(args))
    except (OSError, ValueError, httpx.HTTPError, EventStreamError) as exc:
        payload = {"path": args.path, "error": str(exc)}

    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 1 if "error" in payload else 0


if __name__ == "__main__":
    raise SystemExit(main())
