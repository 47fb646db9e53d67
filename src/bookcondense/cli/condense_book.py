"""CLI command condensing a local PDF into a new edition."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import json
import logging
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from bookcondense.condensation.config import (
    CondenserSettings,
    DensitySettings,
    SettingsValidationError,
    parse_density_settings,
    parse_page_selection,
)
from bookcondense.condensation.openrouter import OpenRouterCondenser
from bookcondense.condensation.policy import CondensationBackend, CondensationPolicy
from bookcondense.condensation.trace import FileTraceSink, LoggingTraceSink
from bookcondense.extraction.pdf_source import ExtractionFailed
from bookcondense.pipeline.events import ErrorEvent, MetaEvent, PageProgress, ResultEvent
from bookcondense.pipeline.orchestrator import CondensationPipeline, NoMatchingPages, prepare_document

logger = logging.getLogger(__name__)


async def condense_file(
    source_path: Path,
    output_path: Path,
    *,
    density: DensitySettings,
    settings: CondenserSettings,
    selection: Sequence[int] | None = None,
    backend: CondensationBackend | None = None,
) -> dict[str, object]:
    """Run the whole pipeline for one file and write the result to ``output_path``."""

    document = prepare_document(source_path.read_bytes(), selection=selection, filename=source_path.name)
    observer = FileTraceSink(settings.trace_file) if settings.trace_file else LoggingTraceSink()
    policy = CondensationPolicy(
        backend or OpenRouterCondenser(settings),
        title=document.title,
        observer=observer,
        request_timeout_seconds=settings.request_timeout_seconds,
    )
    pipeline = CondensationPipeline(policy, concurrency=settings.concurrency)

    payload: dict[str, object] = {"path": str(source_path), "pages": len(document.pages)}
    async for event in pipeline.stream(document.pages, density, title=document.title, author=document.author):
        if isinstance(event, MetaEvent):
            logger.info("Condensing %d page(s)", event.total_pages)
        elif isinstance(event, PageProgress):
            logger.info(
                "Processed %d/%d (page %d: %d words, %d quoted)",
                event.processed_pages,
                event.total_pages,
                event.page_number,
                event.actual_summary_words,
                event.actual_quoted_words,
            )
        elif isinstance(event, ResultEvent):
            output_path.write_bytes(event.document)
            payload["output"] = str(output_path)
        elif isinstance(event, ErrorEvent):
            payload["error"] = event.message
    return payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Condense a PDF page by page")
    parser.add_argument("--path", required=True, help="Source PDF file")
    parser.add_argument("--output", default="condensed-book.pdf", help="Where to write the condensed PDF")
    parser.add_argument("--summary-density", default="", help="Target summary length in percent (5-100)")
    parser.add_argument("--quote-density", default="", help="Target quoted share in percent (0-100)")
    parser.add_argument("--pages", default="", help="JSON array of page numbers to condense, e.g. [1,3]")
    parser.add_argument("--concurrency", type=int, default=None, help="Override CONDENSE_CONCURRENCY")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    try:
        density = parse_density_settings(
            {"summaryDensity": args.summary_density, "quoteDensity": args.quote_density}
        )
    except SettingsValidationError as exc:
        parser.error(str(exc))

    try:
        settings = CondenserSettings.from_env()
    except ValueError as exc:
        parser.error(str(exc))

    if args.concurrency is not None:
        if args.concurrency < 1:
            parser.error("--concurrency must be >= 1")
        settings = replace(settings, concurrency=args.concurrency)

    source_path = Path(args.path)
    try:
        payload = asyncio.run(
            condense_file(
                source_path,
                Path(args.output),
                density=density,
                settings=settings,
                selection=parse_page_selection(args.pages),
            )
        )
    except (OSError, ExtractionFailed, NoMatchingPages) as exc:
        payload = {"path": str(source_path), "error": str(exc)}

    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 1 if "error" in payload else 0


if __name__ == "__main__":
    raise SystemExit(main())
