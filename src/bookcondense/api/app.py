"""HTTP surface: page inspection and streamed condensation."""

from __future__ import annotations

import argparse
import asyncio
from contextlib import aclosing
import logging
from typing import AsyncIterator

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
import uvicorn

from bookcondense.condensation.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    CondenserSettings,
    SettingsValidationError,
    parse_density_settings,
    parse_page_selection,
)
from bookcondense.condensation.openrouter import OpenRouterCondenser
from bookcondense.condensation.policy import CondensationBackend, CondensationPolicy
from bookcondense.condensation.trace import FileTraceSink, LoggingTraceSink, TraceObserver
from bookcondense.extraction.pdf_source import ExtractionFailed, inspect_document
from bookcondense.pipeline.events import encode_event
from bookcondense.pipeline.orchestrator import CondensationPipeline, NoMatchingPages, prepare_document

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 40 * 1024 * 1024
PDF_CONTENT_TYPE = "application/pdf"

UNREADABLE_PDF_MESSAGE = "We couldn't read text from that PDF. Try a text-based or OCR'd document."


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


async def _read_upload(file: UploadFile | None) -> bytes | JSONResponse:
    if file is None:
        return _error(400, "A PDF file upload is required under the `file` field.")
    if file.content_type != PDF_CONTENT_TYPE:
        return _error(400, "Uploaded file must be a PDF (application/pdf).")

    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        limit_mb = round(MAX_UPLOAD_BYTES / (1024 * 1024))
        return _error(413, f"Uploaded file is too large. Maximum supported size is {limit_mb}MB.")
    return data


def create_app(
    settings: CondenserSettings | None = None,
    *,
    backend: CondensationBackend | None = None,
    observer: TraceObserver | None = None,
) -> FastAPI:
    """Build the service; ``backend`` overrides the OpenRouter client."""

    if backend is None:
        settings = settings or CondenserSettings.from_env()
        backend = OpenRouterCondenser(settings)

    concurrency = settings.concurrency if settings else DEFAULT_CONCURRENCY
    timeout = settings.request_timeout_seconds if settings else DEFAULT_REQUEST_TIMEOUT_SECONDS
    if observer is None:
        observer = FileTraceSink(settings.trace_file) if settings and settings.trace_file else LoggingTraceSink()

    app = FastAPI(
        title="bookcondense",
        description="Condense PDF books page by page with streamed progress",
        version="0.1.0",
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "bookcondense"}

    @app.post("/api/pdf-metadata")
    async def pdf_metadata(file: UploadFile | None = File(None)):
        upload = await _read_upload(file)
        if isinstance(upload, JSONResponse):
            return upload

        try:
            previews = await asyncio.to_thread(inspect_document, upload)
        except ExtractionFailed:
            return _error(422, UNREADABLE_PDF_MESSAGE)
        except Exception as exc:
            logger.exception("Unexpected error while inspecting upload")
            return _error(500, "Failed to analyze the uploaded PDF.", message=str(exc))

        return {"pages": [preview.to_dict() for preview in previews]}

    @app.post("/api/condense")
    async def condense(
        file: UploadFile | None = File(None),
        summaryDensity: str | None = Form(None),
        quoteDensity: str | None = Form(None),
        selectedPages: str | None = Form(None),
    ):
        upload = await _read_upload(file)
        if isinstance(upload, JSONResponse):
            return upload

        try:
            density = parse_density_settings(
                {"summaryDensity": summaryDensity, "quoteDensity": quoteDensity}
            )
        except SettingsValidationError as exc:
            return _error(400, "Invalid density or metadata values.", details=exc.issues)

        try:
            document = await asyncio.to_thread(
                prepare_document,
                upload,
                selection=parse_page_selection(selectedPages),
                filename=file.filename if file is not None else None,
            )
        except ExtractionFailed:
            return _error(422, UNREADABLE_PDF_MESSAGE)
        except NoMatchingPages as exc:
            return _error(400, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while preparing upload")
            return _error(500, "Failed to condense the uploaded PDF.", message=str(exc))

        policy = CondensationPolicy(
            backend,
            title=document.title,
            observer=observer,
            request_timeout_seconds=timeout,
        )
        pipeline = CondensationPipeline(policy, concurrency=concurrency)
        logger.info("Condensing %d page(s) with concurrency %d", len(document.pages), concurrency)

        async def event_stream() -> AsyncIterator[bytes]:
            async with aclosing(
                pipeline.stream(document.pages, density, title=document.title, author=document.author)
            ) as events:
                async for event in events:
                    yield encode_event(event)

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
        )

    return app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the bookcondense HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
