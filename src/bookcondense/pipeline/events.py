"""Progress events and their ``text/event-stream`` wire encoding.

The producer side encodes events with ``encode_event``; the consumer side
feeds raw bytes into ``EventStreamDecoder``, a small state machine that yields
the same typed events back.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
import json
from typing import Any, ClassVar, Union

from bookcondense.condensation.policy import CondensedPage


@dataclass(slots=True)
class EventStreamError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class MetaEvent:
    name: ClassVar[str] = "meta"

    total_pages: int

    def to_payload(self) -> dict[str, Any]:
        return {"totalPages": self.total_pages}


@dataclass(frozen=True, slots=True)
class PageProgress:
    name: ClassVar[str] = "progress"

    processed_pages: int
    total_pages: int
    page_number: int
    target_summary_words: int
    target_quote_words: int
    actual_summary_words: int
    actual_quoted_words: int

    @classmethod
    def from_page(cls, page: CondensedPage, *, processed_pages: int, total_pages: int) -> "PageProgress":
        return cls(
            processed_pages=processed_pages,
            total_pages=total_pages,
            page_number=page.page_number,
            target_summary_words=page.target_summary_words,
            target_quote_words=page.target_quote_words,
            actual_summary_words=page.actual_summary_words,
            actual_quoted_words=page.actual_quoted_words,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "processedPages": self.processed_pages,
            "totalPages": self.total_pages,
            "pageNumber": self.page_number,
            "targetSummaryWords": self.target_summary_words,
            "targetQuoteWords": self.target_quote_words,
            "actualSummaryWords": self.actual_summary_words,
            "actualQuotedWords": self.actual_quoted_words,
        }


@dataclass(frozen=True, slots=True)
class ResultEvent:
    name: ClassVar[str] = "result"

    filename: str
    document: bytes

    def to_payload(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "base64Pdf": base64.b64encode(self.document).decode("ascii"),
        }


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    name: ClassVar[str] = "error"

    message: str

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message}


ProgressEvent = Union[MetaEvent, PageProgress, ResultEvent, ErrorEvent]


def encode_event(event: ProgressEvent) -> bytes:
    payload = json.dumps(event.to_payload(), ensure_ascii=False)
    return f"event: {event.name}\ndata: {payload}\n\n".encode("utf-8")


def _require(payload: dict[str, Any], key: str, kind: type) -> Any:
    value = payload.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise EventStreamError(f"Event payload field {key!r} is missing or invalid")
    return value


def decode_event(name: str, data: str) -> ProgressEvent:
    """Build a typed event from an event name and its JSON data text."""

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise EventStreamError(f"Malformed JSON in {name!r} event: {exc}") from exc
    if not isinstance(payload, dict):
        raise EventStreamError(f"Event {name!r} payload is not an object")

    if name == MetaEvent.name:
        return MetaEvent(total_pages=_require(payload, "totalPages", int))
    if name == PageProgress.name:
        return PageProgress(
            processed_pages=_require(payload, "processedPages", int),
            total_pages=_require(payload, "totalPages", int),
            page_number=_require(payload, "pageNumber", int),
            target_summary_words=_require(payload, "targetSummaryWords", int),
            target_quote_words=_require(payload, "targetQuoteWords", int),
            actual_summary_words=_require(payload, "actualSummaryWords", int),
            actual_quoted_words=_require(payload, "actualQuotedWords", int),
        )
    if name == ResultEvent.name:
        encoded = _require(payload, "base64Pdf", str)
        try:
            document = base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise EventStreamError(f"Result event carries invalid base64: {exc}") from exc
        return ResultEvent(filename=_require(payload, "filename", str), document=document)
    if name == ErrorEvent.name:
        return ErrorEvent(message=_require(payload, "message", str))
    raise EventStreamError(f"Unknown event name: {name!r}")


class DecoderState(Enum):
    AWAITING_HEADER = "awaiting_header"
    AWAITING_DATA = "awaiting_data"
    EVENT_COMPLETE = "event_complete"


class EventStreamDecoder:
    """Incremental decoder for ``event:``/``data:`` records split across chunks."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        # bytes before this offset are known to hold no newline
        self._scanned = 0
        self._state = DecoderState.AWAITING_HEADER
        self._name: str | None = None
        self._data_lines: list[str] = []

    @property
    def state(self) -> DecoderState:
        return self._state

    def feed(self, chunk: bytes) -> list[ProgressEvent]:
        self._buffer.extend(chunk)
        events: list[ProgressEvent] = []

        start = 0
        end = self._buffer.find(b"\n", self._scanned)
        while end >= 0:
            line = bytes(self._buffer[start:end]).rstrip(b"\r").decode("utf-8")
            start = end + 1
            self._consume_line(line)
            if self._state is DecoderState.EVENT_COMPLETE:
                events.append(self._emit())
            end = self._buffer.find(b"\n", start)

        del self._buffer[:start]
        self._scanned = len(self._buffer)
        return events

    def close(self) -> None:
        """Fail if the stream stopped in the middle of an event."""

        if self._buffer.strip() or self._state is not DecoderState.AWAITING_HEADER:
            raise EventStreamError("Event stream ended mid-event")

    def _consume_line(self, line: str) -> None:
        if line.startswith(":"):
            return

        if self._state is DecoderState.AWAITING_HEADER:
            if not line:
                return
            field, value = self._split_field(line)
            if field != "event":
                raise EventStreamError(f"Expected 'event:' line, got {line!r}")
            self._name = value
            self._data_lines = []
            self._state = DecoderState.AWAITING_DATA
            return

        if self._state is DecoderState.AWAITING_DATA:
            if not line:
                if not self._data_lines:
                    raise EventStreamError(f"Event {self._name!r} has no data")
                self._state = DecoderState.EVENT_COMPLETE
                return
            field, value = self._split_field(line)
            if field != "data":
                raise EventStreamError(f"Expected 'data:' line, got {line!r}")
            self._data_lines.append(value)

    def _emit(self) -> ProgressEvent:
        assert self._name is not None
        event = decode_event(self._name, "\n".join(self._data_lines))
        self._name = None
        self._data_lines = []
        self._state = DecoderState.AWAITING_HEADER
        return event

    @staticmethod
    def _split_field(line: str) -> tuple[str, str]:
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        return field, value


class EventOrderTracker:
    """Check that a stream is one meta, rising progress, then one terminal event."""

    def __init__(self) -> None:
        self._seen_meta = False
        self._last_processed = 0
        self._terminal: ProgressEvent | None = None

    @property
    def terminal(self) -> ProgressEvent | None:
        return self._terminal

    def observe(self, event: ProgressEvent) -> None:
        if self._terminal is not None:
            raise EventStreamError(f"Received {event.name!r} after the terminal event")

        if isinstance(event, MetaEvent):
            if self._seen_meta:
                raise EventStreamError("Received a second 'meta' event")
            self._seen_meta = True
            return

        if not self._seen_meta:
            raise EventStreamError(f"Received {event.name!r} before 'meta'")

        if isinstance(event, PageProgress):
            if event.processed_pages != self._last_processed + 1:
                raise EventStreamError(
                    f"Progress jumped from {self._last_processed} to {event.processed_pages}"
                )
            self._last_processed = event.processed_pages
            return

        self._terminal = event
