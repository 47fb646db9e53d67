"""Bounded concurrent condensation with streamed progress."""

from .collator import ResultCollator
from .events import (
    ErrorEvent,
    EventOrderTracker,
    EventStreamDecoder,
    EventStreamError,
    MetaEvent,
    PageProgress,
    ProgressEvent,
    ResultEvent,
    encode_event,
)
from .orchestrator import CondensationPipeline, NoMatchingPages, prepare_document, select_pages
from .scheduler import SchedulerTaskFailure, run_bounded

__all__ = [
    "CondensationPipeline",
    "ErrorEvent",
    "EventOrderTracker",
    "EventStreamDecoder",
    "EventStreamError",
    "MetaEvent",
    "NoMatchingPages",
    "PageProgress",
    "ProgressEvent",
    "ResultCollator",
    "ResultEvent",
    "SchedulerTaskFailure",
    "encode_event",
    "prepare_document",
    "run_bounded",
    "select_pages",
]
