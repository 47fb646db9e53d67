"""PDF rendering for condensed editions."""

from .layout import WrappedLine, wrap_text
from .renderer import EmptyInput, RenderMetadata, render_condensed_pdf
from .sanitize import sanitize

__all__ = [
    "EmptyInput",
    "RenderMetadata",
    "WrappedLine",
    "render_condensed_pdf",
    "sanitize",
    "wrap_text",
]
