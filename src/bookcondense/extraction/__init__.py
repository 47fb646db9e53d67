"""Page text reconstruction from positioned PDF fragments."""

from .assembler import FragmentAssembler, assemble_text
from .models import ExtractedDocument, Page, PagePreview, PositionedFragment
from .pdf_source import ExtractionFailed, extract_document, extract_pages, inspect_document

__all__ = [
    "ExtractedDocument",
    "ExtractionFailed",
    "FragmentAssembler",
    "Page",
    "PagePreview",
    "PositionedFragment",
    "assemble_text",
    "extract_document",
    "extract_pages",
    "inspect_document",
]
