"""Condense paginated PDF documents page by page into a new PDF edition."""
