"""Printable HTML rendering of invoices and other commercial documents."""

from .renderer import DocumentNotFoundError, load_document, render_document

__all__ = [
    "DocumentNotFoundError",
    "load_document",
    "render_document",
]
