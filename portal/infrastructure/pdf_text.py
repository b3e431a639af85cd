"""PDF text extraction hooks.

The statement pipeline only needs the plain text of a PDF.  The default
source reads the embedded text layer with pypdf; scanned statements without
a text layer simply produce an empty string, which the profit rules treat as
"nothing detected".  Tests install a deterministic source through
``configure_pdf_text_source``.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)


class PdfTextSource(Protocol):
    """Contract for PDF text providers."""

    def extract_text(self, path: Path) -> str:
        """Return the text of every page of ``path`` joined by newlines."""


class PyPdfTextSource:
    def extract_text(self, path: Path) -> str:
        if not path.exists():
            raise FileNotFoundError(f"PDF no encontrado: {path.name}")
        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except PdfReadError as exc:
            logger.warning("Could not read PDF %s: %s", path.name, exc)
            return ""
        return "\n".join(pages)


_source: PdfTextSource = PyPdfTextSource()


def configure_pdf_text_source(source: PdfTextSource) -> None:
    """Install the text source used by the statement pipeline."""

    global _source
    _source = source


def get_pdf_text_source() -> PdfTextSource:
    return _source
