"""Utilities for ingesting documents stored as local files."""

from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Callable, Dict, List

import docx
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".csv", ".json", ".log", ".rst"}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _normalize(text: str) -> str:
    text = text.replace("\f", "\n").replace("\r\n", "\n")
    text = _CONTROL_CHARS.sub("", text)
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()


def read_text_file(path: Path) -> str:
    return _normalize(path.read_text(encoding="utf-8", errors="replace"))


def read_pdf(path: Path) -> str:
    """Extract the text layer of a PDF, one blank line between pages.

    Scanned PDFs without a text layer come back empty.
    """

    try:
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PyPdfError as exc:
        raise ValueError(f"Could not parse PDF {path.name}: {exc}") from exc
    text = _normalize("\n\n".join(page for page in pages if page.strip()))
    logger.info("Extracted %d characters from %d PDF pages in %s", len(text), len(pages), path.name)
    return text


def read_docx(path: Path) -> str:
    """Extract paragraphs and tables from a Word document.

    Headings are marked with ``#`` by level so the chunker keeps them next to
    their sections. Table rows become ``|``-separated lines.
    """

    try:
        document = docx.Document(str(path))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as exc:
        raise ValueError(f"Could not parse DOCX {path.name}: {exc}") from exc

    blocks: List[str] = []
    for paragraph in document.paragraphs:
        text = paragraph.text.strip()
        if not text:
            continue
        style = paragraph.style.name if paragraph.style is not None else ""
        if style.startswith("Heading"):
            level = style.replace("Heading", "").strip()
            depth = int(level) if level.isdigit() else 1
            text = f"{'#' * depth} {text}"
        blocks.append(text)

    for table in document.tables:
        rows = []
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                rows.append(" | ".join(cells))
        if rows:
            blocks.append("\n".join(rows))

    text = _normalize("\n\n".join(blocks))
    logger.info("Extracted %d characters from %s", len(text), path.name)
    return text


FILE_READERS: Dict[str, Callable[[Path], str]] = {
    **{suffix: read_text_file for suffix in TEXT_SUFFIXES},
    ".pdf": read_pdf,
    ".docx": read_docx,
}


def read_file_content(path: str | Path) -> str:
    """Load an uploaded file as a single document body.

    The reader is chosen by suffix; files without one are read as text.
    Markdown exports (Notion, Confluence and the like) are read as-is; the
    chunker's paragraph splitting already follows their blank-line structure.
    """

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Document file not found: {file_path}")
    suffix = file_path.suffix.lower()
    if not suffix:
        return read_text_file(file_path)
    reader = FILE_READERS.get(suffix)
    if reader is None:
        raise ValueError(f"Unsupported document file type: {file_path.suffix}")
    return reader(file_path)
