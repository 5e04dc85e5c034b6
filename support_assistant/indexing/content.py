"""Resolve the text body of a document before chunking."""

from __future__ import annotations

import asyncio
import logging

import requests

from ..errors import ContentUnavailable
from ..ingestion.files import read_file_content
from ..ingestion.web import fetch_website_text
from ..models import Document, SourceType

logger = logging.getLogger(__name__)


async def resolve_content(document: Document, *, max_pages: int = 10) -> str:
    """Return the text to index for ``document``.

    Inline ``raw_content`` wins. Otherwise ``file`` documents are read from
    ``source_ref`` and ``website`` documents are crawled from it, both in a
    worker thread. Raises ``ContentUnavailable`` when nothing usable is found.
    """

    if document.raw_content and document.raw_content.strip():
        return document.raw_content

    if not document.source_ref:
        raise ContentUnavailable(
            "Document has no content and no source to load it from",
            {"document_id": document.id},
        )

    try:
        if document.source_type == SourceType.FILE:
            text = await asyncio.to_thread(read_file_content, document.source_ref)
        elif document.source_type == SourceType.WEBSITE:
            text = await asyncio.to_thread(
                fetch_website_text, document.source_ref, max_pages=max_pages
            )
        else:
            text = ""
    except (OSError, ValueError, requests.RequestException) as exc:
        raise ContentUnavailable(
            f"Could not load content from {document.source_ref}: {exc}",
            {"document_id": document.id, "source_ref": document.source_ref},
        ) from exc

    if not text.strip():
        raise ContentUnavailable(
            f"No text could be extracted from {document.source_ref}",
            {"document_id": document.id, "source_ref": document.source_ref},
        )
    logger.debug("Resolved %d characters for document %s", len(text), document.id)
    return text
