"""Render retrieval results as the context block of a prompt."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..models import RetrievalResult

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_BUDGET = 12000

_RULE = "-" * 24


def format_block(position: int, result: RetrievalResult) -> str:
    if result.is_reference:
        header = f'REFERENCE {position}: "{result.document_name}"'
    else:
        header = f'DOCUMENT {position}: "{result.document_name}" (relevance: {result.relevance_score:.2f})'
    return f"{_RULE}\n{header}\n{_RULE}\n\n{result.content.strip()}"


class ContextFormatter:
    """Join result blocks without exceeding a character budget.

    Blocks are never truncated: one that does not fit is dropped whole and
    the next, possibly smaller, one is tried. The top-ranked block is always
    kept, even when it alone is over budget.
    """

    def __init__(self, char_budget: int = DEFAULT_CONTEXT_BUDGET) -> None:
        self.char_budget = char_budget

    def format(self, results: Sequence[RetrievalResult]) -> str:
        blocks: List[str] = []
        used = 0
        for position, result in enumerate(results, start=1):
            block = format_block(position, result)
            cost = len(block) + (2 if blocks else 0)
            if blocks and used + cost > self.char_budget:
                logger.debug("Dropping context block %d (%d chars) over budget", position, len(block))
                continue
            blocks.append(block)
            used += cost
        return "\n\n".join(blocks)
