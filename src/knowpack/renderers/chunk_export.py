"""Retrieval-ready export of flattened chunk records (JSON Lines)."""

from __future__ import annotations

import json
import logging
from typing import Any

from knowpack.models import Chunk
from knowpack.renderers.base import Artifact, RenderContext
from knowpack.utils.text import pack_blocks, split_blocks
from knowpack.utils.tokens import CHARS_PER_TOKEN, estimate_tokens

logger = logging.getLogger(__name__)

EXPORT_PATH = "export/chunks.jsonl"


def piece_prefix(title: str, label: str, ceiling: int) -> str:
    """Heading for a split piece, kept within a quarter of the ceiling.

    Long titles are shortened with "..."; when even the section label does
    not fit, pieces get no heading (``parent_id`` still names the chunk).
    """
    room = (ceiling // 4) * CHARS_PER_TOKEN
    suffix = f" ({label})\n\n"
    if len(title) + len(suffix) <= room:
        return title + suffix
    keep = room - len(suffix) - 3
    if keep > 0:
        return title[:keep].rstrip() + "..." + suffix
    return ""


class ChunkExportRenderer:
    """Emit one record per chunk, split into siblings when over the ceiling.

    Each record carries flattened prose (summary, body and structured
    fields) plus metadata. A chunk whose text exceeds its type's token
    ceiling is split along its sections (overview, wrong, right,
    signature, ...) and then along block boundaries. Siblings share
    ``parent_id``; text is never truncated.
    """

    name = "export"

    def render(self, context: RenderContext) -> list[Artifact]:
        lines = []
        split_count = 0
        for chunk in context.chunks:
            records = self.records_for(chunk, context)
            if len(records) > 1:
                split_count += 1
            lines.extend(json.dumps(r, sort_keys=True, ensure_ascii=False) for r in records)

        logger.info(
            f"Chunk export: {len(lines)} records from {len(context.chunks)} chunks "
            f"({split_count} split)"
        )
        return [Artifact.text(EXPORT_PATH, "".join(f"{line}\n" for line in lines))]

    def records_for(self, chunk: Chunk, context: RenderContext) -> list[dict[str, Any]]:
        """Build the export records for one chunk.

        Args:
            chunk: Validated chunk
            context: Render context (for ceilings and resolved references)

        Returns:
            One record, or several sibling records sharing ``parent_id``
        """
        ceiling = context.config.export_ceiling(chunk.type)
        metadata = self._metadata(chunk, context)

        full_text = chunk.flat_text()
        if estimate_tokens(full_text) <= ceiling:
            return [self._record(chunk.id, chunk.id, 1, 1, "full", full_text, metadata)]

        pieces: list[tuple[str, str]] = []
        for label, text in chunk.sections():
            prefix = piece_prefix(chunk.title, label, ceiling)
            limit = max(1, ceiling - estimate_tokens(prefix))
            for piece in pack_blocks(split_blocks(text), limit):
                pieces.append((label, prefix + piece))

        total = len(pieces)
        return [
            self._record(f"{chunk.id}#{n}", chunk.id, n, total, label, text, metadata)
            for n, (label, text) in enumerate(pieces, 1)
        ]

    @staticmethod
    def _record(
        record_id: str,
        parent_id: str,
        part: int,
        parts: int,
        section: str,
        text: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "record_id": record_id,
            "parent_id": parent_id,
            "part": part,
            "parts": parts,
            "section": section,
            "text": text,
            "tokens": estimate_tokens(text),
            "metadata": metadata,
        }

    @staticmethod
    def _metadata(chunk: Chunk, context: RenderContext) -> dict[str, Any]:
        return {
            "title": chunk.title,
            "type": chunk.type,
            "priority": chunk.priority.value,
            "category": chunk.category,
            "source": chunk.source,
            "keywords": list(chunk.keywords),
            "related": context.resolution.resolved_targets(chunk.id),
            "links": [link.url for link in chunk.links],
            "introduced_in": chunk.introduced_in,
            "deprecated": chunk.deprecated,
        }
