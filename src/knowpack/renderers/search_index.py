"""Keyword search index: renderer and lookup structure."""

from __future__ import annotations

import bisect
import json
import logging
from pathlib import Path
from typing import Any, Optional

from knowpack.models import Chunk
from knowpack.renderers.base import Artifact, RenderContext

logger = logging.getLogger(__name__)

INDEX_PATH = "search/index.json"
INDEX_VERSION = 1


def normalize_keyword(keyword: str) -> str:
    """Lowercase and collapse internal whitespace."""
    return " ".join(keyword.lower().split())


class SearchIndex:
    """Keyword -> chunk identifiers, with exact and prefix lookup."""

    def __init__(
        self,
        keywords: dict[str, list[str]],
        chunks: Optional[dict[str, dict[str, Any]]] = None,
    ):
        self.keywords = {key: sorted(set(ids)) for key, ids in keywords.items()}
        self.chunks = chunks or {}
        self._sorted_keys = sorted(self.keywords)

    @classmethod
    def build(cls, chunks: list[Chunk]) -> "SearchIndex":
        """Build an index from validated chunks."""
        keywords: dict[str, set[str]] = {}
        for chunk in chunks:
            for keyword in chunk.keywords:
                normalized = normalize_keyword(keyword)
                if normalized:
                    keywords.setdefault(normalized, set()).add(chunk.id)

        cards = {
            chunk.id: {
                "title": chunk.title,
                "type": chunk.type,
                "priority": chunk.priority.value,
                "summary": chunk.summary,
            }
            for chunk in chunks
        }
        return cls({key: sorted(ids) for key, ids in keywords.items()}, cards)

    @classmethod
    def from_file(cls, path: Path | str) -> "SearchIndex":
        """Load an index written by SearchIndexRenderer."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        version = data.get("version")
        if version != INDEX_VERSION:
            raise ValueError(f"unsupported search index version: {version}")
        return cls(data.get("keywords", {}), data.get("chunks", {}))

    def to_json(self) -> str:
        payload = {
            "version": INDEX_VERSION,
            "keywords": self.keywords,
            "chunks": self.chunks,
        }
        return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    def exact(self, term: str) -> list[str]:
        """Identifiers of chunks carrying exactly this keyword."""
        return list(self.keywords.get(normalize_keyword(term), []))

    def prefix(self, prefix: str) -> dict[str, list[str]]:
        """Keywords starting with ``prefix`` mapped to their identifiers.

        Args:
            prefix: Keyword prefix (normalized like keywords)

        Returns:
            Ordered mapping of matching keywords to identifiers
        """
        needle = normalize_keyword(prefix)
        start = bisect.bisect_left(self._sorted_keys, needle)
        matches = {}
        for key in self._sorted_keys[start:]:
            if not key.startswith(needle):
                break
            matches[key] = list(self.keywords[key])
        return matches

    def prefix_ids(self, prefix: str) -> list[str]:
        """Union of identifiers over every keyword matching ``prefix``."""
        ids: set[str] = set()
        for chunk_ids in self.prefix(prefix).values():
            ids.update(chunk_ids)
        return sorted(ids)

    def card(self, chunk_id: str) -> Optional[dict[str, Any]]:
        return self.chunks.get(chunk_id)

    def __len__(self) -> int:
        return len(self.keywords)


class SearchIndexRenderer:
    """Write the keyword index as a JSON lookup artifact."""

    name = "search"

    def render(self, context: RenderContext) -> list[Artifact]:
        index = SearchIndex.build(context.chunks)
        logger.info(f"Search index: {len(index)} keywords over {len(context.chunks)} chunks")
        return [Artifact.text(INDEX_PATH, index.to_json())]
