"""Shared renderer types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from knowpack.config import BuildConfig
from knowpack.errors import BudgetExceededError
from knowpack.models import Chunk
from knowpack.resolver import ResolutionReport
from knowpack.selection import Selection


@dataclass(frozen=True)
class Artifact:
    """One output file, by path relative to the output directory."""

    path: str
    content: bytes

    @classmethod
    def text(cls, path: str, text: str) -> "Artifact":
        return cls(path=path, content=text.encode("utf-8"))


@dataclass(frozen=True)
class RenderContext:
    """Everything a renderer may read. Chunks are sorted by identifier."""

    chunks: list[Chunk]
    resolution: ResolutionReport
    config: BuildConfig = field(default_factory=BuildConfig)
    selection: Optional[Selection] = None
    selection_error: Optional[BudgetExceededError] = None

    def chunk_map(self) -> dict[str, Chunk]:
        return {chunk.id: chunk for chunk in self.chunks}
