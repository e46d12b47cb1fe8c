"""Protocol definitions for extensible components."""

from knowpack.protocols.renderer import Renderer
from knowpack.protocols.source import ChunkSource, LoadResult

__all__ = ["ChunkSource", "LoadResult", "Renderer"]
