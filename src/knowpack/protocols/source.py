"""Protocol for chunk sources (loaders)."""

from pathlib import Path
from typing import Iterator, Protocol, Union, runtime_checkable

from knowpack.models import LoadError, RawChunkRecord

LoadResult = Union[RawChunkRecord, LoadError]


@runtime_checkable
class ChunkSource(Protocol):
    """Protocol for content root handlers.

    Implementations handle different storage layouts (folder, zip).
    Uses structural subtyping - no inheritance required.
    """

    @property
    def source_type(self) -> str:
        """Return identifier for this source type (e.g., 'zip', 'folder')."""
        ...

    def can_handle(self, source: Path) -> bool:
        """Check if this loader can read the given content root."""
        ...

    def list_files(self, source: Path) -> list[str]:
        """Return the relative paths of chunk files, sorted.

        Raises ContentRootError when the root cannot be read.
        """
        ...

    def read_file(self, source: Path, name: str) -> bytes:
        """Return the raw bytes of one chunk file."""
        ...

    def load_file(self, source: Path, name: str) -> list[LoadResult]:
        """Parse one chunk file into raw records and/or load errors."""
        ...

    def iter_records(self, source: Path) -> Iterator[LoadResult]:
        """Yield raw records and load errors for every chunk file.

        Each call re-reads storage.
        """
        ...
