"""Loader for content roots on the local filesystem."""

import logging
import os
from pathlib import Path
from typing import Iterator

from knowpack.errors import ContentRootError
from knowpack.loaders.parsing import SKIP_PARTS, is_chunk_file, parse_chunk_file
from knowpack.models import LoadError
from knowpack.protocols import LoadResult

logger = logging.getLogger(__name__)


class FolderLoader:
    """Loader for a directory tree of YAML chunk files."""

    source_type = "folder"

    def can_handle(self, source: Path) -> bool:
        """Check if this is an existing directory."""
        return source.is_dir()

    def list_files(self, source: Path) -> list[str]:
        """Return relative POSIX paths of chunk files, sorted.

        Args:
            source: Content root directory

        Returns:
            Sorted list of relative paths
        """
        if not source.is_dir():
            raise ContentRootError(f"content root is not a directory: {source}")
        if not os.access(source, os.R_OK | os.X_OK):
            raise ContentRootError(f"content root is not readable: {source}")

        names = []

        def _on_error(exc: OSError) -> None:
            if Path(exc.filename or "") == source:
                raise ContentRootError(f"cannot read content root {source}: {exc}") from exc
            logger.warning(f"Skipping unreadable directory {exc.filename}: {exc.strerror}")

        for root, dirs, files in os.walk(source, onerror=_on_error):
            dirs[:] = sorted(d for d in dirs if not d.startswith(".") and d not in SKIP_PARTS)
            for filename in files:
                rel_path = (Path(root) / filename).relative_to(source)
                if is_chunk_file(rel_path.parts):
                    names.append(rel_path.as_posix())

        return sorted(names)

    def read_file(self, source: Path, name: str) -> bytes:
        return (source / name).read_bytes()

    def load_file(self, source: Path, name: str) -> list[LoadResult]:
        """Read and parse one chunk file; unreadable files become load errors."""
        try:
            data = self.read_file(source, name)
        except OSError as exc:
            return [LoadError(name, f"unreadable: {exc.strerror or exc}")]
        return parse_chunk_file(name, data)

    def iter_records(self, source: Path) -> Iterator[LoadResult]:
        """Yield raw records and load errors from a folder recursively.

        Args:
            source: Content root directory

        Yields:
            RawChunkRecord or LoadError objects, file by file
        """
        for name in self.list_files(source):
            logger.debug(f"Loading {name}")
            yield from self.load_file(source, name)
