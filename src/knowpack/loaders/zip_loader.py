"""Loader for content roots packed as ZIP archives."""

import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterator

from knowpack.errors import ContentRootError
from knowpack.loaders.parsing import is_chunk_file, parse_chunk_file
from knowpack.models import LoadError
from knowpack.protocols import LoadResult


class ZipLoader:
    """Loader for ZIP archives of YAML chunk files."""

    source_type = "zip"

    def can_handle(self, source: Path) -> bool:
        """Check if this is a zip file."""
        return source.suffix.lower() == ".zip" and source.is_file()

    def list_files(self, source: Path) -> list[str]:
        try:
            with zipfile.ZipFile(source, "r") as zf:
                names = [
                    info.filename
                    for info in zf.infolist()
                    if not info.is_dir() and is_chunk_file(PurePosixPath(info.filename).parts)
                ]
        except (OSError, zipfile.BadZipFile) as exc:
            raise ContentRootError(f"cannot read archive {source}: {exc}") from exc
        return sorted(names)

    def read_file(self, source: Path, name: str) -> bytes:
        try:
            with zipfile.ZipFile(source, "r") as zf:
                return zf.read(name)
        except zipfile.BadZipFile as exc:
            raise OSError(f"corrupt archive member {name}: {exc}") from exc

    def load_file(self, source: Path, name: str) -> list[LoadResult]:
        try:
            data = self.read_file(source, name)
        except (OSError, KeyError) as exc:
            return [LoadError(name, f"unreadable: {exc}")]
        return parse_chunk_file(name, data)

    def iter_records(self, source: Path) -> Iterator[LoadResult]:
        """Yield raw records and load errors from a ZIP archive.

        Args:
            source: Path to the ZIP file

        Yields:
            RawChunkRecord or LoadError objects, file by file
        """
        for name in self.list_files(source):
            yield from self.load_file(source, name)
