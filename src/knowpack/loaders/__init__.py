"""Content root handlers (loaders) for knowpack."""

from pathlib import Path
from typing import Optional

from knowpack.loaders.folder_loader import FolderLoader
from knowpack.loaders.parsing import parse_chunk_file
from knowpack.loaders.zip_loader import ZipLoader
from knowpack.protocols import ChunkSource

# Registry of available loaders
_LOADERS: list[ChunkSource] = [
    ZipLoader(),
    FolderLoader(),
]


def get_loader(source: Path | str) -> Optional[ChunkSource]:
    """Find a loader that can handle the given content root.

    Args:
        source: Path to the content root (folder or zip file)

    Returns:
        A ChunkSource instance that can handle the source, or None
    """
    source_path = Path(source)
    for loader in _LOADERS:
        if loader.can_handle(source_path):
            return loader
    return None


def register_loader(loader: ChunkSource) -> None:
    """Register a custom loader (for plugins/extensions).

    Args:
        loader: An object implementing the ChunkSource protocol
    """
    _LOADERS.append(loader)


__all__ = ["get_loader", "register_loader", "parse_chunk_file", "FolderLoader", "ZipLoader"]
