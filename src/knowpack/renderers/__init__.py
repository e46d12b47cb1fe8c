"""Output renderers for knowpack."""

from typing import Iterable

from knowpack.errors import ConfigError
from knowpack.protocols import Renderer
from knowpack.renderers.base import Artifact, RenderContext
from knowpack.renderers.chunk_export import ChunkExportRenderer
from knowpack.renderers.search_index import SearchIndex, SearchIndexRenderer
from knowpack.renderers.static_document import StaticDocumentRenderer

# Registry of available renderers, by name
_RENDERERS: dict[str, Renderer] = {
    renderer.name: renderer
    for renderer in (StaticDocumentRenderer(), ChunkExportRenderer(), SearchIndexRenderer())
}


def get_renderers(names: Iterable[str]) -> list[Renderer]:
    """Look up renderers by name, in the order given.

    Args:
        names: Renderer names from the build config

    Returns:
        Renderer instances

    Raises:
        ConfigError: If a name is not registered
    """
    renderers = []
    for name in names:
        renderer = _RENDERERS.get(name)
        if renderer is None:
            raise ConfigError(f"unknown renderer '{name}' (available: {', '.join(sorted(_RENDERERS))})")
        renderers.append(renderer)
    return renderers


def register_renderer(renderer: Renderer) -> None:
    """Register a custom renderer (for plugins/extensions).

    Args:
        renderer: An object implementing the Renderer protocol
    """
    _RENDERERS[renderer.name] = renderer


__all__ = [
    "Artifact",
    "ChunkExportRenderer",
    "RenderContext",
    "SearchIndex",
    "SearchIndexRenderer",
    "StaticDocumentRenderer",
    "get_renderers",
    "register_renderer",
]
