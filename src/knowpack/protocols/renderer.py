"""Protocol for output renderers."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from knowpack.renderers.base import Artifact, RenderContext


@runtime_checkable
class Renderer(Protocol):
    """Protocol for renderers that turn validated chunks into artifacts.

    Renderers are pure: they return artifacts and never touch the
    filesystem. Writing is the orchestrator's job.
    """

    @property
    def name(self) -> str:
        """Short renderer name used in config and the manifest."""
        ...

    def render(self, context: "RenderContext") -> "list[Artifact]":
        """Produce this renderer's artifacts.

        Raises RendererError (or a subclass) to abort this renderer only.
        """
        ...
