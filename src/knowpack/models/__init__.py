"""Data models for knowpack."""

from knowpack.models.chunk import (
    Chunk,
    ChunkType,
    ConceptPayload,
    Example,
    FunctionPayload,
    Link,
    LoadError,
    MistakePayload,
    OperatorPayload,
    Parameter,
    Payload,
    Priority,
    RawChunkRecord,
    UsagePayload,
    ValidationIssue,
)
from knowpack.models.manifest import (
    ArtifactRecord,
    BuildManifest,
    BuildStatus,
    ChunkOutcome,
    RendererOutcome,
)

__all__ = [
    "ArtifactRecord",
    "BuildManifest",
    "BuildStatus",
    "Chunk",
    "ChunkOutcome",
    "ChunkType",
    "ConceptPayload",
    "Example",
    "FunctionPayload",
    "Link",
    "LoadError",
    "MistakePayload",
    "OperatorPayload",
    "Parameter",
    "Payload",
    "Priority",
    "RawChunkRecord",
    "RendererOutcome",
    "UsagePayload",
    "ValidationIssue",
]
