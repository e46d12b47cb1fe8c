"""Build manifest: the machine-readable report of one build run."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class BuildStatus(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_ISSUES = "completed_with_issues"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        """Process exit code for this status."""
        if self is BuildStatus.FAILED:
            return 1
        if self is BuildStatus.PARTIAL:
            return 2
        return 0


@dataclass(frozen=True)
class ChunkOutcome:
    """Validation outcome for one raw record."""

    source: str
    chunk_id: Optional[str]
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RendererOutcome:
    name: str
    ok: bool
    error: Optional[str] = None
    artifacts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ArtifactRecord:
    path: str
    sha256: str
    size_bytes: int


@dataclass(frozen=True)
class BuildManifest:
    """Report of a finished build. Created once per run, never mutated."""

    status: BuildStatus
    input_digest: str
    config: dict[str, Any] = field(default_factory=dict)
    chunks: list[ChunkOutcome] = field(default_factory=list)
    load_errors: list[dict[str, Any]] = field(default_factory=list)
    dangling: list[dict[str, str]] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    selection: Optional[dict[str, Any]] = None
    renderers: list[RendererOutcome] = field(default_factory=list)
    artifacts: list[ArtifactRecord] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def valid_count(self) -> int:
        return sum(1 for outcome in self.chunks if outcome.valid)

    @property
    def invalid_count(self) -> int:
        return sum(1 for outcome in self.chunks if not outcome.valid)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    def to_json(self) -> str:
        """Serialize deterministically (sorted keys, trailing newline)."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildManifest":
        return cls(
            status=BuildStatus(data["status"]),
            input_digest=data.get("input_digest", ""),
            config=dict(data.get("config") or {}),
            chunks=[ChunkOutcome(**item) for item in data.get("chunks", [])],
            load_errors=list(data.get("load_errors", [])),
            dangling=list(data.get("dangling", [])),
            cycles=[list(cycle) for cycle in data.get("cycles", [])],
            selection=data.get("selection"),
            renderers=[RendererOutcome(**item) for item in data.get("renderers", [])],
            artifacts=[ArtifactRecord(**item) for item in data.get("artifacts", [])],
            issues=list(data.get("issues", [])),
            error=data.get("error"),
        )
