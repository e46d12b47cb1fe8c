"""Build orchestration: stage sequencing, issue collection, manifest, commit."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from knowpack.config import BuildConfig
from knowpack.errors import (
    ArtifactWriteError,
    BudgetExceededError,
    ContentRootError,
    RendererError,
)
from knowpack.loaders import get_loader, parse_chunk_file
from knowpack.models import (
    BuildManifest,
    BuildStatus,
    Chunk,
    ChunkOutcome,
    LoadError,
    RawChunkRecord,
    RendererOutcome,
)
from knowpack.protocols import ChunkSource, LoadResult
from knowpack.renderers import Artifact, RenderContext, get_renderers
from knowpack.resolver import ReferenceResolver, ResolutionReport
from knowpack.selection import Selection, SelectionEngine, Sizer
from knowpack.storage import BuildStore
from knowpack.utils.hashing import digest_entries
from knowpack.validation import SchemaValidator, ValidationResult, validate_corpus

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


class BuildState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    SELECTING = "selecting"
    RENDERING = "rendering"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    BuildState.IDLE: {BuildState.LOADING},
    BuildState.LOADING: {BuildState.VALIDATING},
    BuildState.VALIDATING: {BuildState.RESOLVING},
    BuildState.RESOLVING: {BuildState.SELECTING},
    BuildState.SELECTING: {BuildState.RENDERING, BuildState.DONE},  # DONE for dry runs
    BuildState.RENDERING: {BuildState.WRITING},
    BuildState.WRITING: {BuildState.DONE},
    BuildState.DONE: set(),
    BuildState.FAILED: set(),
}


class IssueCollector:
    """Thread-safe accumulator for load errors reported by workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._load_errors: list[LoadError] = []

    def add_load_error(self, error: LoadError) -> None:
        with self._lock:
            self._load_errors.append(error)

    def load_errors(self) -> list[LoadError]:
        """Snapshot sorted by location (worker order is not stable)."""
        with self._lock:
            return sorted(self._load_errors, key=lambda e: (e.source, e.line or 0, e.message))


@dataclass
class BuildResult:
    """What a build run produced, in memory."""

    manifest: BuildManifest
    state: BuildState
    chunks: list[Chunk] = field(default_factory=list)
    resolution: Optional[ResolutionReport] = None
    selection: Optional[Selection] = None
    output_dir: Optional[Path] = None
    committed: bool = False

    @property
    def status(self) -> BuildStatus:
        return self.manifest.status

    @property
    def exit_code(self) -> int:
        return self.manifest.status.exit_code


class BuildOrchestrator:
    """Sequence one build run from content root to committed artifacts.

    Each instance runs once. Per-chunk problems are recorded and the run
    continues; an unreadable content root or an unwritable output moves
    the run to FAILED without touching the previous build.
    """

    def __init__(
        self,
        source: Path | str,
        output_dir: Optional[Path | str] = None,
        config: Optional[BuildConfig] = None,
        *,
        loader: Optional[ChunkSource] = None,
        sizer: Optional[Sizer] = None,
        on_state_change: Optional[Callable[[BuildState], None]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            source: Content root (folder or zip)
            output_dir: Output directory; None allows only dry runs
            config: Build settings (defaults if None)
            loader: Loader override; picked by get_loader when None
            sizer: Chunk size function for selection
            on_state_change: Called with each new state
        """
        self.source = Path(source)
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.config = config or BuildConfig()
        self.loader = loader
        self.sizer = sizer
        self.on_state_change = on_state_change
        self.renderers = get_renderers(self.config.renderers)
        self.collector = IssueCollector()
        self._state = BuildState.IDLE

    @property
    def state(self) -> BuildState:
        return self._state

    def _advance(self, new_state: BuildState) -> None:
        if new_state is not BuildState.FAILED and new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"invalid build transition {self._state.value} -> {new_state.value}")
        logger.info(f"Stage: {new_state.value}")
        self._state = new_state
        if self.on_state_change is not None:
            self.on_state_change(new_state)

    @contextmanager
    def _mapper(self) -> Iterator[Callable]:
        """Yield a map function, parallel when more than one worker is set."""
        if self.config.workers <= 1:
            yield map
            return
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            yield executor.map

    def run(self, dry_run: bool = False) -> BuildResult:
        """Run the build.

        Args:
            dry_run: Stop after selection; render and write nothing

        Returns:
            BuildResult holding the manifest
        """
        if self._state is not BuildState.IDLE:
            raise RuntimeError("a BuildOrchestrator runs only once")
        if not dry_run and self.output_dir is None:
            raise ValueError("output_dir is required unless dry_run is set")

        input_digest = ""
        outcomes: list[ChunkOutcome] = []
        try:
            if not dry_run:
                BuildStore(self.output_dir).recover()

            # Loading
            self._advance(BuildState.LOADING)
            loader = self.loader or get_loader(self.source)
            if loader is None:
                raise ContentRootError(f"content root not found or unsupported: {self.source}")
            names = loader.list_files(self.source)
            logger.info(f"Found {len(names)} chunk files in {self.source}")

            with self._mapper() as map_fn:
                loaded = list(map_fn(lambda name: self._load_one(loader, name), names))
                records = [r for _, results in loaded for r in results if isinstance(r, RawChunkRecord)]
                input_digest = self._digest(loaded)

                # Validating
                self._advance(BuildState.VALIDATING)
                results = validate_corpus(records, SchemaValidator(), map_fn)

            outcomes = self._outcomes(results)
            chunks = sorted((r.chunk for r in results if r.chunk is not None), key=lambda c: c.id)
            logger.info(f"Validated {len(chunks)} chunks, {len(results) - len(chunks)} invalid")

            # Resolving
            self._advance(BuildState.RESOLVING)
            resolution = ReferenceResolver().resolve(chunks)

            # Selecting
            self._advance(BuildState.SELECTING)
            selection: Optional[Selection] = None
            selection_error: Optional[BudgetExceededError] = None
            try:
                selection = SelectionEngine(self.config.budget, self.sizer).select(chunks)
            except BudgetExceededError as exc:
                selection_error = exc

            if dry_run:
                self._advance(BuildState.DONE)
                manifest = self._manifest(
                    input_digest, outcomes, resolution, selection, selection_error, [], []
                )
                return BuildResult(manifest, self._state, chunks, resolution, selection)

            # Rendering
            self._advance(BuildState.RENDERING)
            context = RenderContext(
                chunks=chunks,
                resolution=resolution,
                config=self.config,
                selection=selection,
                selection_error=selection_error,
            )
            artifacts, renderer_outcomes = self._render(context)

            # Writing
            self._advance(BuildState.WRITING)
            store = BuildStore(self.output_dir)
            with store.transaction() as staged:
                for artifact in artifacts:
                    staged.write(artifact.path, artifact.content)
                manifest = self._manifest(
                    input_digest,
                    outcomes,
                    resolution,
                    selection,
                    selection_error,
                    renderer_outcomes,
                    list(staged.records),
                )
                staged.write(MANIFEST_NAME, manifest.to_json().encode("utf-8"))

            self._advance(BuildState.DONE)
            logger.info(f"Build {manifest.status.value}: {len(manifest.artifacts)} artifacts")
            return BuildResult(
                manifest, self._state, chunks, resolution, selection, self.output_dir, True
            )

        except (ContentRootError, ArtifactWriteError) as exc:
            logger.error(f"Build failed: {exc}")
            self._advance(BuildState.FAILED)
            manifest = BuildManifest(
                status=BuildStatus.FAILED,
                input_digest=input_digest,
                config=self.config.summary(),
                chunks=outcomes,
                load_errors=self._load_error_dicts(),
                issues=[f"fatal: {exc}"],
                error=str(exc),
            )
            return BuildResult(manifest, self._state, output_dir=self.output_dir)

    def _load_one(self, loader: ChunkSource, name: str) -> tuple[tuple[str, bytes] | None, list[LoadResult]]:
        try:
            data = loader.read_file(self.source, name)
        except (OSError, KeyError) as exc:
            error = LoadError(name, f"unreadable: {exc}")
            self.collector.add_load_error(error)
            logger.warning(f"Load error: {error.describe()}")
            return None, [error]

        results = parse_chunk_file(name, data)
        for result in results:
            if isinstance(result, LoadError):
                self.collector.add_load_error(result)
                logger.warning(f"Load error: {result.describe()}")
        return (name, data), results

    def _digest(self, loaded: list) -> str:
        entries = [entry for entry, _ in loaded if entry is not None]
        config_blob = json.dumps(self.config.summary(), sort_keys=True).encode("utf-8")
        entries.append(("\0config", config_blob))
        return digest_entries(entries)

    @staticmethod
    def _outcomes(results: list[ValidationResult]) -> list[ChunkOutcome]:
        outcomes = []
        for result in results:
            record = result.record
            if not result.valid:
                reasons = "; ".join(issue.describe() for issue in result.errors)
                logger.warning(f"Invalid chunk {record.label}: {reasons}")
            outcomes.append(
                ChunkOutcome(
                    source=record.label,
                    chunk_id=record.declared_id,
                    valid=result.valid,
                    errors=[issue.describe() for issue in result.errors],
                )
            )
        return outcomes

    def _render(self, context: RenderContext) -> tuple[list[Artifact], list[RendererOutcome]]:
        artifacts: dict[str, Artifact] = {}
        outcomes = []
        for renderer in self.renderers:
            try:
                produced = renderer.render(context)
            except RendererError as exc:
                logger.warning(f"Renderer '{renderer.name}' aborted: {exc}")
                outcomes.append(RendererOutcome(name=renderer.name, ok=False, error=str(exc)))
                continue

            for artifact in produced:
                if artifact.path in artifacts or artifact.path == MANIFEST_NAME:
                    raise ArtifactWriteError(
                        f"renderer '{renderer.name}' produced a conflicting path: {artifact.path}"
                    )
                artifacts[artifact.path] = artifact
            outcomes.append(
                RendererOutcome(
                    name=renderer.name, ok=True, artifacts=sorted(a.path for a in produced)
                )
            )
        return [artifacts[path] for path in sorted(artifacts)], outcomes

    def _load_error_dicts(self) -> list[dict]:
        return [
            {"source": e.source, "line": e.line, "message": e.message}
            for e in self.collector.load_errors()
        ]

    def _manifest(
        self,
        input_digest: str,
        outcomes: list[ChunkOutcome],
        resolution: ResolutionReport,
        selection: Optional[Selection],
        selection_error: Optional[BudgetExceededError],
        renderer_outcomes: list[RendererOutcome],
        artifacts: list,
    ) -> BuildManifest:
        load_errors = self.collector.load_errors()
        issues = [f"load error: {e.describe()}" for e in load_errors]
        issues += [
            f"invalid chunk {o.source}: {'; '.join(o.errors)}" for o in outcomes if not o.valid
        ]
        issues += [
            f"dangling reference: {ref.source} -> {ref.target} ({ref.kind})"
            for ref in resolution.dangling
        ]
        issues += [f"reference cycle: {' -> '.join(cycle)}" for cycle in resolution.cycles]
        if selection_error is not None:
            issues.append(f"budget violation: {selection_error}")
        issues += [
            f"renderer '{o.name}' failed: {o.error}"
            for o in renderer_outcomes
            if not o.ok and not (selection_error is not None and o.name == "static")
        ]

        static_blocked = selection_error is not None and "static" in self.config.renderers
        if static_blocked or any(not o.ok for o in renderer_outcomes):
            status = BuildStatus.PARTIAL
        elif issues:
            status = BuildStatus.COMPLETED_WITH_ISSUES
        else:
            status = BuildStatus.COMPLETED

        selection_info = selection.to_dict() if selection is not None else None
        if selection_error is not None:
            selection_info = {
                "budget": selection_error.budget,
                "error": str(selection_error),
                "required": selection_error.required,
            }

        return BuildManifest(
            status=status,
            input_digest=input_digest,
            config=self.config.summary(),
            chunks=outcomes,
            load_errors=self._load_error_dicts(),
            dangling=[
                {"source": ref.source, "target": ref.target, "kind": ref.kind}
                for ref in resolution.dangling
            ],
            cycles=[list(cycle) for cycle in resolution.cycles],
            selection=selection_info,
            renderers=renderer_outcomes,
            artifacts=artifacts,
            issues=issues,
        )


def load_manifest(output_dir: Path | str) -> BuildManifest:
    """Read the manifest of a committed build."""
    path = Path(output_dir) / MANIFEST_NAME
    return BuildManifest.from_dict(json.loads(path.read_text(encoding="utf-8")))
