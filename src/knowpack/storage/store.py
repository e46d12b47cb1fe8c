"""Staged, all-or-nothing writing of build artifacts."""

import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator

from knowpack.errors import ArtifactWriteError
from knowpack.models import ArtifactRecord
from knowpack.utils.hashing import sha256_bytes

logger = logging.getLogger(__name__)


class StagedBuild:
    """A staging directory that collects one build's artifacts."""

    def __init__(self, root: Path):
        self.root = root
        self.records: list[ArtifactRecord] = []

    def write(self, path: str, content: bytes) -> ArtifactRecord:
        """Write one artifact into staging and record its hash.

        Args:
            path: POSIX path relative to the output directory
            content: File content

        Returns:
            ArtifactRecord with sha256 and size
        """
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise ArtifactWriteError(f"artifact path escapes the output directory: {path}")

        target = self.root.joinpath(*rel.parts)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            raise ArtifactWriteError(f"cannot write {path} to staging: {exc}") from exc

        record = ArtifactRecord(path=rel.as_posix(), sha256=sha256_bytes(content), size_bytes=len(content))
        self.records.append(record)
        return record


class BuildStore:
    """Output directory whose content is replaced one build at a time.

    Artifacts are written to a hidden sibling staging directory. On commit
    the previous output is moved aside, staging is renamed into place and
    the old output is deleted. If the swap fails the old output is put back,
    so a partial build never replaces the last good one.
    """

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    @property
    def _parent(self) -> Path:
        return self.output_dir.parent

    def _sibling(self, kind: str) -> Path:
        return self._parent / f".{self.output_dir.name}.{kind}-{uuid.uuid4().hex[:12]}"

    def _siblings(self, kind: str) -> list[Path]:
        if not self._parent.is_dir():
            return []
        return sorted(self._parent.glob(f".{self.output_dir.name}.{kind}-*"))

    def recover(self) -> None:
        """Clean up after an interrupted run.

        Restores a moved-aside previous build if the output directory went
        missing mid-commit, then removes stale staging directories.
        """
        try:
            backups = self._siblings("previous")
            if backups and not self.output_dir.exists():
                logger.warning(f"Restoring previous build from {backups[-1].name}")
                os.replace(backups[-1], self.output_dir)
                backups = backups[:-1]
            for stale in backups + self._siblings("staging"):
                logger.info(f"Removing stale {stale.name}")
                shutil.rmtree(stale)
        except OSError as exc:
            raise ArtifactWriteError(f"cannot clean up {self._parent}: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[StagedBuild]:
        """Context manager for a staged build.

        Commits on normal exit; discards staging on any exception.
        """
        staging = self._sibling("staging")
        try:
            staging.mkdir(parents=True)
        except OSError as exc:
            raise ArtifactWriteError(f"cannot create staging directory {staging}: {exc}") from exc

        try:
            staged = StagedBuild(staging)
            yield staged
            self._commit(staging)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

    def _commit(self, staging: Path) -> None:
        if self.output_dir.exists() and not self.output_dir.is_dir():
            raise ArtifactWriteError(f"output path exists and is not a directory: {self.output_dir}")

        backup = None
        try:
            if self.output_dir.exists():
                backup = self._sibling("previous")
                os.replace(self.output_dir, backup)
            try:
                os.replace(staging, self.output_dir)
            except OSError:
                if backup is not None:
                    os.replace(backup, self.output_dir)
                    backup = None
                raise
        except OSError as exc:
            raise ArtifactWriteError(f"cannot commit build to {self.output_dir}: {exc}") from exc

        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)
            if backup.exists():
                logger.warning(f"Could not remove previous build at {backup}")

        logger.info(f"Committed build to {self.output_dir}")
