"""Artifact storage for knowpack builds."""

from knowpack.storage.store import BuildStore, StagedBuild

__all__ = ["BuildStore", "StagedBuild"]
