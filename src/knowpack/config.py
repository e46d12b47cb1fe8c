"""Build configuration: dataclass defaults, optional YAML file, CLI overrides."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from knowpack.errors import ConfigError
from knowpack.models import ChunkType

DEFAULT_CONFIG_NAME = "knowpack.yaml"

DEFAULT_EXPORT_CEILINGS = {
    ChunkType.MISTAKE_PATTERN.value: 350,
    ChunkType.OPERATOR_REFERENCE.value: 400,
    ChunkType.FUNCTION_REFERENCE.value: 500,
    ChunkType.USAGE_PATTERN.value: 600,
    ChunkType.CONCEPT_EXPLANATION.value: 800,
}

ALL_RENDERERS = ("static", "export", "search")


@dataclass(frozen=True)
class BuildConfig:
    """Settings for one build run."""

    budget: int = 8000
    workers: int = 1
    reference_name: str = "QUICK_REFERENCE.md"
    export_ceilings: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_EXPORT_CEILINGS)
    )
    default_export_ceiling: int = 600
    renderers: tuple[str, ...] = ALL_RENDERERS

    def __post_init__(self) -> None:
        if self.budget < 0:
            raise ConfigError(f"budget must be >= 0, got {self.budget}")
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        if self.default_export_ceiling < 1:
            raise ConfigError("default_export_ceiling must be >= 1")
        for type_tag, ceiling in self.export_ceilings.items():
            if not isinstance(ceiling, int) or ceiling < 1:
                raise ConfigError(f"export_ceilings[{type_tag}] must be a positive integer")
        if not all(isinstance(name, str) and name for name in self.renderers):
            raise ConfigError("renderers must be a list of renderer names")
        if "/" in self.reference_name or not self.reference_name:
            raise ConfigError("reference_name must be a plain file name")

    def export_ceiling(self, chunk_type: str) -> int:
        """Token ceiling for exported records of the given type."""
        return self.export_ceilings.get(chunk_type, self.default_export_ceiling)

    def with_overrides(self, **overrides: Any) -> "BuildConfig":
        """Return a copy with every non-None override applied."""
        applied = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **applied) if applied else self

    def summary(self) -> dict[str, Any]:
        """Settings that affect output, as recorded in the manifest."""
        return {
            "budget": self.budget,
            "reference_name": self.reference_name,
            "export_ceilings": dict(sorted(self.export_ceilings.items())),
            "default_export_ceiling": self.default_export_ceiling,
            "renderers": list(self.renderers),
        }


def load_config(path: Optional[Path | str] = None) -> BuildConfig:
    """Load a BuildConfig from a YAML file.

    Args:
        path: Config file. When None, ``knowpack.yaml`` in the working
              directory is used if present, otherwise defaults.

    Returns:
        The parsed configuration
    """
    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_NAME
        if not candidate.is_file():
            return BuildConfig()
        path = candidate

    config_path = Path(path)
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc

    if raw is None:
        return BuildConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    known = {f.name for f in fields(BuildConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"{config_path}: unknown keys: {', '.join(unknown)}")

    if "renderers" in raw:
        if not isinstance(raw["renderers"], (list, type(None))):
            raise ConfigError(f"{config_path}: renderers must be a list of renderer names")
        raw["renderers"] = tuple(raw["renderers"] or ())
    if "export_ceilings" in raw:
        if not isinstance(raw["export_ceilings"], (dict, type(None))):
            raise ConfigError(f"{config_path}: export_ceilings must map chunk types to integers")
        ceilings = dict(DEFAULT_EXPORT_CEILINGS)
        ceilings.update(raw["export_ceilings"] or {})
        raw["export_ceilings"] = ceilings

    try:
        return BuildConfig(**raw)
    except TypeError as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
