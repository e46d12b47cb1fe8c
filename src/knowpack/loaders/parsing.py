"""Shared YAML parsing for chunk files."""

from typing import Optional

import yaml

from knowpack.models import LoadError, RawChunkRecord
from knowpack.protocols import LoadResult

CHUNK_SUFFIXES = {".yaml", ".yml"}

# Directory names that never hold content
SKIP_PARTS = {
    "__pycache__",
    "node_modules",
    "venv",
    "build",
    "dist",
}


def is_chunk_file(parts: tuple[str, ...]) -> bool:
    """Check whether a relative path (as parts) names a chunk file.

    Skips hidden files and folders and common artifact directories.
    """
    if not parts:
        return False
    if any(part.startswith(".") or part in SKIP_PARTS for part in parts):
        return False
    name = parts[-1].lower()
    return any(name.endswith(suffix) for suffix in CHUNK_SUFFIXES)


def parse_chunk_file(name: str, data: bytes) -> list[LoadResult]:
    """Parse one YAML chunk file.

    A file holds either a single mapping (one chunk) or a list of
    mappings (a compact family of chunks).

    Args:
        name: Path of the file relative to the content root
        data: Raw file content

    Returns:
        Raw records, or load errors for the parts that failed
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return [LoadError(name, f"not valid UTF-8: {exc.reason}")]

    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        return [LoadError(name, _yaml_message(exc), _yaml_line(exc))]

    if parsed is None:
        return [LoadError(name, "empty document")]

    if isinstance(parsed, dict):
        return [RawChunkRecord(data=_stringify_keys(parsed), source=name)]

    if isinstance(parsed, list):
        if not parsed:
            return [LoadError(name, "empty chunk list")]
        results: list[LoadResult] = []
        for index, item in enumerate(parsed):
            if isinstance(item, dict):
                results.append(
                    RawChunkRecord(data=_stringify_keys(item), source=name, index=index)
                )
            else:
                results.append(
                    LoadError(f"{name}[{index}]", f"expected a mapping, got {type(item).__name__}")
                )
        return results

    return [LoadError(name, f"expected a mapping or list, got {type(parsed).__name__}")]


def _stringify_keys(data: dict) -> dict:
    return {str(key): value for key, value in data.items()}


def _yaml_line(exc: yaml.YAMLError) -> Optional[int]:
    mark = getattr(exc, "problem_mark", None)
    if mark is None:
        return None
    return mark.line + 1


def _yaml_message(exc: yaml.YAMLError) -> str:
    problem = getattr(exc, "problem", None)
    if problem:
        return f"malformed YAML: {problem}"
    return f"malformed YAML: {exc}"
