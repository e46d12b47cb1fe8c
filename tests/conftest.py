"""Shared pytest fixtures: chunk factories and on-disk corpora."""

from pathlib import Path

import pytest
import yaml

from knowpack.models import Chunk, Example, MistakePayload, Priority

_TYPE_FIELDS = {
    "mistake-pattern": {
        "wrong": {"code": "x = a(0)", "explanation": "Indexing starts at 1."},
        "right": {"code": "x = a(1)", "explanation": "Use 1 for the first element."},
    },
    "function-reference": {
        "signature": "zeros(n, m)",
        "parameters": [{"name": "n", "description": "rows"}, {"name": "m"}],
        "returns": "an n-by-m matrix of zeros",
    },
    "operator-reference": {"syntax": "A .* B"},
    "usage-pattern": {"steps": ["Preallocate", "Fill in a loop"]},
    "concept-explanation": {},
}


def _chunk_data(chunk_id, type="concept-explanation", **overrides):
    data = {
        "id": chunk_id,
        "type": type,
        "title": f"Title {chunk_id}",
        "summary": f"Summary of {chunk_id}.",
        "content": f"Body text for {chunk_id}.",
    }
    data.update(_TYPE_FIELDS.get(type, {}))
    data.update(overrides)
    return data


@pytest.fixture
def chunk_data():
    """Factory for a valid raw chunk mapping of the given type."""
    return _chunk_data


@pytest.fixture
def write_corpus():
    """Write ``{relative path: mapping | list | str | bytes}`` under a root."""

    def _write(root: Path, files: dict) -> Path:
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            elif isinstance(content, str):
                path.write_text(content, encoding="utf-8")
            else:
                path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")
        return root

    return _write


@pytest.fixture
def make_chunk():
    """Factory for in-memory Chunk objects."""

    def _make(chunk_id, type="concept-explanation", priority=Priority.MEDIUM, **fields):
        values = {
            "id": chunk_id,
            "type": type,
            "title": f"Title {chunk_id}",
            "summary": f"Summary of {chunk_id}.",
            "content": f"Body text for {chunk_id}.",
            "priority": priority,
        }
        if type == "mistake-pattern" and "payload" not in fields:
            values["payload"] = MistakePayload(
                wrong=Example("x = a(0)", "Indexing starts at 1."),
                right=Example("x = a(1)", "Use 1 for the first element."),
            )
        values.update(fields)
        return Chunk(**values)

    return _make


@pytest.fixture
def sample_corpus(tmp_path, write_corpus, chunk_data):
    """A small valid corpus spread over category directories."""
    root = tmp_path / "content"
    write_corpus(
        root,
        {
            "concepts/indexing.yaml": chunk_data(
                "indexing",
                priority="critical",
                keywords=["indexing", "Index base"],
                related=["zeros"],
            ),
            "gotchas/family.yaml": [
                chunk_data("off-by-one", type="mistake-pattern", priority="high", see_also=["indexing"]),
                chunk_data("elementwise-mult", type="mistake-pattern", keywords=["operators"]),
            ],
            "functions/zeros.yaml": chunk_data(
                "zeros",
                type="function-reference",
                keywords=["preallocation"],
                links=["https://example.org/zeros", {"title": "Guide", "url": "https://example.org/guide"}],
            ),
            "operators/times.yaml": chunk_data("times", type="operator-reference", priority="low"),
            "patterns/prealloc.yaml": chunk_data(
                "prealloc", type="usage-pattern", keywords=["preallocation", "loops"]
            ),
        },
    )
    return root
