"""Tests for the static document, chunk export and search index renderers."""

import json

import pytest

import knowpack.renderers as renderer_registry
from knowpack.config import BuildConfig
from knowpack.errors import BudgetExceededError, ConfigError
from knowpack.models import FunctionPayload, Link, Priority
from knowpack.protocols import Renderer
from knowpack.renderers import (
    ChunkExportRenderer,
    RenderContext,
    SearchIndex,
    SearchIndexRenderer,
    StaticDocumentRenderer,
    get_renderers,
    register_renderer,
)
from knowpack.renderers.base import Artifact
from knowpack.renderers.chunk_export import EXPORT_PATH, piece_prefix
from knowpack.renderers.search_index import INDEX_PATH
from knowpack.resolver import ReferenceResolver
from knowpack.selection import SelectionEngine
from knowpack.utils import estimate_tokens


def _context(chunks, config=None, budget=100_000):
    chunks = sorted(chunks, key=lambda c: c.id)
    return RenderContext(
        chunks=chunks,
        resolution=ReferenceResolver().resolve(chunks),
        config=config or BuildConfig(),
        selection=SelectionEngine(budget).select(chunks),
    )


def _artifacts(artifacts):
    return {artifact.path: artifact.content.decode("utf-8") for artifact in artifacts}


@pytest.fixture
def mixed_chunks(make_chunk):
    return [
        make_chunk("a-gotcha", type="mistake-pattern", title="Medium gotcha"),
        make_chunk("b-gotcha", type="mistake-pattern", priority=Priority.CRITICAL, title="Critical gotcha"),
        make_chunk("concept", title="Matrices", content="Everything is a matrix."),
        make_chunk(
            "func",
            type="function-reference",
            title="zeros",
            content="Detailed zeros body.",
            payload=FunctionPayload(signature="zeros(n)"),
            related=("concept", "ghost"),
            links=(Link("https://example.org/zeros", "Docs"),),
        ),
        make_chunk("ignored", priority=Priority.LOW, title="Low priority"),
    ]


def test_quick_reference_section_order(mixed_chunks):
    files = _artifacts(StaticDocumentRenderer().render(_context(mixed_chunks)))
    reference = files["QUICK_REFERENCE.md"]

    core = reference.index("## Core Syntax")
    gotchas = reference.index("## Gotchas")
    summaries = reference.index("## Topic Summaries")
    assert core < gotchas < summaries

    # Gotchas by descending priority
    assert reference.index("### Critical gotcha (critical)") < reference.index("### Medium gotcha (medium)")
    # Core syntax carries full content; summaries only title and summary
    assert "Everything is a matrix." in reference
    assert "Summary of func." in reference
    assert "Detailed zeros body." not in reference
    # Low tier stays out of the budgeted document
    assert "Low priority" not in reference


def test_topic_file_for_every_chunk(mixed_chunks):
    files = _artifacts(StaticDocumentRenderer().render(_context(mixed_chunks)))

    assert sorted(path for path in files if path.startswith("topics/")) == [
        "topics/a-gotcha.md",
        "topics/b-gotcha.md",
        "topics/concept.md",
        "topics/func.md",
        "topics/ignored.md",
    ]

    topic = files["topics/func.md"]
    assert "Detailed zeros body." in topic
    assert "Signature: zeros(n)" in topic
    assert "- [Matrices](concept.md)" in topic
    assert "- `ghost` (missing)" in topic
    assert "- [Docs](https://example.org/zeros)" in topic


def test_reference_name_is_configurable(mixed_chunks):
    config = BuildConfig(reference_name="CHEATSHEET.md")

    files = _artifacts(StaticDocumentRenderer().render(_context(mixed_chunks, config)))

    assert "CHEATSHEET.md" in files
    assert "QUICK_REFERENCE.md" not in files


def test_static_renderer_aborts_on_budget_violation(mixed_chunks):
    context = RenderContext(
        chunks=mixed_chunks,
        resolution=ReferenceResolver().resolve(mixed_chunks),
        selection=None,
        selection_error=BudgetExceededError(50, 10),
    )

    with pytest.raises(BudgetExceededError):
        StaticDocumentRenderer().render(context)


def test_export_small_chunk_is_one_record(mixed_chunks):
    context = _context(mixed_chunks)

    records = ChunkExportRenderer().records_for(context.chunk_map()["func"], context)

    assert len(records) == 1
    record = records[0]
    assert record["record_id"] == record["parent_id"] == "func"
    assert (record["part"], record["parts"]) == (1, 1)
    assert record["metadata"]["related"] == ["concept"]
    assert record["metadata"]["links"] == ["https://example.org/zeros"]
    assert record["tokens"] == estimate_tokens(record["text"])


def test_export_splits_oversized_chunk_under_ceiling(make_chunk):
    paragraphs = [f"Paragraph {i}: " + "lorem ipsum " * 7 for i in range(12)]
    fence = "```\nfor i = 1:n\n\n  x(i) = i;\nend\n```"
    content = "\n\n".join(paragraphs[:6] + [fence] + paragraphs[6:])
    chunk = make_chunk("long", content=content)
    config = BuildConfig(export_ceilings={"concept-explanation": 40})
    context = _context([chunk], config)

    records = ChunkExportRenderer().records_for(chunk, context)

    assert len(records) > 1
    assert {r["parent_id"] for r in records} == {"long"}
    assert [r["record_id"] for r in records] == [f"long#{n}" for n in range(1, len(records) + 1)]
    assert all(r["parts"] == len(records) for r in records)
    assert all(r["tokens"] <= 40 for r in records)
    assert all(r["text"].startswith("Title long (overview)\n\n") for r in records)

    joined = "\n".join(r["text"] for r in records)
    for paragraph in paragraphs:
        assert paragraph.strip() in joined
    assert any(fence in r["text"] for r in records)


def test_export_long_title_stays_under_ceiling(make_chunk):
    """A title longer than the ceiling is shortened in piece headings, never the body."""
    paragraphs = [f"Paragraph {i}: " + "lorem ipsum " * 7 for i in range(12)]
    chunk = make_chunk("wordy", title="Long title " * 40, content="\n\n".join(paragraphs))
    config = BuildConfig(export_ceilings={"concept-explanation": 100})
    context = _context([chunk], config)

    records = ChunkExportRenderer().records_for(chunk, context)

    assert 1 < len(records) < 20
    assert all(r["tokens"] <= 100 for r in records)
    assert all(r["text"].startswith("Long title Long title") for r in records)
    assert records[0]["metadata"]["title"] == chunk.title
    joined = "\n".join(r["text"] for r in records)
    for paragraph in paragraphs:
        assert paragraph.strip() in joined


@pytest.mark.parametrize("ceiling", [1, 3, 8])
def test_export_tiny_ceiling_drops_heading(make_chunk, ceiling):
    chunk = make_chunk("tiny", title="Some title")
    config = BuildConfig(export_ceilings={"concept-explanation": ceiling})
    context = _context([chunk], config)

    records = ChunkExportRenderer().records_for(chunk, context)

    assert all(r["tokens"] <= ceiling for r in records)


def test_piece_prefix_is_bounded():
    assert piece_prefix("Short", "overview", 40) == "Short (overview)\n\n"
    shortened = piece_prefix("x" * 500, "overview", 100)
    assert shortened.endswith("... (overview)\n\n")
    assert estimate_tokens(shortened) <= 25
    assert piece_prefix("Short", "overview", 3) == ""


def test_export_splits_along_sections(make_chunk):
    chunk = make_chunk("oops", type="mistake-pattern", content="word " * 200)
    config = BuildConfig(export_ceilings={"mistake-pattern": 60})
    context = _context([chunk], config)

    records = ChunkExportRenderer().records_for(chunk, context)

    sections = [r["section"] for r in records]
    assert sections[0] == "overview"
    assert sections[-2:] == ["wrong", "right"]


def test_export_artifact_is_sorted_json_lines(mixed_chunks):
    files = _artifacts(ChunkExportRenderer().render(_context(mixed_chunks)))
    lines = files[EXPORT_PATH].splitlines()

    assert len(lines) == len(mixed_chunks)
    for line in lines:
        assert line == json.dumps(json.loads(line), sort_keys=True, ensure_ascii=False)
    assert [json.loads(line)["parent_id"] for line in lines] == sorted(c.id for c in mixed_chunks)


def test_search_index_lookup(make_chunk, tmp_path):
    chunks = [
        make_chunk("indexing", keywords=("Indexing", " index  base ")),
        make_chunk("slicing", keywords=("slicing", "indexing")),
        make_chunk("other"),
    ]

    artifacts = SearchIndexRenderer().render(_context(chunks))
    path = tmp_path / INDEX_PATH
    path.parent.mkdir(parents=True)
    path.write_bytes(artifacts[0].content)
    index = SearchIndex.from_file(path)

    assert index.exact("INDEXING") == ["indexing", "slicing"]
    assert index.exact("index base") == ["indexing"]
    assert index.exact("missing") == []
    assert index.prefix("index") == {"index base": ["indexing"], "indexing": ["indexing", "slicing"]}
    assert index.prefix_ids("sl") == ["slicing"]
    assert index.card("other")["title"] == "Title other"
    assert len(index) == 3


def test_search_index_rejects_unknown_version(tmp_path):
    path = tmp_path / "index.json"
    path.write_text(json.dumps({"version": 99, "keywords": {}}), encoding="utf-8")

    with pytest.raises(ValueError):
        SearchIndex.from_file(path)


def test_unknown_renderer_name():
    with pytest.raises(ConfigError):
        get_renderers(["static", "pdf"])


def test_registered_renderers_satisfy_protocol():
    renderers = get_renderers(["static", "export", "search"])

    assert [r.name for r in renderers] == ["static", "export", "search"]
    assert all(isinstance(r, Renderer) for r in renderers)


class WordCountRenderer:
    name = "wordcount"

    def render(self, context):
        total = sum(len(chunk.content.split()) for chunk in context.chunks)
        return [Artifact.text("wordcount.txt", f"{total}\n")]


def test_register_renderer_makes_it_selectable(monkeypatch, mixed_chunks):
    monkeypatch.setattr(renderer_registry, "_RENDERERS", dict(renderer_registry._RENDERERS))

    register_renderer(WordCountRenderer())
    (renderer,) = get_renderers(["wordcount"])

    assert isinstance(renderer, Renderer)
    files = _artifacts(renderer.render(_context(mixed_chunks)))
    assert list(files) == ["wordcount.txt"]
