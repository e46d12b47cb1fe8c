"""End-to-end tests for the build orchestrator."""

import json
import os
import zipfile

import pytest

import knowpack.renderers as renderer_registry
from knowpack.config import BuildConfig
from knowpack.errors import RendererError
from knowpack.models import BuildStatus
from knowpack.orchestrator import BuildOrchestrator, BuildState, load_manifest
from knowpack.renderers.chunk_export import EXPORT_PATH
from knowpack.renderers.search_index import INDEX_PATH
from knowpack.storage import BuildStore


def _tree(root):
    """Map every file below root to its bytes, keyed by POSIX relative path."""
    files = {}
    for path in sorted(root.rglob("*")):
        if path.is_file():
            files[path.relative_to(root).as_posix()] = path.read_bytes()
    return files


def _export_parents(output):
    lines = (output / EXPORT_PATH).read_text(encoding="utf-8").splitlines()
    return sorted({json.loads(line)["parent_id"] for line in lines})


def _siblings(output):
    return sorted(p.name for p in output.parent.iterdir() if p.name.startswith(f".{output.name}."))


def test_build_writes_every_artifact(sample_corpus, tmp_path):
    output = tmp_path / "out"

    result = BuildOrchestrator(sample_corpus, output).run()

    assert result.state is BuildState.DONE
    assert result.status is BuildStatus.COMPLETED
    assert result.exit_code == 0
    assert result.committed

    files = _tree(output)
    assert "QUICK_REFERENCE.md" in files
    assert "topics/zeros.md" in files
    assert EXPORT_PATH in files
    assert INDEX_PATH in files
    assert "manifest.json" in files

    manifest = load_manifest(output)
    assert manifest.status is BuildStatus.COMPLETED
    assert manifest.valid_count == 6
    assert manifest.issues == []
    for artifact in manifest.artifacts:
        assert artifact.size_bytes == len(files[artifact.path])
    assert "manifest.json" not in [a.path for a in manifest.artifacts]
    assert _siblings(output) == []


def test_builds_are_byte_identical(sample_corpus, tmp_path):
    """The same input and config produce the same bytes, manifest included."""
    first = tmp_path / "first"
    second = tmp_path / "second"

    BuildOrchestrator(sample_corpus, first).run()
    BuildOrchestrator(sample_corpus, second).run()
    before = _tree(first)
    BuildOrchestrator(sample_corpus, first).run()

    assert _tree(first) == _tree(second) == before


def test_parallel_workers_produce_the_same_output(sample_corpus, tmp_path):
    serial = tmp_path / "serial"
    parallel = tmp_path / "parallel"

    BuildOrchestrator(sample_corpus, serial, BuildConfig(workers=1)).run()
    BuildOrchestrator(sample_corpus, parallel, BuildConfig(workers=4)).run()

    assert _tree(serial) == _tree(parallel)


def test_input_change_changes_digest(sample_corpus, tmp_path, write_corpus, chunk_data):
    first = BuildOrchestrator(sample_corpus, tmp_path / "a").run().manifest
    write_corpus(sample_corpus, {"concepts/extra.yaml": chunk_data("extra")})
    second = BuildOrchestrator(sample_corpus, tmp_path / "b").run().manifest

    assert first.input_digest != second.input_digest


def test_invalid_chunk_is_localized(tmp_path, write_corpus, chunk_data):
    """One empty summary among ten chunks: nine rendered, one reported."""
    files = {f"concepts/c{i}.yaml": chunk_data(f"c{i}") for i in range(10)}
    files["concepts/c3.yaml"] = chunk_data("c3", summary="")
    root = write_corpus(tmp_path / "content", files)
    output = tmp_path / "out"

    result = BuildOrchestrator(root, output).run()

    manifest = result.manifest
    assert result.status is BuildStatus.COMPLETED_WITH_ISSUES
    assert result.exit_code == 0
    assert (manifest.valid_count, manifest.invalid_count) == (9, 1)
    invalid = [o for o in manifest.chunks if not o.valid]
    assert invalid[0].chunk_id == "c3"
    assert invalid[0].errors == ["summary: must not be empty"]
    assert any("c3.yaml" in issue for issue in manifest.issues)

    assert not (output / "topics" / "c3.md").exists()
    assert len(list((output / "topics").glob("*.md"))) == 9
    assert _export_parents(output) == sorted(f"c{i}" for i in range(10) if i != 3)


def test_dangling_reference_is_reported_not_dropped(tmp_path, write_corpus, chunk_data):
    root = write_corpus(
        tmp_path / "content",
        {"a.yaml": chunk_data("a", related=["ghost"], keywords=["alpha"]), "b.yaml": chunk_data("b")},
    )
    output = tmp_path / "out"

    result = BuildOrchestrator(root, output).run()

    manifest = result.manifest
    assert result.status is BuildStatus.COMPLETED_WITH_ISSUES
    assert manifest.dangling == [{"source": "a", "target": "ghost", "kind": "related"}]
    assert "dangling reference: a -> ghost (related)" in manifest.issues
    assert "`ghost` (missing)" in (output / "topics" / "a.md").read_text(encoding="utf-8")
    assert "a" in _export_parents(output)
    assert json.loads((output / INDEX_PATH).read_text(encoding="utf-8"))["keywords"]["alpha"] == ["a"]


def test_reference_cycle_is_tolerated(tmp_path, write_corpus, chunk_data):
    root = write_corpus(
        tmp_path / "content",
        {"a.yaml": chunk_data("a", related=["b"]), "b.yaml": chunk_data("b", see_also=["a"])},
    )

    result = BuildOrchestrator(root, tmp_path / "out").run()

    assert result.state is BuildState.DONE
    assert result.manifest.cycles == [["a", "b", "a"]]
    assert result.status is BuildStatus.COMPLETED_WITH_ISSUES


def test_duplicate_identifiers_exclude_both(tmp_path, write_corpus, chunk_data):
    root = write_corpus(
        tmp_path / "content",
        {"one.yaml": chunk_data("same"), "two.yaml": chunk_data("same"), "three.yaml": chunk_data("other")},
    )
    output = tmp_path / "out"

    manifest = BuildOrchestrator(root, output).run().manifest

    assert manifest.invalid_count == 2
    assert _export_parents(output) == ["other"]


def test_load_errors_are_recorded(tmp_path, write_corpus, chunk_data):
    root = write_corpus(
        tmp_path / "content",
        {"bad.yaml": "id: [oops\n", "good.yaml": chunk_data("good")},
    )

    manifest = BuildOrchestrator(root, tmp_path / "out").run().manifest

    assert manifest.status is BuildStatus.COMPLETED_WITH_ISSUES
    assert [e["source"] for e in manifest.load_errors] == ["bad.yaml"]
    assert manifest.valid_count == 1


def test_missing_content_root_fails_and_keeps_previous_build(sample_corpus, tmp_path):
    output = tmp_path / "out"
    BuildOrchestrator(sample_corpus, output).run()
    previous = _tree(output)

    result = BuildOrchestrator(tmp_path / "missing", output).run()

    assert result.state is BuildState.FAILED
    assert result.status is BuildStatus.FAILED
    assert result.exit_code == 1
    assert not result.committed
    assert result.manifest.error
    assert _tree(output) == previous


def test_budget_violation_is_partial(tmp_path, write_corpus, chunk_data):
    """Critical chunks over budget abort only the static document."""
    root = write_corpus(
        tmp_path / "content",
        {"a.yaml": chunk_data("a", priority="critical"), "b.yaml": chunk_data("b")},
    )
    output = tmp_path / "out"

    result = BuildOrchestrator(root, output, BuildConfig(budget=1)).run()

    manifest = result.manifest
    assert result.status is BuildStatus.PARTIAL
    assert result.exit_code == 2
    assert not (output / "QUICK_REFERENCE.md").exists()
    assert not (output / "topics").exists()
    assert (output / EXPORT_PATH).exists()
    assert (output / INDEX_PATH).exists()
    static = [r for r in manifest.renderers if r.name == "static"][0]
    assert not static.ok
    assert manifest.selection["budget"] == 1
    assert any(issue.startswith("budget violation:") for issue in manifest.issues)


def test_renderer_failure_is_partial(monkeypatch, sample_corpus, tmp_path):
    class BrokenRenderer:
        name = "broken"

        def render(self, context):
            raise RendererError("cannot render", renderer=self.name)

    monkeypatch.setitem(renderer_registry._RENDERERS, "broken", BrokenRenderer())
    output = tmp_path / "out"

    result = BuildOrchestrator(sample_corpus, output, BuildConfig(renderers=("export", "broken"))).run()

    assert result.status is BuildStatus.PARTIAL
    assert (output / EXPORT_PATH).exists()
    assert "renderer 'broken' failed: cannot render" in result.manifest.issues


def test_commit_failure_keeps_previous_build(monkeypatch, sample_corpus, tmp_path):
    output = tmp_path / "out"
    BuildOrchestrator(sample_corpus, output).run()
    previous = _tree(output)

    real_replace = os.replace

    def failing_replace(src, dst):
        if ".staging-" in os.fspath(src):
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr("knowpack.storage.store.os.replace", failing_replace)

    result = BuildOrchestrator(sample_corpus, output, BuildConfig(budget=4000)).run()

    assert result.status is BuildStatus.FAILED
    assert "disk full" in result.manifest.error
    assert _tree(output) == previous
    assert _siblings(output) == []


def test_stale_staging_is_removed(sample_corpus, tmp_path):
    output = tmp_path / "out"
    stale = tmp_path / ".out.staging-deadbeef"
    stale.mkdir()
    (stale / "leftover.txt").write_text("partial", encoding="utf-8")

    BuildOrchestrator(sample_corpus, output).run()

    assert not stale.exists()


def test_interrupted_commit_is_recovered(tmp_path):
    output = tmp_path / "out"
    backup = tmp_path / ".out.previous-deadbeef"
    backup.mkdir()
    (backup / "manifest.json").write_text("{}", encoding="utf-8")

    BuildStore(output).recover()

    assert (output / "manifest.json").read_text(encoding="utf-8") == "{}"
    assert not backup.exists()


def test_dry_run_writes_nothing(sample_corpus, tmp_path):
    result = BuildOrchestrator(sample_corpus).run(dry_run=True)

    assert result.state is BuildState.DONE
    assert result.manifest.artifacts == []
    assert result.selection is not None
    assert "indexing" in result.selection.included_ids
    assert sorted(p.name for p in tmp_path.iterdir()) == ["content"]


def test_state_changes_are_observed(sample_corpus, tmp_path):
    states = []

    BuildOrchestrator(sample_corpus, tmp_path / "out", on_state_change=states.append).run()

    assert states == [
        BuildState.LOADING,
        BuildState.VALIDATING,
        BuildState.RESOLVING,
        BuildState.SELECTING,
        BuildState.RENDERING,
        BuildState.WRITING,
        BuildState.DONE,
    ]


def test_orchestrator_runs_once(sample_corpus, tmp_path):
    orchestrator = BuildOrchestrator(sample_corpus, tmp_path / "out")
    orchestrator.run()

    with pytest.raises(RuntimeError):
        orchestrator.run()


def test_zip_content_root(sample_corpus, tmp_path):
    archive = tmp_path / "content.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for path in sorted(sample_corpus.rglob("*.yaml")):
            zf.write(path, path.relative_to(sample_corpus).as_posix())

    from_folder = BuildOrchestrator(sample_corpus, tmp_path / "folder").run().manifest
    from_zip = BuildOrchestrator(archive, tmp_path / "zip").run().manifest

    assert from_zip.status is BuildStatus.COMPLETED
    assert from_zip.input_digest == from_folder.input_digest
    assert from_zip.to_json() == from_folder.to_json()
