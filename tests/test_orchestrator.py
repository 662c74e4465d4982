"""End-to-end tests for folobuild.orchestrator."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from folobuild import orchestrator as orchestrator_module
from folobuild.context import BuildContext
from folobuild.events import EventKind
from folobuild.optimizers import OptimizationHook, PrecompressHook
from folobuild.orchestrator import BuildState, Orchestrator
from folobuild.stages import process_static
from tests._fixtures.doubles import CopyBundler, RecordingReporter, deny_listing
from tests._fixtures.project_builder import ProjectBuilder


def _orchestrator(**overrides) -> Orchestrator:
    options = {
        "bundler": CopyBundler(),
        "hooks": [],
        "runtime_version": (3, 12, 0),
        "env": {},
    }
    options.update(overrides)
    return Orchestrator(**options)


class _ErrorHook(OptimizationHook):
    name = "always-errors"

    def run(self, ctx: BuildContext) -> None:
        ctx.error("synthetic failure")


def test_build_without_external_bundler_uses_fallback(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator(bundler=None)

    assert orchestrator.build(project.config()) is True

    home = project.dist / "pages" / "home.js"
    assert home.stat().st_size > 0
    assert "// render" not in home.read_text(encoding="utf-8")
    mentions = [w for w in orchestrator.stats.warnings if "home.js" in w and "fallback" in w]
    assert len(mentions) == 1
    assert orchestrator.state is BuildState.DONE


def test_missing_source_directory_fails_before_touching_output(project: ProjectBuilder) -> None:
    project.write_package()
    previous = project.dist / "keep.txt"
    previous.parent.mkdir(parents=True)
    previous.write_text("from last build", encoding="utf-8")
    reporter = RecordingReporter()
    orchestrator = _orchestrator(reporters=[reporter])

    assert orchestrator.build(project.config()) is False

    assert orchestrator.state is BuildState.FAILED
    assert "Source directory not found" in str(orchestrator.failure)
    assert previous.read_text(encoding="utf-8") == "from last build"
    assert reporter.kinds()[-1] is EventKind.BUILD_FAILED
    assert EventKind.BUILD_FINISHED not in reporter.kinds()


def test_missing_optional_directory_is_a_single_warning(project: ProjectBuilder) -> None:
    project.seed(skip=("src/views",))
    orchestrator = _orchestrator()

    assert orchestrator.build(project.config()) is True

    assert [w for w in orchestrator.stats.warnings if "views" in w] == [
        "Views directory not found, skipping: src/views"
    ]
    assert orchestrator.stats.errors == []


def test_states_follow_the_stage_sequence(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator()

    orchestrator.build(project.config())

    assert orchestrator.states == [
        BuildState.INIT,
        BuildState.PREFLIGHT,
        BuildState.CLEANED,
        BuildState.SCAFFOLDED,
        BuildState.TEMPLATES_DONE,
        BuildState.PAGES_DONE,
        BuildState.COMPONENTS_DONE,
        BuildState.SERVER_DONE,
        BuildState.STATIC_DONE,
        BuildState.MANIFEST_WRITTEN,
        BuildState.METADATA_WRITTEN,
        BuildState.DONE,
    ]


def test_manifest_matches_output_tree(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator()

    orchestrator.build(project.config())

    payload = json.loads((project.dist / "asset-manifest.json").read_text(encoding="utf-8"))
    assert payload["version"] == "2.3.4"
    static = project.dist / "static"
    assert set(payload["assets"]) == {"script.js", "style.css"}
    for original, hashed in payload["assets"].items():
        assert (static / hashed).is_file()
        assert not (static / original).exists()


def test_rebuilding_unchanged_sources_is_stable(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator()

    orchestrator.build(project.config())
    first = orchestrator.manifest.as_dict()
    orchestrator.build(project.config())

    assert orchestrator.manifest.as_dict() == first
    assert orchestrator.states[0] is BuildState.INIT
    assert orchestrator.states.count(BuildState.DONE) == 1


def test_outputs_include_metadata_and_pruned_descriptor(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator(env={"NODE_ENV": "staging"})

    orchestrator.build(project.config(minify=False))

    metadata = json.loads((project.dist / "build-metadata.json").read_text(encoding="utf-8"))
    assert metadata["environment"] == "staging"
    assert metadata["runtimeVersion"] == "3.12.0"
    assert metadata["config"]["minify"] is False
    assert metadata["buildTime"].endswith("Z")
    assert metadata["stats"]["filesProcessed"] == orchestrator.stats.files_processed
    package = json.loads((project.dist / "package.json").read_text(encoding="utf-8"))
    assert set(package) == {
        "name",
        "version",
        "description",
        "type",
        "main",
        "engines",
        "dependencies",
        "license",
    }


def test_recorded_errors_fail_only_in_strict_mode(project: ProjectBuilder) -> None:
    project.seed()

    lenient = _orchestrator(hooks=[_ErrorHook()])
    assert lenient.build(project.config()) is True
    assert lenient.stats.errors == ["synthetic failure"]

    strict = _orchestrator(hooks=[_ErrorHook()])
    assert strict.build(project.config(strict=True)) is False
    assert strict.state is BuildState.DONE
    assert strict.failure is None


def test_events_bracket_every_stage(project: ProjectBuilder) -> None:
    project.seed(skip=("src/api",))
    reporter = RecordingReporter()
    orchestrator = _orchestrator(reporters=[reporter])

    orchestrator.build(project.config())

    kinds = reporter.kinds()
    assert kinds[0] is EventKind.STAGE_STARTED
    assert kinds[-1] is EventKind.BUILD_FINISHED
    assert kinds.count(EventKind.STAGE_STARTED) == kinds.count(EventKind.STAGE_FINISHED) == 12
    warnings = [event for event in reporter.events if event.kind is EventKind.FILE_WARNING]
    assert [(event.stage, event.path) for event in warnings] == [("process_server", "src/api")]
    assert reporter.events[-1].stats is orchestrator.stats


def test_atomic_build_replaces_output_in_one_step(project: ProjectBuilder) -> None:
    project.seed()
    stale = project.dist / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")
    orchestrator = _orchestrator()

    assert orchestrator.build(project.config(atomic=True)) is True

    assert not stale.exists()
    assert (project.dist / "server.js").is_file()
    assert (project.dist / "build-metadata.json").is_file()
    assert list(project.root.glob(".dist.staging-*")) == []


def test_atomic_build_failure_keeps_previous_output(project: ProjectBuilder) -> None:
    project.write_package()
    stale = project.dist / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")

    assert _orchestrator().build(project.config(atomic=True)) is False

    assert stale.read_text(encoding="utf-8") == "old"
    assert list(project.root.glob(".dist.staging-*")) == []


def test_precompress_hook_runs_after_manifest(project: ProjectBuilder) -> None:
    project.seed()
    config = project.config()
    config = replace(config, compression=replace(config.compression, threshold=0))
    orchestrator = _orchestrator(hooks=[PrecompressHook()])

    assert orchestrator.build(config) is True

    assert (project.dist / "server.js.gz").is_file()
    assert (project.dist / "asset-manifest.json.gz").is_file()
    assert orchestrator.stats.compressed_size > 0


def test_unreadable_directory_is_a_recorded_error(
    project: ProjectBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    project.seed()
    project.write({"public/locked/x.css": "a{}"})
    deny_listing(monkeypatch, project.root / "public" / "locked")
    reporter = RecordingReporter()
    orchestrator = _orchestrator(reporters=[reporter])

    assert orchestrator.build(project.config(atomic=True)) is True

    assert orchestrator.stats.errors == ["Unable to read directory public/locked: Permission denied"]
    assert orchestrator.state is BuildState.DONE
    assert reporter.kinds()[-1] is EventKind.BUILD_FINISHED
    assert (project.dist / "build-metadata.json").is_file()
    assert list(project.root.glob(".dist.staging-*")) == []


def test_unexpected_stage_exception_is_contained(
    project: ProjectBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    project.seed()

    def _explode(ctx: BuildContext) -> None:
        raise RuntimeError("boom")

    stages = [
        (label, _explode if stage is process_static else stage, state)
        for label, stage, state in orchestrator_module._APPLICATION_STAGES
    ]
    monkeypatch.setattr(orchestrator_module, "_APPLICATION_STAGES", tuple(stages))
    orchestrator = _orchestrator()

    assert orchestrator.build(project.config()) is True

    assert orchestrator.stats.errors == ["Processing static assets failed: boom"]
    assert orchestrator.state is BuildState.DONE
    assert (project.dist / "build-metadata.json").is_file()


def test_interrupted_atomic_build_removes_staging(
    project: ProjectBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    project.seed()

    class _Interrupted(BaseException):
        pass

    def _interrupt(ctx: BuildContext) -> None:
        raise _Interrupted()

    stages = [
        (label, _interrupt if stage is process_static else stage, state)
        for label, stage, state in orchestrator_module._APPLICATION_STAGES
    ]
    monkeypatch.setattr(orchestrator_module, "_APPLICATION_STAGES", tuple(stages))

    with pytest.raises(_Interrupted):
        _orchestrator().build(project.config(atomic=True))

    assert list(project.root.glob(".dist.staging-*")) == []


def test_configured_optimizations_select_hooks(project: ProjectBuilder) -> None:
    project.seed()
    config = project.config(optimizations=("precompress",))
    config = replace(config, compression=replace(config.compression, threshold=0))
    orchestrator = _orchestrator(hooks=None)

    assert orchestrator.build(config) is True

    assert (project.dist / "server.js.gz").is_file()
    assert not any(w.startswith("Budget") for w in orchestrator.stats.warnings)


def test_unknown_optimization_is_a_setup_failure(project: ProjectBuilder) -> None:
    project.seed()
    orchestrator = _orchestrator(hooks=None)

    assert orchestrator.build(project.config(optimizations=("nope",))) is False

    assert orchestrator.state is BuildState.FAILED
    assert "nope" in str(orchestrator.failure)
    assert not project.dist.exists()


def test_broken_hook_entry_point_is_a_setup_failure(
    project: ProjectBuilder, monkeypatch: pytest.MonkeyPatch
) -> None:
    project.seed()

    class _BrokenEntry:
        name = "broken"

        def load(self) -> object:
            raise ImportError("no module named broken_hooks")

    monkeypatch.setattr("folobuild.optimizers._iter_entry_points", lambda: [_BrokenEntry()])
    orchestrator = _orchestrator(hooks=None)

    assert orchestrator.build(project.config()) is False

    assert orchestrator.state is BuildState.FAILED
    assert "Failed to load optimization hook 'broken'" in str(orchestrator.failure)
