"""Unit tests for unit discovery and phase execution."""

from __future__ import annotations

import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from serverless_go.config import ProjectSpec, ToolConfig
from serverless_go.driver import clean, deploy, discover_units, run_phase
from serverless_go.errors import ConfigNotFound, ScratchDirExists
from serverless_go.restore import restore_unit
from serverless_go.rewrite import rewrite_unit
from serverless_go.telemetry import TelemetrySink, read_events
from serverless_go.types import BuildUnit

from conftest import GO_MOD, FakeCloner

PATTERNS = ["example.com/priv/*"]


def _project(spec: dict) -> ProjectSpec:
    return ProjectSpec.model_validate(spec)


def _tree(root: Path) -> dict[str, bytes | None]:
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob("*"))
    }


class TestDiscoverUnits:
    def test_finds_go_actions(self, make_unit, tmp_path):
        make_unit("api", "hello")
        make_unit("api", "bye")
        node = tmp_path / "packages" / "web" / "index"
        node.mkdir(parents=True)
        (node / "package.json").write_text("{}")
        project = _project(
            {
                "packages": [
                    {"name": "api", "actions": [{"name": "hello"}, {"name": "bye"}]},
                    {"name": "web", "actions": [{"name": "index"}]},
                ]
            }
        )

        units, errors = discover_units(tmp_path / "packages", project)

        assert [u.scope for u in units] == ["api/hello", "api/bye"]
        assert units[0].path == tmp_path / "packages" / "api" / "hello"
        assert errors == {}

    def test_missing_directories_are_errors(self, make_unit, tmp_path):
        make_unit("api", "hello")
        project = _project(
            {
                "packages": [
                    {"name": "api", "actions": [{"name": "hello"}, {"name": "ghost"}]},
                    {"name": "gone", "actions": [{"name": "x"}]},
                ]
            }
        )

        units, errors = discover_units(tmp_path / "packages", project)

        assert [u.scope for u in units] == ["api/hello"]
        assert set(errors) == {"api/ghost", "gone"}
        assert all(isinstance(e, ConfigNotFound) for e in errors.values())


class TestRunPhase:
    def test_collects_errors_and_continues(self, tmp_path):
        units = [BuildUnit("p", name, tmp_path / name) for name in ("a", "b", "c")]
        seen: list[str] = []

        def fn(unit: BuildUnit) -> None:
            seen.append(unit.action)
            if unit.action == "b":
                raise ScratchDirExists("boom", unit=unit.path)

        report = run_phase(units, "deploy", fn)

        assert seen == ["a", "b", "c"]
        assert report.label == "deploy"
        assert report.succeeded == ["p/a", "p/c"]
        assert list(report.errors) == ["p/b (deploy)"]
        assert report.has_errors

    def test_parallel_runs_every_unit(self, tmp_path):
        units = [BuildUnit("p", str(i), tmp_path / str(i)) for i in range(12)]
        lock = threading.Lock()
        seen: set[str] = set()

        def fn(unit: BuildUnit) -> None:
            with lock:
                seen.add(unit.action)

        report = run_phase(units, "clean", fn, jobs=4)

        assert seen == {str(i) for i in range(12)}
        assert sorted(report.succeeded) == sorted(u.scope for u in units)
        assert not report.has_errors

    def test_broken_telemetry_does_not_stop_units(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        sink = TelemetrySink(enabled=True, path=blocker / "t.jsonl")
        units = [BuildUnit("p", "a", tmp_path), BuildUnit("p", "b", tmp_path)]
        seen: list[str] = []

        report = run_phase(units, "clean", lambda unit: seen.append(unit.action), telemetry=sink)

        assert seen == ["a", "b"]
        assert report.succeeded == ["p/a", "p/b"]
        assert not report.has_errors

    def test_telemetry_events(self, tmp_path):
        sink = TelemetrySink(enabled=True, path=tmp_path / "t.jsonl")
        units = [BuildUnit("p", "ok", tmp_path), BuildUnit("p", "bad", tmp_path)]

        def fn(unit: BuildUnit) -> None:
            if unit.action == "bad":
                raise RuntimeError("nope")

        run_phase(units, "deploy", fn, telemetry=sink)

        events = read_events(sink.path)
        assert [e["type"] for e in events] == [
            "phase_started",
            "unit_succeeded",
            "unit_failed",
            "phase_completed",
        ]
        assert len({e["run_id"] for e in events}) == 1
        assert events[2]["data"]["error"] == "RuntimeError"
        assert events[3]["data"] == {"phase": "deploy", "succeeded": 1, "failed": 1}


class TestDeployClean:
    def test_deploy_then_clean(self, make_unit, tmp_path):
        a = make_unit("api", "a")
        b = make_unit("api", "b", go_mod="module example.com/b\n\nrequire github.com/x/y v1.0.0\n")
        before = _tree(tmp_path / "packages")
        units = [BuildUnit("api", "a", a), BuildUnit("api", "b", b)]
        config = ToolConfig(private_dir=".private", jobs=2)

        report = deploy(units, PATTERNS, config, cloner=FakeCloner())
        assert not report.has_errors
        assert (a / ".private").is_dir()
        assert not (b / ".private").exists()

        report = clean(units, config)
        assert not report.has_errors
        assert _tree(tmp_path / "packages") == before

    def test_one_failing_unit_does_not_stop_others(self, make_unit):
        a = make_unit("api", "a")
        b = make_unit("api", "b")
        (a / ".private").mkdir()
        units = [BuildUnit("api", "a", a), BuildUnit("api", "b", b)]

        report = deploy(units, PATTERNS, ToolConfig(private_dir=".private"), cloner=FakeCloner())

        assert report.succeeded == ["api/b"]
        assert isinstance(report.errors["api/a (deploy)"], ScratchDirExists)

    def test_clone_settings_reach_git_cloner(self, make_unit, monkeypatch):
        captured = {}

        class _Recorder(FakeCloner):
            def __init__(self, **kwargs):
                super().__init__()
                captured.update(kwargs)

        monkeypatch.setattr("serverless_go.driver.GitCloner", _Recorder)
        unit = make_unit()
        config = ToolConfig(private_dir=".private")
        config.clone.depth = 1
        config.clone.url_template = "ssh://git@{module}"

        deploy([BuildUnit("api", "hello", unit)], PATTERNS, config)

        assert captured == {"url_template": "ssh://git@{module}", "git_binary": "git", "depth": 1}


def test_concurrent_units_are_isolated(make_unit, tmp_path):
    """Rewrite on A and restore on B at once equals running them one after the other."""
    a = make_unit("api", "a")
    b = make_unit("api", "b")
    rewrite_unit(b, PATTERNS, ".private", cloner=FakeCloner())

    sequential = tmp_path / "sequential"
    shutil.copytree(tmp_path / "packages", sequential)
    rewrite_unit(sequential / "api" / "a", PATTERNS, ".private", cloner=FakeCloner())
    restore_unit(sequential / "api" / "b", ".private")

    with ThreadPoolExecutor(max_workers=2) as pool:
        fa = pool.submit(rewrite_unit, a, PATTERNS, ".private", cloner=FakeCloner())
        fb = pool.submit(restore_unit, b, ".private")
        fa.result()
        fb.result()

    assert _tree(tmp_path / "packages") == _tree(sequential)
    assert (b / "go.mod").read_text() == GO_MOD
