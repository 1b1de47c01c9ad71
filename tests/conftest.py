"""Shared fixtures: fake clones and throwaway monorepos."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from serverless_go.clone import CloneResult

GO_MOD = """module example.com/app

go 1.21

require (
\texample.com/priv/foo v1.2.3
\tgithub.com/pkg/errors v0.9.1
\texample.com/priv/bar v0.1.0 // indirect
)
"""


def pytest_sessionstart(session):  # noqa: ARG001
    # Never reach a real remote from tests.
    os.environ.setdefault("GIT_TERMINAL_PROMPT", "0")


class FakeCloner:
    """Creates a tiny module tree instead of running git."""

    def __init__(self, fail: set[str] | None = None) -> None:
        self.fail = set(fail or ())
        self.calls: list[tuple[str, Path]] = []

    def clone(self, module: str, dest: Path) -> CloneResult:
        self.calls.append((module, dest))
        if module in self.fail:
            return CloneResult(ok=False, output=f"fatal: repository 'https://{module}/' not found\n")
        dest.mkdir()
        (dest / "go.mod").write_text(f"module {module}\n")
        return CloneResult(ok=True)


@pytest.fixture
def fake_cloner() -> FakeCloner:
    return FakeCloner()


@pytest.fixture
def make_unit(tmp_path: Path):
    """Factory creating ``packages/<pkg>/<act>/go.mod`` under tmp_path."""

    def _make(package: str = "api", action: str = "hello", go_mod: str | bytes = GO_MOD) -> Path:
        unit = tmp_path / "packages" / package / action
        unit.mkdir(parents=True)
        data = go_mod.encode() if isinstance(go_mod, str) else go_mod
        (unit / "go.mod").write_bytes(data)
        return unit

    return _make
