"""Fetching private module sources with ``git clone``."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class CloneResult:
    ok: bool
    output: str = ""


class Cloner(Protocol):
    def clone(self, module: str, dest: Path) -> CloneResult: ...


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        args,
        cwd=str(cwd) if cwd else None,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )


class GitCloner:
    """Clone a module path from ``url_template`` (``{module}`` is substituted)."""

    def __init__(
        self,
        url_template: str = "https://{module}",
        git_binary: str = "git",
        depth: int | None = None,
    ) -> None:
        self.url_template = url_template
        self.git_binary = git_binary
        self.depth = depth

    def url_for(self, module: str) -> str:
        return self.url_template.format(module=module)

    def clone(self, module: str, dest: Path) -> CloneResult:
        args = [self.git_binary, "clone", "--quiet"]
        if self.depth:
            args += ["--depth", str(self.depth)]
        args += [self.url_for(module), str(dest)]
        try:
            res = _run(args)
        except OSError as e:
            return CloneResult(ok=False, output=f"failed to run {self.git_binary}: {e}")
        return CloneResult(ok=res.returncode == 0, output=res.stdout or "")
