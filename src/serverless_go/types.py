"""Core data types shared by the phases and the driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class BuildUnit:
    """One ``packages/<package>/<action>`` directory."""

    package: str
    action: str
    path: Path

    @property
    def scope(self) -> str:
        return f"{self.package}/{self.action}"


@dataclass
class RewriteResult:
    """Outcome of a rewrite. ``backup`` is None when nothing matched."""

    unit: Path
    cloned: list[str] = field(default_factory=list)
    backup: Path | None = None

    @property
    def changed(self) -> bool:
        return self.backup is not None


@dataclass
class RestoreResult:
    unit: Path
    restored: bool = False
    backup: Path | None = None


@dataclass
class PhaseReport:
    """Per-unit outcome of running one phase over the monorepo."""

    label: str
    succeeded: list[str] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
