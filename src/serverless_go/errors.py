"""Error types raised by the rewrite/restore phases and the config layer."""

from __future__ import annotations

from pathlib import Path


class PrivateRepoError(RuntimeError):
    """Base class for every per-unit failure."""

    def __init__(self, message: str, *, unit: Path | str | None = None) -> None:
        super().__init__(message)
        self.unit = Path(unit) if unit is not None else None


class PatternError(PrivateRepoError):
    def __init__(self, pattern: str, reason: str, *, unit: Path | str | None = None) -> None:
        super().__init__(f"malformed private repo pattern {pattern!r}: {reason}", unit=unit)
        self.pattern = pattern


class ManifestParseError(PrivateRepoError):
    def __init__(self, filename: str, line: int, reason: str, *, unit: Path | str | None = None) -> None:
        super().__init__(f"{filename}:{line}: {reason}", unit=unit)
        self.filename = filename
        self.line = line


class CloneError(PrivateRepoError):
    """A single dependency failed to clone. ``output`` is the captured git output."""

    def __init__(self, module: str, output: str, *, unit: Path | str | None = None) -> None:
        super().__init__(f"failed cloning private repo {module}: {output.strip()}", unit=unit)
        self.module = module
        self.output = output


class ScratchDirExists(PrivateRepoError):
    pass


class CleanupError(PrivateRepoError):
    pass


class FilesystemError(PrivateRepoError):
    """An OSError annotated with the operation and path that raised it."""

    def __init__(self, operation: str, path: Path | str, cause: OSError, *, unit: Path | str | None = None) -> None:
        super().__init__(f"failed {operation} {path}: {cause}", unit=unit)
        self.operation = operation
        self.path = Path(path)


class IntegrityError(PrivateRepoError):
    """The unit's on-disk state does not match what restore expects."""


class BackupNotFound(IntegrityError):
    pass


class AmbiguousBackup(IntegrityError):
    def __init__(self, backups: list[Path], *, unit: Path | str | None = None) -> None:
        names = ", ".join(sorted(p.name for p in backups))
        super().__init__(f"found {len(backups)} manifest backups, expected one: {names}", unit=unit)
        self.backups = backups


class BackupExists(IntegrityError):
    """A backup is present but its scratch dir is not, so rewriting would clobber it."""

    def __init__(self, backups: list[Path], *, unit: Path | str | None = None) -> None:
        names = ", ".join(sorted(p.name for p in backups))
        super().__init__(f"manifest backup already exists, restore or remove it first: {names}", unit=unit)
        self.backups = backups


class ChecksumMismatch(IntegrityError):
    def __init__(self, backup: Path, expected: str, actual: str, *, unit: Path | str | None = None) -> None:
        super().__init__(
            f"manifest checksum mismatch: backup {backup.name} expects {expected}, manifest hashes to {actual}",
            unit=unit,
        )
        self.backup = backup
        self.expected = expected
        self.actual = actual


class ConfigNotFound(FileNotFoundError):
    pass


class ConfigParseError(ValueError):
    pass


class NotMonorepoError(RuntimeError):
    pass
