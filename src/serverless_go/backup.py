"""Backup naming and unit state inspection.

A rewritten unit carries exactly one ``<manifest>.<digest>.bak`` file next to
its manifest. The digest is taken over the *rewritten* manifest, so restore can
prove that the manifest it is about to discard is the one the last rewrite
produced.
"""

from __future__ import annotations

import base64
import hashlib
import os
from enum import Enum
from pathlib import Path

from .errors import FilesystemError

BACKUP_SUFFIX = ".bak"


class UnitState(str, Enum):
    CLEAN = "clean"
    REWRITTEN = "rewritten"
    PARTIAL = "partial"
    ORPHANED = "orphaned"
    AMBIGUOUS = "ambiguous"


def manifest_digest(data: bytes) -> str:
    """SHA-1 of ``data`` as URL-safe base64 (never contains ``/``)."""
    return base64.urlsafe_b64encode(hashlib.sha1(data).digest()).decode("ascii")


def backup_name(manifest_name: str, digest: str) -> str:
    return f"{manifest_name}.{digest}{BACKUP_SUFFIX}"


def digest_from_backup(manifest_name: str, backup: Path) -> str:
    return backup.name[len(manifest_name) + 1 : -len(BACKUP_SUFFIX)]


def find_backups(unit_dir: Path, manifest_name: str) -> list[Path]:
    prefix = f"{manifest_name}."
    try:
        names = sorted(os.listdir(unit_dir))
    except OSError as e:
        raise FilesystemError("reading dir", unit_dir, e, unit=unit_dir) from e
    return [
        unit_dir / name
        for name in names
        if name.startswith(prefix)
        and name.endswith(BACKUP_SUFFIX)
        and len(name) > len(prefix) + len(BACKUP_SUFFIX)
        and (unit_dir / name).is_file()
    ]


def unit_state(unit_dir: Path | str, private_dir: str, manifest_name: str = "go.mod") -> UnitState:
    unit_dir = Path(unit_dir)
    backups = find_backups(unit_dir, manifest_name)
    scratch = (unit_dir / private_dir).is_dir()
    if len(backups) > 1:
        return UnitState.AMBIGUOUS
    if backups:
        return UnitState.REWRITTEN if scratch else UnitState.ORPHANED
    return UnitState.PARTIAL if scratch else UnitState.CLEAN
