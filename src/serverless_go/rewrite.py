"""Rewrite phase: redirect private dependencies to local clones.

For one build unit the manifest's private requirements are cloned under the
unit's scratch directory and pointed at with ``replace`` directives. The
original manifest is renamed to a backup named after the digest of the
rewritten manifest *before* the rewritten bytes are written, so an interrupted
run leaves either the untouched original or a backup plus rewritten pair.
"""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
from collections.abc import Sequence
from pathlib import Path

from .backup import backup_name, find_backups, manifest_digest
from .clone import Cloner, GitCloner
from .errors import BackupExists, CloneError, FilesystemError, PrivateRepoError, ScratchDirExists
from .gomod import GoMod
from .matcher import match_dependencies
from .types import RewriteResult

logger = logging.getLogger(__name__)


def unit_label(unit_dir: Path) -> str:
    return f"[{unit_dir.parent.name}/{unit_dir.name}]"


def validate_private_dir(private_dir: str) -> str:
    """Reject scratch dir names that would not be a single child of the unit."""
    name = private_dir.strip()
    if not name:
        raise ValueError("private repo directory name is required")
    if name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"private repo directory must be a plain directory name: {private_dir!r}")
    return name


def write_durable(path: Path, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def rewrite_unit(
    unit_dir: Path | str,
    patterns: Sequence[str],
    private_dir: str,
    *,
    manifest_name: str = "go.mod",
    cloner: Cloner | None = None,
    rollback_on_failure: bool = False,
) -> RewriteResult:
    """Clone matching private requirements and rewrite the unit's manifest.

    Raises:
        ScratchDirExists: the scratch dir is left over from an earlier rewrite.
        BackupExists: a manifest backup is present without its scratch dir.
        ManifestParseError: the manifest is malformed.
        PatternError: a pattern is malformed.
        CloneError: a clone failed. Earlier clones stay in place unless
            ``rollback_on_failure`` is set.
        FilesystemError: any other I/O failure.
    """
    unit_dir = Path(unit_dir)
    private_dir = validate_private_dir(private_dir)
    label = unit_label(unit_dir)
    result = RewriteResult(unit=unit_dir)

    if not patterns:
        logger.info("%s no private repo patterns, nothing to do", label)
        return result

    scratch = unit_dir / private_dir
    if scratch.exists():
        raise ScratchDirExists(f"private repo dir already exists: {scratch}", unit=unit_dir)
    backups = find_backups(unit_dir, manifest_name)
    if backups:
        raise BackupExists(backups, unit=unit_dir)

    manifest = unit_dir / manifest_name
    try:
        original = manifest.read_bytes()
    except OSError as e:
        raise FilesystemError("reading", manifest, e, unit=unit_dir) from e

    try:
        mod = GoMod.parse(manifest_name, original)
        matched = match_dependencies(patterns, mod.requires)
    except PrivateRepoError as e:
        e.unit = unit_dir
        raise

    if not matched:
        logger.info("%s no private repos found", label)
        return result

    try:
        scratch.mkdir()
    except OSError as e:
        raise FilesystemError("creating", scratch, e, unit=unit_dir) from e

    cloner = cloner or GitCloner()
    try:
        for req in matched:
            dest = scratch.joinpath(*req.path.split("/"))
            logger.info("%s cloning private repo %s", label, req.path)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError("creating", dest.parent, e, unit=unit_dir) from e
            res = cloner.clone(req.path, dest)
            if not res.ok:
                raise CloneError(req.path, res.output, unit=unit_dir)
            result.cloned.append(req.path)
    except PrivateRepoError:
        if rollback_on_failure:
            logger.warning("%s clone failed, removing %s", label, scratch)
            try:
                shutil.rmtree(scratch)
            except OSError as e:
                logger.warning("%s could not remove %s: %s", label, scratch, e)
        raise

    for req in matched:
        local = "./" + posixpath.join(private_dir, req.path)
        logger.debug("%s replace %s %s => %s", label, req.path, req.version, local)
        mod.add_replace(req.path, req.version, local)

    rewritten = mod.format()
    backup = unit_dir / backup_name(manifest_name, manifest_digest(rewritten))

    try:
        os.rename(manifest, backup)
    except OSError as e:
        raise FilesystemError("backing up", manifest, e, unit=unit_dir) from e
    try:
        write_durable(manifest, rewritten)
    except OSError as e:
        raise FilesystemError("writing", manifest, e, unit=unit_dir) from e

    logger.info("%s rewrote %s, backup %s", label, manifest_name, backup.name)
    result.backup = backup
    return result
