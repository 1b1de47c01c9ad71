"""Restore phase: put a unit's original manifest back.

Restore never guesses. The single backup's name must carry the digest of the
manifest currently on disk; anything else is reported as an integrity error
and the unit is left exactly as found.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from .backup import digest_from_backup, find_backups, manifest_digest
from .errors import AmbiguousBackup, BackupNotFound, ChecksumMismatch, CleanupError, FilesystemError
from .rewrite import unit_label, validate_private_dir
from .types import RestoreResult

logger = logging.getLogger(__name__)


def restore_unit(
    unit_dir: Path | str,
    private_dir: str,
    *,
    manifest_name: str = "go.mod",
) -> RestoreResult:
    """Undo :func:`~serverless_go.rewrite.rewrite_unit` for one unit.

    A unit without a scratch directory is already clean and is left alone.

    Raises:
        BackupNotFound, AmbiguousBackup, ChecksumMismatch: the unit was not
            touched.
        FilesystemError: the backup could not be moved into place; the unit
            is unchanged and restore can be retried.
        CleanupError: the manifest was restored but the scratch dir could not
            be removed.
    """
    unit_dir = Path(unit_dir)
    private_dir = validate_private_dir(private_dir)
    label = unit_label(unit_dir)
    result = RestoreResult(unit=unit_dir)

    scratch = unit_dir / private_dir
    if not scratch.exists():
        logger.info("%s skip: private repo dir does not exist", label)
        return result

    backups = find_backups(unit_dir, manifest_name)
    if not backups:
        raise BackupNotFound(f"no {manifest_name} backup found in {unit_dir}", unit=unit_dir)
    if len(backups) > 1:
        raise AmbiguousBackup(backups, unit=unit_dir)
    backup = backups[0]

    manifest = unit_dir / manifest_name
    try:
        current = manifest.read_bytes()
    except OSError as e:
        raise FilesystemError("reading", manifest, e, unit=unit_dir) from e

    expected = digest_from_backup(manifest_name, backup)
    actual = manifest_digest(current)
    if expected != actual:
        logger.error("%s checksum %s does not match backup %s", label, actual, backup.name)
        raise ChecksumMismatch(backup, expected, actual, unit=unit_dir)

    # Scratch dir removal must follow the swap.
    logger.info("%s restoring %s from %s", label, manifest_name, backup.name)
    try:
        os.replace(backup, manifest)
    except OSError as e:
        raise FilesystemError("restoring", backup, e, unit=unit_dir) from e
    result.restored = True
    result.backup = backup

    logger.info("%s removing private repo dir", label)
    try:
        shutil.rmtree(scratch)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise CleanupError(
            f"{manifest_name} restored but failed removing private repo dir {scratch}: {e}", unit=unit_dir
        ) from e

    return result
