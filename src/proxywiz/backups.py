"""Timestamped backups of site configuration files."""
from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class BackupError(RuntimeError):
    """Raised when a backup cannot be created or restored."""


def backup_path_for(path: Path, now: datetime) -> Path:
    """Return ``<path>.<YYYYMMDD_HHMMSS>.bak``, never an existing file.

    A ``-N`` counter is appended to the timestamp when a backup with the same
    second already exists.
    """
    stamp = now.strftime(TIMESTAMP_FORMAT)
    candidate = path.with_name(f"{path.name}.{stamp}.bak")
    counter = 1
    while candidate.exists() or candidate.is_symlink():
        candidate = path.with_name(f"{path.name}.{stamp}-{counter}.bak")
        counter += 1
    return candidate


def create_backup(path: Path, *, now: datetime | None = None) -> Path:
    """Copy *path* next to itself and return the backup location."""
    destination = backup_path_for(path, now or datetime.now())
    try:
        shutil.copy2(path, destination)
    except OSError as exc:
        raise BackupError(f"Failed to back up {path} to {destination}: {exc}") from exc
    return destination


def restore_backup(backup: Path, target: Path) -> None:
    """Copy *backup* back over *target*."""
    try:
        shutil.copy2(backup, target)
    except OSError as exc:
        raise BackupError(f"Failed to restore {target} from {backup}: {exc}") from exc


__all__ = ["BackupError", "TIMESTAMP_FORMAT", "backup_path_for", "create_backup", "restore_backup"]
