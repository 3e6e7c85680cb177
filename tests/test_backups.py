"""Tests for timestamped site configuration backups."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from proxywiz.backups import BackupError, backup_path_for, create_backup, restore_backup

NOW = datetime(2024, 5, 17, 9, 30, 5)


def test_create_backup_copies_file_with_timestamp(tmp_path: Path) -> None:
    """Backups sit next to the original and carry its exact content."""
    config = tmp_path / "example.com"
    config.write_text("server { listen 80; }\n", encoding="utf-8")

    backup = create_backup(config, now=NOW)

    assert backup == tmp_path / "example.com.20240517_093005.bak"
    assert backup.read_text(encoding="utf-8") == "server { listen 80; }\n"
    assert config.exists()


def test_backup_path_never_overwrites_existing_backup(tmp_path: Path) -> None:
    """Two backups in the same second get distinct names."""
    config = tmp_path / "example.com"
    config.write_text("first", encoding="utf-8")

    first = create_backup(config, now=NOW)
    config.write_text("second", encoding="utf-8")
    second = create_backup(config, now=NOW)

    assert first != second
    assert second.name == "example.com.20240517_093005-1.bak"
    assert first.read_text(encoding="utf-8") == "first"
    assert second.read_text(encoding="utf-8") == "second"
    assert backup_path_for(config, NOW).name == "example.com.20240517_093005-2.bak"


def test_create_backup_missing_source_raises(tmp_path: Path) -> None:
    """Backing up a file that does not exist is reported as BackupError."""
    with pytest.raises(BackupError, match="Failed to back up"):
        create_backup(tmp_path / "missing", now=NOW)


def test_restore_backup_replaces_target(tmp_path: Path) -> None:
    """Restoring copies the backup content over the live file."""
    config = tmp_path / "example.com"
    config.write_text("original", encoding="utf-8")
    backup = create_backup(config, now=NOW)
    config.write_text("broken", encoding="utf-8")

    restore_backup(backup, config)

    assert config.read_text(encoding="utf-8") == "original"
    assert backup.exists()


def test_restore_missing_backup_raises(tmp_path: Path) -> None:
    """A vanished backup cannot be restored."""
    with pytest.raises(BackupError, match="Failed to restore"):
        restore_backup(tmp_path / "gone.bak", tmp_path / "example.com")
