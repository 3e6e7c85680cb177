"""Tests for the structured operation logger."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from proxywiz.logging import StructuredLogger


def _records(logs_dir: Path) -> list[dict[str, object]]:
    lines = (logs_dir / "operations.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_operation_writes_json_and_human_logs(tmp_path: Path) -> None:
    """A completed scope produces one JSONL record and one summary line."""
    logs_dir = tmp_path / "logs"
    logger = StructuredLogger(logs_dir)

    with logger.operation("create", args={"domain": "example.com"}, target={"kind": "site"}) as op:
        op.add_step("render")
        op.add_step("conflict", status="backup", detail=tmp_path / "site.bak")
        op.success("Site example.com active.", changed=1, backups=[tmp_path / "site.bak"])

    (record,) = _records(logs_dir)
    assert record["command"] == "create"
    assert record["args"] == {"domain": "example.com"}
    assert record["target"] == {"kind": "site"}
    assert record["context"] == {"proxywiz_version": "0.1.0"}
    assert [step["name"] for step in record["steps"]] == ["render", "conflict"]
    assert record["steps"][1]["detail"] == str(tmp_path / "site.bak")
    assert record["result"]["status"] == "success"
    assert record["result"]["backups"] == [str(tmp_path / "site.bak")]
    assert record["result"]["rc"] == 0

    human = (logs_dir / "proxywiz.log").read_text(encoding="utf-8")
    assert "create [success] Site example.com active." in human


def test_operation_without_result_defaults_to_success(tmp_path: Path) -> None:
    """Scopes that never set a result are recorded as completed."""
    logger = StructuredLogger(tmp_path)

    with logger.operation("config show"):
        pass

    (record,) = _records(tmp_path)
    assert record["result"]["status"] == "success"
    assert record["result"]["message"] == "Completed."


def test_operation_records_escaping_exception(tmp_path: Path) -> None:
    """An exception escaping the scope is logged as an error and re-raised."""
    logger = StructuredLogger(tmp_path)

    with pytest.raises(RuntimeError, match="boom"):
        with logger.operation("create"):
            raise RuntimeError("boom")

    (record,) = _records(tmp_path)
    assert record["result"]["status"] == "error"
    assert record["result"]["errors"] == ["boom"]


def test_error_result_keeps_explicit_return_code(tmp_path: Path) -> None:
    """Errors set before raising keep their message and return code."""
    logger = StructuredLogger(tmp_path)

    with pytest.raises(SystemExit):
        with logger.operation("create") as op:
            op.error("Cancelled by user.", rc=1)
            raise SystemExit(1)

    (record,) = _records(tmp_path)
    assert record["result"]["message"] == "Cancelled by user."
    assert record["result"]["rc"] == 1


def test_structured_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logger gracefully disables itself when log directory cannot be created."""
    log_dir = tmp_path / "logs"

    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("demo", args={"foo": "bar"}) as op:
        op.success("done", changed=0)


def test_structured_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Write failures mark the logger disabled so subsequent writes are skipped."""
    logger = StructuredLogger(tmp_path / "logs")
    operations_path = logger._operations_log_path  # type: ignore[attr-defined]

    original_open = Path.open

    def fail_once(self: Path, *args: object, **kwargs: object) -> object:
        if self == operations_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_once)

    with logger.operation("demo") as op:
        op.success("done", changed=0)

    assert logger._enabled is False  # type: ignore[attr-defined]

    # Subsequent operations should not raise even though logger is disabled.
    with logger.operation("demo-2") as op:
        op.success("done", changed=0)
