"""Systemd provider for reloading the web server service."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from .base import failure_message


class SystemdError(RuntimeError):
    """Raised when systemd operations fail."""


@dataclass(slots=True)
class SystemdProvider:
    """Thin wrapper around ``systemctl`` for service reloads."""

    systemctl_bin: str = "systemctl"

    def reload(self, unit: str) -> subprocess.CompletedProcess[str]:
        """Reload *unit* without dropping existing connections."""
        return self._systemctl("reload", unit)

    # ------------------------------------------------------------------
    def _systemctl(
        self,
        command: str,
        unit: str,
        *,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        args = [self.systemctl_bin, command, unit]
        return self._run_command(args, check=check, error_prefix=f"{self.systemctl_bin} {command}")

    def _run_command(
        self,
        args: Sequence[str],
        *,
        check: bool,
        error_prefix: str,
    ) -> subprocess.CompletedProcess[str]:
        try:
            result = subprocess.run(  # noqa: S603, S607
                list(args),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SystemdError(f"{args[0]} not found: {exc}") from exc
        if check and result.returncode != 0:
            raise SystemdError(
                f"{error_prefix} failed (exit {result.returncode}): {failure_message(result)}"
            )
        return result


__all__ = ["SystemdProvider", "SystemdError"]
