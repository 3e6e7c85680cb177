"""Package manager provider used to install missing tools."""
from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .base import failure_message


class PackageError(RuntimeError):
    """Raised when a package installation fails."""


@dataclass(slots=True)
class AptProvider:
    """Install Debian packages with ``apt-get``."""

    apt_bin: str = "apt-get"

    def install(self, packages: Sequence[str]) -> None:
        """Refresh package lists and install *packages* non-interactively."""
        names = [name for name in packages if name]
        if not names:
            raise PackageError("No packages requested for installation.")
        self._run_apt(["update"])
        self._run_apt(["install", "-y", *names], env={"DEBIAN_FRONTEND": "noninteractive"})

    # ------------------------------------------------------------------
    def _run_apt(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        command = [self.apt_bin, *args]
        run_env = {**os.environ, **env} if env else None
        try:
            result = subprocess.run(  # noqa: S603, S607
                command,
                capture_output=True,
                text=True,
                check=False,
                env=run_env,
            )
        except FileNotFoundError as exc:
            raise PackageError(f"{self.apt_bin} not found: {exc}") from exc
        if result.returncode != 0:
            raise PackageError(
                f"{' '.join(command)} failed (exit {result.returncode}): {failure_message(result)}"
            )
        return result


__all__ = ["AptProvider", "PackageError"]
