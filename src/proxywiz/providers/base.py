"""Interfaces for the external tools the wizard drives."""
from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol


class WebServer(Protocol):
    """Manage per-domain sites and the running web server.

    ``test_config`` and ``reload`` raise :class:`~proxywiz.providers.nginx.NginxError`
    with the tool's diagnostics on failure.
    """

    def site_path(self, domain: str) -> Path:
        """Return the configuration file path for *domain*."""
        ...

    def enabled_path(self, domain: str) -> Path:
        """Return the path that marks *domain* as enabled."""
        ...

    def site_exists(self, domain: str) -> bool:
        """Return True when a configuration for *domain* exists."""
        ...

    def write_site(self, domain: str, content: str) -> Path:
        """Replace the configuration for *domain* with *content*."""
        ...

    def enable(self, domain: str) -> bool:
        """Enable *domain*; return True when anything changed."""
        ...

    def remove_site(self, domain: str) -> None:
        """Remove the configuration and enablement for *domain*."""
        ...

    def is_installed(self) -> bool:
        """Return True when the server binary is available."""
        ...

    def test_config(self) -> subprocess.CompletedProcess[str]:
        """Validate the full server configuration."""
        ...

    def reload(self) -> subprocess.CompletedProcess[str]:
        """Ask the service manager to reload the server."""
        ...


class PackageManager(Protocol):
    """Install system packages."""

    def install(self, packages: Sequence[str]) -> None:
        """Install *packages*, raising on failure."""
        ...


class CertificateTool(Protocol):
    """Obtain and install TLS certificates."""

    def is_installed(self) -> bool:
        """Return True when the tool is available."""
        ...

    def issue_certificate(
        self, domain: str, alt_names: Sequence[str]
    ) -> subprocess.CompletedProcess[str]:
        """Request a certificate covering *domain* and *alt_names*."""
        ...


def command_exists(command: str) -> bool:
    """Return True when *command* resolves to an executable."""
    path = Path(command)
    if path.is_absolute() or (path.parent and str(path.parent) not in {"", "."}):
        return path.exists() and os.access(path, os.X_OK)
    resolved = shutil.which(command)
    return resolved is not None and os.access(resolved, os.X_OK)


def failure_message(result: subprocess.CompletedProcess[str]) -> str:
    """Return the most useful diagnostic text from a failed command."""
    stdout = getattr(result, "stdout", "") or ""
    stderr = getattr(result, "stderr", "") or ""
    return stderr.strip() or stdout.strip() or "no output"


__all__ = [
    "CertificateTool",
    "PackageManager",
    "WebServer",
    "command_exists",
    "failure_message",
]
