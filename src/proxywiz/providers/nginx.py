"""Nginx provider for managing reverse proxy site configurations."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..templates import write_text_if_changed
from .base import command_exists, failure_message
from .systemd import SystemdError, SystemdProvider


class NginxError(RuntimeError):
    """Raised when nginx operations fail.

    ``output`` carries the tool's own diagnostics verbatim.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


@dataclass(slots=True)
class NginxProvider:
    """Write, enable, validate and reload nginx sites keyed by domain."""

    sites_available: Path = Path("/etc/nginx/sites-available")
    sites_enabled: Path = Path("/etc/nginx/sites-enabled")
    nginx_bin: str = "nginx"
    service: str = "nginx"
    systemd: SystemdProvider = field(default_factory=SystemdProvider)

    def site_path(self, domain: str) -> Path:
        """Return the path to the nginx site configuration file."""
        return self.sites_available / domain

    def enabled_path(self, domain: str) -> Path:
        """Return the path of the symlink in sites-enabled for *domain*."""
        return self.sites_enabled / domain

    def write_site(self, domain: str, content: str) -> Path:
        """Replace the site configuration for *domain* with *content*."""
        destination = self.site_path(domain)
        write_text_if_changed(destination, content, mode=0o644)
        return destination

    def enable(self, domain: str) -> bool:
        """Point the sites-enabled symlink at the site configuration.

        Returns True when the link was created or replaced, False when it
        already pointed at the right file.
        """
        source = self.site_path(domain)
        target = self.enabled_path(domain)
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists() or target.is_symlink():
            try:
                if target.is_symlink() and target.resolve() == source.resolve():
                    return False
            except FileNotFoundError:
                # Broken symlink; replace it with a fresh one.
                pass
            target.unlink()
        target.symlink_to(source)
        return True

    def disable(self, domain: str) -> None:
        """Disable the site by removing the symlink."""
        target = self.enabled_path(domain)
        try:
            target.unlink()
        except FileNotFoundError:
            pass

    def remove_site(self, domain: str) -> None:
        """Remove both the configuration and symlink for *domain*."""
        self.disable(domain)
        path = self.site_path(domain)
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    def site_exists(self, domain: str) -> bool:
        """Return True when the site configuration exists."""
        return self.site_path(domain).is_file()

    def is_installed(self) -> bool:
        """Return True when the nginx binary is on PATH."""
        return command_exists(self.nginx_bin)

    def test_config(self) -> subprocess.CompletedProcess[str]:
        """Run ``nginx -t`` to validate the configuration."""
        return self._run_nginx(["-t"])

    def reload(self) -> subprocess.CompletedProcess[str]:
        """Reload nginx through the service manager."""
        try:
            return self.systemd.reload(self.service)
        except SystemdError as exc:
            raise NginxError(f"Failed to reload {self.service}: {exc}") from exc

    # ------------------------------------------------------------------
    def _run_nginx(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        command = [self.nginx_bin, *args]
        try:
            result = subprocess.run(  # noqa: S603, S607
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise NginxError(f"{self.nginx_bin} not found: {exc}") from exc
        if result.returncode != 0:
            output = "\n".join(
                part.strip() for part in (result.stdout, result.stderr) if part and part.strip()
            )
            raise NginxError(
                f"{self.nginx_bin} {' '.join(args)} failed (exit {result.returncode}): "
                f"{failure_message(result)}",
                output=output,
            )
        return result


__all__ = ["NginxProvider", "NginxError"]
