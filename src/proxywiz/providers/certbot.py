"""Certbot provider for Let's Encrypt certificates."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field

from .base import command_exists


class CertbotError(RuntimeError):
    """Raised when certbot fails to obtain or install a certificate."""


@dataclass(slots=True)
class CertbotProvider:
    """Run ``certbot --nginx`` for a domain and its aliases.

    Certbot may rewrite the nginx site to add the HTTPS listener, so the
    caller must validate and reload nginx afterwards.
    """

    certbot_bin: str = "certbot"
    extra_args: tuple[str, ...] = field(default_factory=tuple)

    def is_installed(self) -> bool:
        """Return True when certbot is on PATH."""
        return command_exists(self.certbot_bin)

    def command(self, domain: str, alt_names: Sequence[str]) -> list[str]:
        """Return the certbot invocation for *domain* and *alt_names*."""
        args = [self.certbot_bin, "--nginx", "-d", domain]
        for name in alt_names:
            args.extend(["-d", name])
        args.extend(self.extra_args)
        return args

    def issue_certificate(
        self, domain: str, alt_names: Sequence[str]
    ) -> subprocess.CompletedProcess[str]:
        """Request and install a certificate; certbot talks to the terminal."""
        command = self.command(domain, alt_names)
        try:
            result = self._run_certbot(command)
        except FileNotFoundError as exc:
            raise CertbotError(f"{self.certbot_bin} not found: {exc}") from exc
        if result.returncode != 0:
            raise CertbotError(
                f"{self.certbot_bin} failed (exit {result.returncode}); check certbot logs."
            )
        return result

    def _run_certbot(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(  # noqa: S603, S607
            list(command),
            text=True,
            check=False,
        )


__all__ = ["CertbotError", "CertbotProvider"]
