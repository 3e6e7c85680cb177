"""Write, enable, validate and reload a site, with rollback support."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .backups import BackupError, restore_backup
from .providers.base import WebServer
from .providers.nginx import NginxError


@dataclass(slots=True)
class ActivationResult:
    """Outcome of an activation attempt.

    ``failed_stage`` is one of ``write``, ``enable``, ``validate`` or
    ``reload`` when ``ok`` is False; ``diagnostics`` then holds the tool output.
    """

    config_path: Path
    enabled_path: Path
    ok: bool = False
    link_changed: bool = False
    failed_stage: str | None = None
    error: str | None = None
    diagnostics: str = ""
    steps: list[tuple[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class RollbackResult:
    """Outcome of restoring a backup after a failed activation."""

    reverted: bool
    error: str | None = None
    diagnostics: str = ""


@dataclass(slots=True)
class SiteActivator:
    """Apply a rendered site to nginx in a strictly ordered sequence."""

    nginx: WebServer

    def activate(self, domain: str, content: str) -> ActivationResult:
        """Write *content*, enable the site, validate and reload nginx.

        Stops at the first failing stage. The written file is left in place;
        reverting is the caller's decision.
        """
        result = ActivationResult(
            config_path=self.nginx.site_path(domain),
            enabled_path=self.nginx.enabled_path(domain),
        )

        try:
            self.nginx.write_site(domain, content)
        except OSError as exc:
            return self._fail(result, "write", str(exc))
        result.steps.append(("write", "ok"))

        try:
            result.link_changed = self.nginx.enable(domain)
        except OSError as exc:
            return self._fail(result, "enable", str(exc))
        result.steps.append(("enable", "changed" if result.link_changed else "unchanged"))

        try:
            self.nginx.test_config()
        except NginxError as exc:
            return self._fail(result, "validate", str(exc), exc.output)
        result.steps.append(("validate", "ok"))

        try:
            self.nginx.reload()
        except NginxError as exc:
            return self._fail(result, "reload", str(exc), exc.output)
        result.steps.append(("reload", "ok"))

        result.ok = True
        return result

    def validate_and_reload(self) -> RollbackResult:
        """Validate the configuration and reload nginx."""
        try:
            self.nginx.test_config()
            self.nginx.reload()
        except NginxError as exc:
            return RollbackResult(reverted=False, error=str(exc), diagnostics=exc.output)
        return RollbackResult(reverted=True)

    def rollback(self, domain: str, backup: Path) -> RollbackResult:
        """Copy *backup* over the site config, then validate and reload."""
        try:
            restore_backup(backup, self.nginx.site_path(domain))
        except BackupError as exc:
            return RollbackResult(reverted=False, error=str(exc))
        return self.validate_and_reload()

    def discard_new_site(self, domain: str) -> RollbackResult:
        """Remove a first-time site and its symlink, then validate and reload."""
        try:
            self.nginx.remove_site(domain)
        except OSError as exc:
            return RollbackResult(reverted=False, error=str(exc))
        return self.validate_and_reload()

    @staticmethod
    def _fail(
        result: ActivationResult,
        stage: str,
        error: str,
        diagnostics: str = "",
    ) -> ActivationResult:
        result.ok = False
        result.failed_stage = stage
        result.error = error
        result.diagnostics = diagnostics
        result.steps.append((stage, "failed"))
        return result


__all__ = ["ActivationResult", "RollbackResult", "SiteActivator"]
