"""The reverse proxy wizard pipeline.

A run is strictly linear::

    preflight -> collect -> conflict -> probe -> render -> activate -> TLS

Fatal conditions raise :class:`WizardAbort` carrying the exit code. The TLS
stage never aborts: a failure there leaves the plain HTTP site active and is
reported as a warning.
"""
from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NoReturn

from .activation import ActivationResult, RollbackResult, SiteActivator
from .backups import BackupError, create_backup
from .config import AppConfig
from .exit_codes import ExitCode
from .logging import OperationScope
from .probe import ProbeOutcome, ProbeResult, probe_upstream, skipped_probe
from .prompts import Prompter, SitePreset, collect_site
from .providers.base import CertificateTool, PackageManager, WebServer
from .providers.certbot import CertbotError
from .providers.nginx import NginxError
from .providers.packages import PackageError
from .render import render_site
from .site import ProxySiteConfig, SitePaths
from .templates import TemplateEngine


class WizardAbort(RuntimeError):
    """Raised when the run must stop with a non-zero exit code."""

    def __init__(self, message: str, exit_code: ExitCode) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ConflictChoice(Enum):
    """What to do with an existing site configuration."""

    BACKUP = "b"
    OVERWRITE = "o"
    CANCEL = "c"

    @classmethod
    def parse(cls, answer: str) -> ConflictChoice:
        """Map an answer to a choice; anything unrecognised cancels."""
        normalised = answer.strip().lower()
        aliases = {"backup": "b", "overwrite": "o", "cancel": "c"}
        normalised = aliases.get(normalised, normalised)
        for choice in cls:
            if choice.value == normalised:
                return choice
        return cls.CANCEL


class TLSOutcome(Enum):
    """Result of the optional certificate stage."""

    DECLINED = "declined"
    SKIPPED = "skipped"
    ENABLED = "enabled"
    FAILED = "failed"
    RELOAD_FAILED = "reload-failed"


@dataclass(frozen=True, slots=True)
class WizardPreset:
    """Answers supplied before the run starts."""

    site: SitePreset = SitePreset()
    conflict: ConflictChoice | None = None
    enable_ssl: bool | None = None


@dataclass(slots=True)
class WizardOutcome:
    """Everything a successful run produced."""

    site: ProxySiteConfig
    config_path: Path
    backup: Path | None
    probe: ProbeResult
    activation: ActivationResult
    tls: TLSOutcome


def running_as_root() -> bool:
    """Return True when the effective user is root."""
    return os.geteuid() == 0


ProbeFunc = Callable[[str, int], ProbeResult]


class Wizard:
    """Drive one interactive run for one domain."""

    def __init__(
        self,
        *,
        config: AppConfig,
        prompter: Prompter,
        nginx: WebServer,
        packages: PackageManager,
        certbot: CertificateTool,
        templates: TemplateEngine | None = None,
        op: OperationScope | None = None,
        probe: ProbeFunc | None = None,
        is_root: Callable[[], bool] = running_as_root,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Wire the wizard to its collaborators."""
        self.config = config
        self.paths = SitePaths.from_config(config)
        self.prompter = prompter
        self.nginx = nginx
        self.packages = packages
        self.certbot = certbot
        self.templates = templates or TemplateEngine.with_overrides(config.templates_dir)
        self.op = op
        self.probe = probe or self._default_probe
        self.is_root = is_root
        self.clock = clock
        self.activator = SiteActivator(nginx)

    # ------------------------------------------------------------------
    def run(self, preset: WizardPreset | None = None) -> WizardOutcome:
        """Execute the full pipeline and return its outcome."""
        preset = preset or WizardPreset()

        self.preflight()

        site = collect_site(
            self.prompter,
            paths=self.paths,
            default_host=self.config.default_upstream_host,
            preset=preset.site,
        )
        self._step("collect", detail=site.to_dict())

        try:
            self.paths.ensure_log_dir()
        except OSError as exc:
            self._abort(
                f"Cannot create log directory {self.paths.site_logs_dir}: {exc}",
                ExitCode.ENVIRONMENT,
            )

        existed = self.nginx.site_exists(site.domain)
        backup = self.resolve_conflict(site, preset.conflict) if existed else None

        probe_result = self.check_upstream(site)

        self.prompter.info(f"Generating nginx config for {site.domain} ...")
        content = render_site(site, self.config.proxy, self.templates)
        self._step("render")

        activation = self.activate(site, content, backup=backup, existed=existed)

        self.prompter.info(f"HTTP reverse proxy for {site.domain} should now be live.")
        hint = f"Try: http://{site.domain}"
        if site.root_redirect_path:
            hint += f" (or http://{site.domain}{site.root_redirect_path})"
        self.prompter.info(hint)

        tls = self.provision_tls(site, preset.enable_ssl)

        return WizardOutcome(
            site=site,
            config_path=activation.config_path,
            backup=backup,
            probe=probe_result,
            activation=activation,
            tls=tls,
        )

    # ------------------------------------------------------------------
    def preflight(self) -> None:
        """Require root and an installed nginx (installing on consent)."""
        if self.config.require_root and not self.is_root():
            self._abort("This wizard must be run as root (sudo).", ExitCode.ENVIRONMENT)
        self._step("preflight.root")

        if self.nginx.is_installed():
            self._step("preflight.nginx", detail="present")
            return

        self.prompter.warn("nginx is not installed.")
        if not self.prompter.confirm("Install nginx now?"):
            self._abort("nginx is required. Aborting.", ExitCode.ENVIRONMENT)
        try:
            self.packages.install(self.config.nginx.packages)
        except PackageError as exc:
            self._abort(f"Failed to install nginx: {exc}", ExitCode.ENVIRONMENT)
        self.prompter.success("nginx installed.")
        self._step("preflight.nginx", status="changed", detail="installed")

    def resolve_conflict(
        self,
        site: ProxySiteConfig,
        preset: ConflictChoice | None = None,
    ) -> Path | None:
        """Handle an existing config; return the backup path when one was taken."""
        config_path = self.nginx.site_path(site.domain)
        self.prompter.warn(f"Config file already exists: {config_path}")
        if preset is not None:
            choice = preset
        else:
            answer = self.prompter.ask(
                "Backup and overwrite (b), overwrite without backup (o), or cancel (c)? [b/o/c]"
            )
            choice = ConflictChoice.parse(answer)

        if choice is ConflictChoice.BACKUP:
            try:
                backup = create_backup(config_path, now=self.clock())
            except BackupError as exc:
                self._abort(str(exc), ExitCode.ENVIRONMENT)
            self.prompter.success(f"Backup created: {backup}")
            self._step("conflict", status="backup", detail=backup)
            return backup
        if choice is ConflictChoice.OVERWRITE:
            self.prompter.warn("Overwriting existing config without backup.")
            self._step("conflict", status="overwrite")
            return None
        self._step("conflict", status="cancelled")
        self._abort("Cancelled by user.", ExitCode.CANCELLED)

    def check_upstream(self, site: ProxySiteConfig) -> ProbeResult:
        """Probe the upstream and report; the result never changes control flow."""
        self.prompter.info(
            f"Testing upstream {self.config.probe.scheme}://{site.upstream_address} ..."
        )
        result = self.probe(site.upstream_host, site.upstream_port)
        if result.outcome is ProbeOutcome.REACHABLE:
            self.prompter.success("Upstream seems reachable.")
        elif result.outcome is ProbeOutcome.UNREACHABLE:
            self.prompter.warn(
                "Upstream didn't return 2xx/3xx. It may still be booting or misconfigured."
            )
        else:
            self.prompter.warn(f"Upstream check skipped ({result.detail or 'indeterminate'}).")
        self._step("probe", status=result.outcome.value, detail=result.detail or result.status_code)
        return result

    def activate(
        self,
        site: ProxySiteConfig,
        content: str,
        *,
        backup: Path | None,
        existed: bool,
    ) -> ActivationResult:
        """Apply *content*; on failure revert where possible and abort."""
        result = self.activator.activate(site.domain, content)
        for stage, status in result.steps:
            self._step(f"activate.{stage}", status=status)

        if result.ok:
            self.prompter.success(f"Nginx config written to: {result.config_path}")
            self.prompter.success(
                f"Symlink ensured: {result.enabled_path} -> {result.config_path}"
            )
            self.prompter.success("nginx reloaded successfully.")
            return result

        stage_messages = {
            "write": f"Failed to write {result.config_path}.",
            "enable": f"Failed to enable {result.enabled_path}.",
            "validate": "nginx configuration test failed. Check errors above.",
            "reload": "Failed to reload nginx. Check systemctl status nginx.",
        }
        self.prompter.output(result.diagnostics or result.error or "")
        self.prompter.fail(stage_messages.get(result.failed_stage or "", "Activation failed."))

        revert: RollbackResult | None = None
        if result.failed_stage in {"validate", "reload"}:
            if backup is not None:
                self.prompter.warn(f"Restoring backup from {backup} ...")
                revert = self.activator.rollback(site.domain, backup)
            elif not existed and self.config.rollback.remove_new_sites:
                self.prompter.warn(f"Removing newly created {result.config_path} ...")
                revert = self.activator.discard_new_site(site.domain)

        if revert is None:
            if result.failed_stage in {"validate", "reload"}:
                self.prompter.warn(
                    f"No backup available; the new config remains at {result.config_path}."
                )
        elif revert.reverted:
            self.prompter.warn("Reverted to previous working config.")
        else:
            self.prompter.output(revert.diagnostics)
            self.prompter.fail(f"Revert did not complete: {revert.error}")
        self._step(
            "rollback",
            status="none" if revert is None else ("ok" if revert.reverted else "failed"),
        )
        self._abort(result.error or "Activation failed.", ExitCode.PROVIDER)

    def provision_tls(self, site: ProxySiteConfig, enable: bool | None = None) -> TLSOutcome:
        """Optionally obtain a certificate; never undoes the HTTP activation."""
        if enable is None:
            enable = self.prompter.confirm(
                f"Do you want to enable SSL (HTTPS) for {site.domain} now?"
            )
        if not enable:
            self.prompter.warn("Skipping SSL for now. You can always run certbot later.")
            self._step("tls", status=TLSOutcome.DECLINED.value)
            return TLSOutcome.DECLINED

        if not self.certbot.is_installed():
            self.prompter.warn("certbot not found.")
            if not self.prompter.confirm("Install certbot + nginx plugin now?"):
                self.prompter.warn("Skipping SSL setup.")
                self._step("tls", status=TLSOutcome.SKIPPED.value)
                return TLSOutcome.SKIPPED
            try:
                self.packages.install(self.config.certbot.packages)
            except PackageError as exc:
                self.prompter.fail(f"Failed to install certbot: {exc}")
                self._step("tls", status=TLSOutcome.FAILED.value, detail=str(exc))
                return TLSOutcome.FAILED
            self.prompter.success("certbot installed.")

        self.prompter.info(f"Requesting Let's Encrypt certificate for {site.domain} ...")
        try:
            self.certbot.issue_certificate(site.domain, [site.server_names[1]])
        except CertbotError as exc:
            self.prompter.fail(f"certbot failed to obtain certificate. {exc}")
            self._step("tls", status=TLSOutcome.FAILED.value, detail=str(exc))
            return TLSOutcome.FAILED
        self.prompter.success(f"SSL enabled for {site.domain}.")

        self.prompter.info("Testing nginx again after SSL changes...")
        try:
            self.nginx.test_config()
            self.nginx.reload()
        except NginxError as exc:
            self.prompter.output(exc.output)
            self.prompter.fail("nginx reload failed after SSL; check config.")
            self._step("tls", status=TLSOutcome.RELOAD_FAILED.value, detail=str(exc))
            return TLSOutcome.RELOAD_FAILED
        self.prompter.success(f"HTTPS live. Visit: https://{site.domain}")
        self._step("tls", status=TLSOutcome.ENABLED.value)
        return TLSOutcome.ENABLED

    # ------------------------------------------------------------------
    def _default_probe(self, host: str, port: int) -> ProbeResult:
        probe_config = self.config.probe
        if not probe_config.enabled:
            return skipped_probe(host, port, scheme=probe_config.scheme)
        return probe_upstream(
            host,
            port,
            scheme=probe_config.scheme,
            timeout=probe_config.timeout,
        )

    def _step(self, name: str, *, status: str = "ok", detail: object = None) -> None:
        if self.op is not None:
            self.op.add_step(name, status=status, detail=detail)

    def _abort(self, message: str, exit_code: ExitCode) -> NoReturn:
        raise WizardAbort(message, exit_code)


__all__ = [
    "ConflictChoice",
    "TLSOutcome",
    "Wizard",
    "WizardAbort",
    "WizardOutcome",
    "WizardPreset",
    "running_as_root",
]
