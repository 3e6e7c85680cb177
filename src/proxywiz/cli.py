"""Typer-powered command line interface for ``proxywiz``.

``proxywiz create`` walks the operator through publishing an upstream
application behind nginx. Every command runs inside a structured operation
scope so the outcome lands in the operations log.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger
from .prompts import SitePreset, TerminalPrompter
from .providers import AptProvider, CertbotProvider, NginxProvider, SystemdProvider
from .render import render_site
from .site import ProxySiteConfig
from .templates import TemplateEngine
from .validation import (
    InputError,
    validate_domain,
    validate_host,
    validate_port,
    validate_redirect_path,
)
from .wizard import ConflictChoice, Wizard, WizardAbort, WizardPreset

console = Console()

app = typer.Typer(
    help="Nginx reverse proxy wizard: render, enable and secure a proxied site.",
    no_args_is_help=False,
    add_completion=False,
)
config_app = typer.Typer(help="Inspect proxywiz configuration.")
app.add_typer(config_app, name="config")

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to proxywiz's YAML config file.",
)
NGINX_ROOT_OPTION = typer.Option(
    None,
    "--nginx-root",
    file_okay=False,
    help="Override the nginx configuration root (sites-available, sites-enabled, logs).",
)
DOMAIN_OPTION = typer.Option(None, "--domain", help="Domain to serve (skips the prompt).")
UPSTREAM_HOST_OPTION = typer.Option(
    None,
    "--upstream-host",
    help="Upstream host (skips the default-host question).",
)
PORT_OPTION = typer.Option(None, "--port", help="Upstream port (skips the prompt).")
REDIRECT_OPTION = typer.Option(
    None,
    "--redirect",
    help="Redirect / to this sub-path; pass an empty string to disable.",
)
CUSTOM_LOGS_OPTION = typer.Option(
    None,
    "--custom-logs/--no-custom-logs",
    help="Write dedicated access/error logs for the domain.",
)
SSL_OPTION = typer.Option(
    None,
    "--ssl/--no-ssl",
    help="Request a Let's Encrypt certificate after activation.",
)
ON_CONFLICT_OPTION = typer.Option(
    None,
    "--on-conflict",
    help="What to do when a config exists: backup, overwrite or cancel.",
)
JSON_OPTION = typer.Option(False, "--json", help="Emit JSON output.")


@dataclass(slots=True)
class RuntimeContext:
    """Objects shared by every command in one invocation."""

    config: AppConfig
    logger: StructuredLogger
    templates: TemplateEngine
    nginx: NginxProvider
    packages: AptProvider
    certbot: CertbotProvider


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    nginx_root: Path | None = None,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    overrides: dict[str, object] = {}
    if nginx_root is not None:
        overrides["nginx_root"] = str(nginx_root)

    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=ExitCode.VALIDATION) from exc

    logger = StructuredLogger(config.logs_dir)
    templates = TemplateEngine.with_overrides(config.templates_dir)
    systemd = SystemdProvider(systemctl_bin=config.systemd.systemctl_bin)
    nginx = NginxProvider(
        sites_available=config.sites_available,
        sites_enabled=config.sites_enabled,
        nginx_bin=config.nginx.nginx_bin,
        service=config.nginx.service,
        systemd=systemd,
    )
    runtime = RuntimeContext(
        config=config,
        logger=logger,
        templates=templates,
        nginx=nginx,
        packages=AptProvider(apt_bin=config.packages.apt_bin),
        certbot=CertbotProvider(
            certbot_bin=config.certbot.certbot_bin,
            extra_args=config.certbot.extra_args,
        ),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the proxywiz version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    nginx_root: Path | None = NGINX_ROOT_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"proxywiz {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file, nginx_root)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = ExitCode.VALIDATION,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]FAILED: {escape(message)}[/red]")
    op.error(message, errors=list(errors or [message]), rc=int(rc))
    raise typer.Exit(code=int(rc))


def _parse_conflict(op: OperationScope, value: str | None) -> ConflictChoice | None:
    if value is None:
        return None
    normalised = value.strip().lower()
    if normalised not in {"backup", "overwrite", "cancel", "b", "o", "c"}:
        _command_error(op, f"Invalid --on-conflict value '{value}'. Use backup, overwrite or cancel.")
    return ConflictChoice.parse(normalised)


def _build_site_preset(
    op: OperationScope,
    *,
    domain: str | None,
    upstream_host: str | None,
    port: str | None,
    redirect: str | None,
    custom_logs: bool | None,
) -> SitePreset:
    """Validate CLI answers with the same predicates as the prompts."""
    try:
        return SitePreset(
            domain=validate_domain(domain) if domain is not None else None,
            upstream_host=validate_host(upstream_host) if upstream_host is not None else None,
            upstream_port=validate_port(port) if port is not None else None,
            root_redirect_path=(
                validate_redirect_path(redirect) if redirect not in (None, "") else None
            ),
            use_root_redirect=False if redirect == "" else None,
            use_custom_logs=custom_logs,
        )
    except InputError as exc:
        _command_error(op, str(exc))


@app.command()
def create(
    ctx: typer.Context,
    domain: str | None = DOMAIN_OPTION,
    upstream_host: str | None = UPSTREAM_HOST_OPTION,
    port: str | None = PORT_OPTION,
    redirect: str | None = REDIRECT_OPTION,
    custom_logs: bool | None = CUSTOM_LOGS_OPTION,
    ssl: bool | None = SSL_OPTION,
    on_conflict: str | None = ON_CONFLICT_OPTION,
) -> None:
    """Interactively create, enable and optionally secure a reverse proxy site."""
    runtime = _get_runtime(ctx)
    args = {
        "domain": domain,
        "upstream_host": upstream_host,
        "port": port,
        "redirect": redirect,
        "custom_logs": custom_logs,
        "ssl": ssl,
        "on_conflict": on_conflict,
    }
    with runtime.logger.operation("create", args=args, target={"kind": "site"}) as op:
        site_preset = _build_site_preset(
            op,
            domain=domain,
            upstream_host=upstream_host,
            port=port,
            redirect=redirect,
            custom_logs=custom_logs,
        )
        preset = WizardPreset(
            site=site_preset,
            conflict=_parse_conflict(op, on_conflict),
            enable_ssl=ssl,
        )

        console.print(
            Panel.fit("[bold blue]Nginx Reverse Proxy Wizard[/bold blue]", border_style="blue")
        )
        wizard = Wizard(
            config=runtime.config,
            prompter=TerminalPrompter(console),
            nginx=runtime.nginx,
            packages=runtime.packages,
            certbot=runtime.certbot,
            templates=runtime.templates,
            op=op,
        )
        try:
            outcome = wizard.run(preset)
        except WizardAbort as exc:
            _command_error(op, str(exc), rc=exc.exit_code)

        context = {
            "site": outcome.site.to_dict(),
            "config_path": outcome.config_path,
            "backup": outcome.backup,
            "probe": outcome.probe.outcome.value,
            "tls": outcome.tls.value,
        }
        backups = [outcome.backup] if outcome.backup is not None else None
        if outcome.tls.value in {"failed", "reload-failed"}:
            op.warning(
                f"Site {outcome.site.domain} active; TLS provisioning failed.",
                warnings=[f"tls:{outcome.tls.value}"],
                changed=1,
                backups=backups,
                context=context,
            )
        else:
            op.success(
                f"Site {outcome.site.domain} active.",
                changed=1,
                backups=backups,
                context=context,
            )
        console.print("[bold green]All done.[/bold green]")


@app.command()
def render(
    ctx: typer.Context,
    domain: str = typer.Option(..., "--domain", help="Domain to serve."),
    port: str = typer.Option(..., "--port", help="Upstream port."),
    upstream_host: str | None = UPSTREAM_HOST_OPTION,
    redirect: str | None = REDIRECT_OPTION,
    custom_logs: bool = typer.Option(
        False,
        "--custom-logs/--no-custom-logs",
        help="Include dedicated access/error log directives.",
    ),
) -> None:
    """Print the nginx site configuration without touching the system."""
    runtime = _get_runtime(ctx)
    args = {
        "domain": domain,
        "port": port,
        "upstream_host": upstream_host,
        "redirect": redirect,
        "custom_logs": custom_logs,
    }
    with runtime.logger.operation("render", args=args, target={"kind": "site"}) as op:
        preset = _build_site_preset(
            op,
            domain=domain,
            upstream_host=upstream_host,
            port=port,
            redirect=redirect,
            custom_logs=custom_logs,
        )
        site = ProxySiteConfig(
            domain=preset.domain or domain,
            upstream_port=preset.upstream_port or 0,
            upstream_host=preset.upstream_host or runtime.config.default_upstream_host,
            root_redirect_path=preset.root_redirect_path,
            use_custom_logs=custom_logs,
            log_dir=runtime.config.site_logs_dir,
        )
        text = render_site(site, runtime.config.proxy, runtime.templates)
        typer.echo(text, nl=False)
        op.success("Rendered site configuration.", changed=0, context={"domain": site.domain})


@config_app.command("show")
def config_show(ctx: typer.Context, json_output: bool = JSON_OPTION) -> None:
    """Show the merged configuration."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation("config show", args={"json": json_output}) as op:
        payload = runtime.config.to_dict()
        if json_output:
            typer.echo(json.dumps(payload, indent=2))
        else:
            table = Table(title="proxywiz configuration")
            table.add_column("Key", style="cyan")
            table.add_column("Value")
            for key, value in payload.items():
                rendered = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
                table.add_row(key, escape(rendered))
            console.print(table)
        op.success("Displayed configuration.", changed=0)


__all__ = ["app"]
