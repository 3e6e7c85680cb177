"""Interactive prompting: a terminal prompter and the collection sequence."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from .site import ProxySiteConfig, SitePaths
from .validation import (
    InputError,
    is_affirmative,
    validate_domain,
    validate_host,
    validate_port,
    validate_redirect_path,
)

T = TypeVar("T")


class Prompter(Protocol):
    """Terminal interaction used by the wizard."""

    def ask(self, message: str) -> str:
        """Return the raw answer to *message* (may be empty)."""
        ...

    def confirm(self, message: str) -> bool:
        """Return True only for an affirmative answer."""
        ...

    def info(self, message: str) -> None:
        """Print a progress message."""
        ...

    def warn(self, message: str) -> None:
        """Print a warning."""
        ...

    def success(self, message: str) -> None:
        """Print a confirmation."""
        ...

    def fail(self, message: str) -> None:
        """Print a failure."""
        ...

    def output(self, text: str) -> None:
        """Print tool output verbatim."""
        ...


class TerminalPrompter:
    """Prompter backed by typer prompts and a rich console."""

    def __init__(self, console: Console) -> None:
        """Bind the prompter to *console* for output."""
        self.console = console

    def ask(self, message: str) -> str:
        """Read one line; empty input is returned as an empty string."""
        return str(typer.prompt(message, default="", show_default=False))

    def confirm(self, message: str) -> bool:
        """Ask a y/n question; anything but y/yes is no."""
        return is_affirmative(self.ask(f"{message} (y/n)"))

    def info(self, message: str) -> None:
        """Print a progress message."""
        self.console.print(f"[blue]{escape(message)}[/blue]")

    def warn(self, message: str) -> None:
        """Print a warning."""
        self.console.print(f"[yellow]WARNING:[/yellow] {escape(message)}")

    def success(self, message: str) -> None:
        """Print a confirmation."""
        self.console.print(f"[green]OK:[/green] {escape(message)}")

    def fail(self, message: str) -> None:
        """Print a failure."""
        self.console.print(f"[red]FAILED:[/red] {escape(message)}")

    def output(self, text: str) -> None:
        """Print tool output verbatim."""
        if text:
            self.console.print(text, markup=False, highlight=False)


def prompt_until_valid(prompter: Prompter, message: str, parse: Callable[[str], T]) -> T:
    """Ask *message* until *parse* accepts the answer."""
    while True:
        answer = prompter.ask(message)
        try:
            return parse(answer)
        except InputError as exc:
            prompter.warn(str(exc))


@dataclass(frozen=True, slots=True)
class SitePreset:
    """Answers supplied up front (CLI flags); ``None`` means ask."""

    domain: str | None = None
    upstream_host: str | None = None
    upstream_port: int | None = None
    root_redirect_path: str | None = None
    use_root_redirect: bool | None = None
    use_custom_logs: bool | None = None


def collect_site(
    prompter: Prompter,
    *,
    paths: SitePaths,
    default_host: str,
    preset: SitePreset | None = None,
) -> ProxySiteConfig:
    """Gather a validated :class:`ProxySiteConfig` from the operator."""
    preset = preset or SitePreset()

    if preset.domain is not None:
        domain = validate_domain(preset.domain)
    else:
        domain = prompt_until_valid(prompter, "Enter domain (example.com)", validate_domain)

    if preset.upstream_host is not None:
        host = validate_host(preset.upstream_host)
    elif prompter.confirm(f"Use default upstream host {default_host}?"):
        host = default_host
    else:
        host = prompt_until_valid(
            prompter,
            "Enter upstream host (e.g. 127.0.0.1 or 10.0.0.5)",
            validate_host,
        )

    if preset.upstream_port is not None:
        port = validate_port(preset.upstream_port)
    else:
        port = prompt_until_valid(prompter, "Enter app port (e.g. 3052)", validate_port)

    redirect: str | None = None
    if preset.root_redirect_path is not None:
        redirect = validate_redirect_path(preset.root_redirect_path)
    elif preset.use_root_redirect is not False and (
        preset.use_root_redirect
        or prompter.confirm("Do you want root (/) to redirect to a sub-path (e.g. /s)?")
    ):
        redirect = prompt_until_valid(
            prompter,
            "Enter sub-path (must start with /, e.g. /s)",
            validate_redirect_path,
        )

    if preset.use_custom_logs is not None:
        custom_logs = preset.use_custom_logs
    else:
        custom_logs = prompter.confirm("Create dedicated access log for this domain?")

    return ProxySiteConfig(
        domain=domain,
        upstream_host=host,
        upstream_port=port,
        root_redirect_path=redirect,
        use_custom_logs=custom_logs,
        log_dir=paths.site_logs_dir,
    )


__all__ = [
    "Prompter",
    "SitePreset",
    "TerminalPrompter",
    "collect_site",
    "prompt_until_valid",
]
