"""Tests for the certbot provider."""
from __future__ import annotations

from collections.abc import Sequence

import pytest

from proxywiz.providers.certbot import CertbotError, CertbotProvider


class DummyResult:
    """Stand-in for ``subprocess.CompletedProcess``."""

    def __init__(self, returncode: int = 0) -> None:
        """Initialise the dummy result."""
        self.returncode = returncode
        self.stdout = ""
        self.stderr = ""


def test_command_covers_domain_and_aliases() -> None:
    """Every name is passed with its own ``-d`` flag."""
    provider = CertbotProvider(extra_args=("--redirect",))

    command = provider.command("example.com", ["www.example.com"])

    assert command == [
        "certbot",
        "--nginx",
        "-d",
        "example.com",
        "-d",
        "www.example.com",
        "--redirect",
    ]


def test_issue_certificate_runs_command(monkeypatch: pytest.MonkeyPatch) -> None:
    """Issuing a certificate runs certbot once."""
    calls: list[list[str]] = []

    def fake_run(self: CertbotProvider, command: Sequence[str]) -> DummyResult:
        calls.append(list(command))
        return DummyResult()

    monkeypatch.setattr(CertbotProvider, "_run_certbot", fake_run)

    CertbotProvider().issue_certificate("example.com", ["www.example.com"])

    assert calls == [["certbot", "--nginx", "-d", "example.com", "-d", "www.example.com"]]


def test_issue_certificate_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """A non-zero certbot exit raises CertbotError."""

    def fake_run(self: CertbotProvider, command: Sequence[str]) -> DummyResult:
        return DummyResult(returncode=1)

    monkeypatch.setattr(CertbotProvider, "_run_certbot", fake_run)

    with pytest.raises(CertbotError, match="exit 1"):
        CertbotProvider().issue_certificate("example.com", [])


def test_issue_certificate_missing_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing certbot binary raises CertbotError."""

    def fake_run(self: CertbotProvider, command: Sequence[str]) -> DummyResult:
        raise FileNotFoundError("certbot")

    monkeypatch.setattr(CertbotProvider, "_run_certbot", fake_run)

    with pytest.raises(CertbotError, match="not found"):
        CertbotProvider().issue_certificate("example.com", [])
