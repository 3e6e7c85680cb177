"""Tests for the template rendering engine."""
from __future__ import annotations

from pathlib import Path

import pytest
from jinja2 import UndefinedError

from proxywiz.config import ProxyDefaults
from proxywiz.render import SITE_TEMPLATE
from proxywiz.templates import TemplateEngine, write_text_if_changed


def _context() -> dict[str, object]:
    return {
        "domain": "example.test",
        "server_names": ["example.test", "www.example.test"],
        "upstream_url": "http://127.0.0.1:5000",
        "root_redirect_path": None,
        "use_custom_logs": False,
        "access_log": "/etc/nginx/logs/example.test_access.log",
        "error_log": "/etc/nginx/logs/example.test_error.log",
        "health_body": "OK - served by nginx for example.test",
        "proxy": ProxyDefaults(),
    }


def test_render_to_string_uses_builtin_templates() -> None:
    """Built-in templates render with strict variables."""
    engine = TemplateEngine.with_overrides(None)

    output = engine.render_to_string(SITE_TEMPLATE, _context())

    assert "server_name example.test www.example.test;" in output
    assert "proxy_pass http://127.0.0.1:5000;" in output


def test_missing_variables_raise() -> None:
    """StrictUndefined surfaces missing context keys."""
    engine = TemplateEngine.with_overrides(None)
    context = _context()
    del context["upstream_url"]

    with pytest.raises(UndefinedError):
        engine.render_to_string(SITE_TEMPLATE, context)


def test_write_text_if_changed_writes_with_mode(tmp_path: Path) -> None:
    """Rendered text is written with the requested mode; rewrites are no-ops."""
    engine = TemplateEngine.with_overrides(None)
    destination = tmp_path / "sites-available" / "example.test"
    rendered = engine.render_to_string(SITE_TEMPLATE, _context())

    changed = write_text_if_changed(destination, rendered, mode=0o600)

    assert changed is True
    assert destination.read_text(encoding="utf-8") == rendered
    assert oct(destination.stat().st_mode & 0o777) == "0o600"

    # Second write with same content should be a no-op.
    assert write_text_if_changed(destination, rendered, mode=0o600) is False


def test_write_text_if_changed_replaces_content(tmp_path: Path) -> None:
    """Different content replaces the file and leaves no staging file behind."""
    destination = tmp_path / "site"
    destination.write_text("old", encoding="utf-8")

    assert write_text_if_changed(destination, "new") is True
    assert destination.read_text(encoding="utf-8") == "new"
    assert list(tmp_path.iterdir()) == [destination]


def test_override_path_takes_precedence(tmp_path: Path) -> None:
    """Override templates shadow the built-in ones."""
    override_dir = tmp_path / "templates"
    override_template = override_dir / "nginx" / "reverse-proxy.conf.j2"
    override_template.parent.mkdir(parents=True, exist_ok=True)
    override_template.write_text("override {{ domain }}", encoding="utf-8")

    engine = TemplateEngine.with_overrides(override_dir)

    rendered = engine.render_to_string(SITE_TEMPLATE, _context())

    assert rendered == "override example.test"


def test_missing_override_directory_falls_back(tmp_path: Path) -> None:
    """A configured but absent override directory uses built-in templates."""
    engine = TemplateEngine.with_overrides(tmp_path / "does-not-exist")

    rendered = engine.render_to_string(SITE_TEMPLATE, _context())

    assert rendered.startswith("server {\n")
