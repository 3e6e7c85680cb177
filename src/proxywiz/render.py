"""Render nginx reverse proxy configuration for a :class:`ProxySiteConfig`."""
from __future__ import annotations

from .config import ProxyDefaults
from .site import ProxySiteConfig
from .templates import TemplateEngine

SITE_TEMPLATE = "nginx/reverse-proxy.conf.j2"
HEALTH_BODY_FORMAT = "OK - served by nginx for {domain}"


def build_context(site: ProxySiteConfig, defaults: ProxyDefaults) -> dict[str, object]:
    """Return the template context for *site*."""
    return {
        "domain": site.domain,
        "server_names": list(site.server_names),
        "upstream_url": site.upstream_url,
        "root_redirect_path": site.root_redirect_path,
        "use_custom_logs": site.use_custom_logs,
        "access_log": str(site.access_log_path),
        "error_log": str(site.error_log_path),
        "health_body": HEALTH_BODY_FORMAT.format(domain=site.domain),
        "proxy": defaults,
    }


def render_site(
    site: ProxySiteConfig,
    defaults: ProxyDefaults | None = None,
    templates: TemplateEngine | None = None,
) -> str:
    """Return the nginx server block for *site*.

    Rendering has no side effects: identical inputs always produce identical
    text, and nothing is read from or written to disk beyond loading the
    template itself.
    """
    engine = templates or TemplateEngine.with_overrides(None)
    return engine.render_to_string(SITE_TEMPLATE, build_context(site, defaults or ProxyDefaults()))


__all__ = ["HEALTH_BODY_FORMAT", "SITE_TEMPLATE", "build_context", "render_site"]
