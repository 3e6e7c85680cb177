"""Site model and filesystem layout for a single proxied domain."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig

DEFAULT_UPSTREAM_HOST = "127.0.0.1"


@dataclass(frozen=True, slots=True)
class ProxySiteConfig:
    """Parameters collected for one reverse proxy site.

    Instances are only built from validated input; the domain doubles as the
    site's identity and the name of every file written for it.
    """

    domain: str
    upstream_port: int
    upstream_host: str = DEFAULT_UPSTREAM_HOST
    root_redirect_path: str | None = None
    use_custom_logs: bool = False
    log_dir: Path = Path("/etc/nginx/logs")

    @property
    def server_names(self) -> tuple[str, str]:
        """Return the apex domain and its ``www.`` alias."""
        return (self.domain, f"www.{self.domain}")

    @property
    def upstream_address(self) -> str:
        """Return ``host:port`` of the upstream."""
        return f"{self.upstream_host}:{self.upstream_port}"

    @property
    def upstream_url(self) -> str:
        """Return the plain HTTP URL nginx proxies to."""
        return f"http://{self.upstream_address}"

    @property
    def access_log_path(self) -> Path:
        """Return the dedicated access log path for the domain."""
        return self.log_dir / f"{self.domain}_access.log"

    @property
    def error_log_path(self) -> Path:
        """Return the dedicated error log path for the domain."""
        return self.log_dir / f"{self.domain}_error.log"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "domain": self.domain,
            "upstream_host": self.upstream_host,
            "upstream_port": self.upstream_port,
            "root_redirect_path": self.root_redirect_path,
            "use_custom_logs": self.use_custom_logs,
            "access_log": str(self.access_log_path),
            "error_log": str(self.error_log_path),
        }


@dataclass(frozen=True, slots=True)
class SitePaths:
    """Directories a run reads and writes, resolved once from config."""

    sites_available: Path
    sites_enabled: Path
    site_logs_dir: Path

    @classmethod
    def from_config(cls, config: AppConfig) -> SitePaths:
        """Build the layout from the resolved application config."""
        return cls(
            sites_available=config.sites_available,
            sites_enabled=config.sites_enabled,
            site_logs_dir=config.site_logs_dir,
        )

    def config_path(self, domain: str) -> Path:
        """Return the sites-available path for *domain*."""
        return self.sites_available / domain

    def enabled_path(self, domain: str) -> Path:
        """Return the sites-enabled symlink path for *domain*."""
        return self.sites_enabled / domain

    def ensure_log_dir(self) -> None:
        """Create the per-site log directory when missing."""
        self.site_logs_dir.mkdir(parents=True, exist_ok=True)


__all__ = ["DEFAULT_UPSTREAM_HOST", "ProxySiteConfig", "SitePaths"]
