"""Configuration loader for proxywiz.

This module centralises the logic for reading configuration values from
multiple sources:

1. Built-in defaults.
2. ``/etc/proxywiz/config.yml`` (or an override path).
3. Environment variables prefixed with ``PROXYWIZ_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export PROXYWIZ_NGINX_ROOT=/usr/local/etc/nginx
    export PROXYWIZ_PROXY__READ_TIMEOUT=120s
    export PROXYWIZ_PROBE__ENABLED=false

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load proxywiz configuration. Install with "
        "`pip install proxywiz` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "PROXYWIZ_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class NginxConfig:
    """Location of the nginx binary and the service it runs as."""

    nginx_bin: str = "nginx"
    service: str = "nginx"
    packages: tuple[str, ...] = ("nginx",)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "nginx_bin": self.nginx_bin,
            "service": self.service,
            "packages": list(self.packages),
        }


@dataclass(frozen=True)
class SystemdConfig:
    """Systemd integration configuration values."""

    systemctl_bin: str = "systemctl"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"systemctl_bin": self.systemctl_bin}


@dataclass(frozen=True)
class PackagesConfig:
    """Package manager used to install missing tools."""

    apt_bin: str = "apt-get"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"apt_bin": self.apt_bin}


@dataclass(frozen=True)
class CertbotConfig:
    """Certificate tool settings."""

    certbot_bin: str = "certbot"
    packages: tuple[str, ...] = ("certbot", "python3-certbot-nginx")
    extra_args: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "certbot_bin": self.certbot_bin,
            "packages": list(self.packages),
            "extra_args": list(self.extra_args),
        }


@dataclass(frozen=True)
class ProbeConfig:
    """Upstream reachability probe settings.

    ``timeout`` of ``None`` waits for as long as the upstream takes.
    """

    enabled: bool = True
    scheme: str = "http"
    timeout: float | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"enabled": self.enabled, "scheme": self.scheme, "timeout": self.timeout}


@dataclass(frozen=True)
class RollbackConfig:
    """Behaviour when activation fails."""

    remove_new_sites: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"remove_new_sites": self.remove_new_sites}


@dataclass(frozen=True)
class ProxyDefaults:
    """Fixed directive values written into every rendered site."""

    listen_port: int = 80
    http_version: str = "1.1"
    connect_timeout: str = "60s"
    send_timeout: str = "60s"
    read_timeout: str = "60s"
    buffering: bool = True
    buffers: str = "16 16k"
    buffer_size: str = "16k"
    health_path: str = "/_nginx_health"
    redirect_status: int = 302

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "listen_port": self.listen_port,
            "http_version": self.http_version,
            "connect_timeout": self.connect_timeout,
            "send_timeout": self.send_timeout,
            "read_timeout": self.read_timeout,
            "buffering": self.buffering,
            "buffers": self.buffers,
            "buffer_size": self.buffer_size,
            "health_path": self.health_path,
            "redirect_status": self.redirect_status,
        }


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for proxywiz."""

    config_file: Path
    nginx_root: Path
    sites_available: Path
    sites_enabled: Path
    site_logs_dir: Path
    logs_dir: Path
    templates_dir: Path
    require_root: bool
    default_upstream_host: str
    nginx: NginxConfig
    systemd: SystemdConfig
    packages: PackagesConfig
    certbot: CertbotConfig
    probe: ProbeConfig
    rollback: RollbackConfig
    proxy: ProxyDefaults

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "nginx_root": str(self.nginx_root),
            "sites_available": str(self.sites_available),
            "sites_enabled": str(self.sites_enabled),
            "site_logs_dir": str(self.site_logs_dir),
            "logs_dir": str(self.logs_dir),
            "templates_dir": str(self.templates_dir),
            "require_root": self.require_root,
            "default_upstream_host": self.default_upstream_host,
            "nginx": self.nginx.to_dict(),
            "systemd": self.systemd.to_dict(),
            "packages": self.packages.to_dict(),
            "certbot": self.certbot.to_dict(),
            "probe": self.probe.to_dict(),
            "rollback": self.rollback.to_dict(),
            "proxy": self.proxy.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/proxywiz/config.yml",
    "nginx_root": "/etc/nginx",
    "sites_available": None,  # derived from nginx_root when absent
    "sites_enabled": None,
    "site_logs_dir": None,
    "logs_dir": "/var/log/proxywiz",
    "templates_dir": "/etc/proxywiz/templates",
    "require_root": True,
    "default_upstream_host": "127.0.0.1",
    "nginx": {
        "nginx_bin": "nginx",
        "service": "nginx",
        "packages": ["nginx"],
    },
    "systemd": {
        "systemctl_bin": "systemctl",
    },
    "packages": {
        "apt_bin": "apt-get",
    },
    "certbot": {
        "certbot_bin": "certbot",
        "packages": ["certbot", "python3-certbot-nginx"],
        "extra_args": [],
    },
    "probe": {
        "enabled": True,
        "scheme": "http",
        "timeout": None,
    },
    "rollback": {
        "remove_new_sites": False,
    },
    "proxy": {
        "listen_port": 80,
        "http_version": "1.1",
        "connect_timeout": "60s",
        "send_timeout": "60s",
        "read_timeout": "60s",
        "buffering": True,
        "buffers": "16 16k",
        "buffer_size": "16k",
        "health_path": "/_nginx_health",
        "redirect_status": 302,
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_SECTION_KEYS: dict[str, set[str]] = {
    "nginx": {"nginx_bin", "service", "packages"},
    "systemd": {"systemctl_bin"},
    "packages": {"apt_bin"},
    "certbot": {"certbot_bin", "packages", "extra_args"},
    "probe": {"enabled", "scheme", "timeout"},
    "rollback": {"remove_new_sites"},
    "proxy": set(ProxyDefaults().to_dict().keys()),
}
ALLOWED_PROBE_SCHEMES = {"http", "https"}
ALLOWED_REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in ALLOWED_SECTION_KEYS.items():
        value = raw.get(section)
        if value is None:
            continue
        mapping = _as_dict(value, section)
        unknown = set(mapping.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    probe_map = _as_dict(raw.get("probe"), "probe")
    scheme = probe_map.get("scheme")
    if scheme is not None and str(scheme) not in ALLOWED_PROBE_SCHEMES:
        allowed_schemes = ", ".join(sorted(ALLOWED_PROBE_SCHEMES))
        raise ConfigError(f"Unsupported probe scheme '{scheme}'. Allowed: {allowed_schemes}.")

    proxy_map = _as_dict(raw.get("proxy"), "proxy")
    status = proxy_map.get("redirect_status")
    if status is not None:
        code = _expect_int(status, "proxy.redirect_status", default=302)
        if code not in ALLOWED_REDIRECT_STATUSES:
            allowed_codes = ", ".join(str(item) for item in sorted(ALLOWED_REDIRECT_STATUSES))
            raise ConfigError(
                f"Unsupported proxy.redirect_status {code}. Allowed: {allowed_codes}."
            )
    health_path = proxy_map.get("health_path")
    if health_path is not None and not str(health_path).startswith("/"):
        raise ConfigError("proxy.health_path must start with '/'.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    nginx_root = _to_path(raw.get("nginx_root"))
    logs_dir = _to_path(raw.get("logs_dir"))
    templates_dir = _to_path(raw.get("templates_dir"))

    sites_available = _derived_path(raw.get("sites_available"), nginx_root / "sites-available")
    sites_enabled = _derived_path(raw.get("sites_enabled"), nginx_root / "sites-enabled")
    site_logs_dir = _derived_path(raw.get("site_logs_dir"), nginx_root / "logs")

    default_host = str(raw.get("default_upstream_host") or "127.0.0.1").strip()
    if not default_host:
        raise ConfigError("default_upstream_host must be a non-empty string.")

    nginx_mapping = _as_dict(raw.get("nginx"), "nginx")
    nginx = NginxConfig(
        nginx_bin=str(nginx_mapping.get("nginx_bin", "nginx")),
        service=str(nginx_mapping.get("service", "nginx")),
        packages=_as_str_tuple(nginx_mapping.get("packages", ["nginx"]), "nginx.packages"),
    )

    systemd_mapping = _as_dict(raw.get("systemd"), "systemd")
    systemd = SystemdConfig(
        systemctl_bin=str(systemd_mapping.get("systemctl_bin", "systemctl")),
    )

    packages_mapping = _as_dict(raw.get("packages"), "packages")
    packages = PackagesConfig(apt_bin=str(packages_mapping.get("apt_bin", "apt-get")))

    certbot_mapping = _as_dict(raw.get("certbot"), "certbot")
    certbot = CertbotConfig(
        certbot_bin=str(certbot_mapping.get("certbot_bin", "certbot")),
        packages=_as_str_tuple(
            certbot_mapping.get("packages", ["certbot", "python3-certbot-nginx"]),
            "certbot.packages",
        ),
        extra_args=_as_str_tuple(certbot_mapping.get("extra_args", []), "certbot.extra_args"),
    )

    probe_mapping = _as_dict(raw.get("probe"), "probe")
    timeout_value = probe_mapping.get("timeout")
    probe = ProbeConfig(
        enabled=_expect_bool(probe_mapping.get("enabled"), "probe.enabled", default=True),
        scheme=str(probe_mapping.get("scheme", "http")),
        timeout=(
            None
            if timeout_value is None
            else _expect_positive_float(timeout_value, "probe.timeout", default=10.0)
        ),
    )

    rollback_mapping = _as_dict(raw.get("rollback"), "rollback")
    rollback = RollbackConfig(
        remove_new_sites=_expect_bool(
            rollback_mapping.get("remove_new_sites"),
            "rollback.remove_new_sites",
            default=False,
        ),
    )

    proxy_mapping = _as_dict(raw.get("proxy"), "proxy")
    defaults = ProxyDefaults()
    listen_port = _expect_int(
        proxy_mapping.get("listen_port"), "proxy.listen_port", default=defaults.listen_port
    )
    if not 0 < listen_port < 65536:
        raise ConfigError("proxy.listen_port must be between 1 and 65535.")
    proxy = ProxyDefaults(
        listen_port=listen_port,
        http_version=str(proxy_mapping.get("http_version", defaults.http_version)),
        connect_timeout=str(proxy_mapping.get("connect_timeout", defaults.connect_timeout)),
        send_timeout=str(proxy_mapping.get("send_timeout", defaults.send_timeout)),
        read_timeout=str(proxy_mapping.get("read_timeout", defaults.read_timeout)),
        buffering=_expect_bool(
            proxy_mapping.get("buffering"), "proxy.buffering", default=defaults.buffering
        ),
        buffers=str(proxy_mapping.get("buffers", defaults.buffers)),
        buffer_size=str(proxy_mapping.get("buffer_size", defaults.buffer_size)),
        health_path=str(proxy_mapping.get("health_path", defaults.health_path)),
        redirect_status=_expect_int(
            proxy_mapping.get("redirect_status"),
            "proxy.redirect_status",
            default=defaults.redirect_status,
        ),
    )

    return AppConfig(
        config_file=config_file,
        nginx_root=nginx_root,
        sites_available=sites_available,
        sites_enabled=sites_enabled,
        site_logs_dir=site_logs_dir,
        logs_dir=logs_dir,
        templates_dir=templates_dir,
        require_root=_expect_bool(raw.get("require_root"), "require_root", default=True),
        default_upstream_host=default_host,
        nginx=nginx,
        systemd=systemd,
        packages=packages,
        certbot=certbot,
        probe=probe,
        rollback=rollback,
        proxy=proxy,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _as_str_tuple(value: object, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    items: list[str] = []
    for index, item in enumerate(_as_sequence(value, label)):
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            raise ConfigError(f"{label}[{index}] must be a string.")
        text = str(item).strip()
        if not text:
            raise ConfigError(f"{label}[{index}] must be a non-empty string.")
        items.append(text)
    return tuple(items)


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _derived_path(value: object, default: Path) -> Path:
    if value in (None, ""):
        return default
    return _to_path(value)


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "CertbotConfig",
    "ConfigError",
    "NginxConfig",
    "PackagesConfig",
    "ProbeConfig",
    "ProxyDefaults",
    "RollbackConfig",
    "SystemdConfig",
    "load_config",
]
