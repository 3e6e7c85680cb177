"""Provider interfaces for proxywiz."""
from __future__ import annotations

from .base import CertificateTool, PackageManager, WebServer, command_exists
from .certbot import CertbotError, CertbotProvider
from .nginx import NginxError, NginxProvider
from .packages import AptProvider, PackageError
from .systemd import SystemdError, SystemdProvider

__all__ = [
    "AptProvider",
    "CertbotError",
    "CertbotProvider",
    "CertificateTool",
    "NginxError",
    "NginxProvider",
    "PackageError",
    "PackageManager",
    "SystemdError",
    "SystemdProvider",
    "WebServer",
    "command_exists",
]
