"""proxywiz package bootstrap.

Exposes the package version used by the CLI ``--version`` flag and the
structured operations log.
"""
from __future__ import annotations

__all__ = ["__version__"]

# NOTE: The version is duplicated in ``pyproject.toml``.
__version__ = "0.1.0"
