"""Input predicates used by the interactive prompts and CLI flags.

Every validator strips surrounding whitespace, returns the normalised value
and raises :class:`InputError` with the message shown to the operator when
the value is rejected.
"""
from __future__ import annotations

import re

DOMAIN_PATTERN = re.compile(r"[A-Za-z0-9.-]+")
PORT_PATTERN = re.compile(r"[0-9]+")
MIN_PORT = 1
MAX_PORT = 65535
AFFIRMATIVE_ANSWERS = frozenset({"y", "yes"})


class InputError(ValueError):
    """Raised when operator input fails validation."""


def require_non_empty(value: str) -> str:
    """Return *value* stripped, rejecting empty input."""
    normalised = value.strip()
    if not normalised:
        raise InputError("Input cannot be empty, try again.")
    return normalised


def validate_domain(value: str) -> str:
    """Validate a domain restricted to letters, digits, dots and hyphens.

    Names made only of dots are rejected; they would resolve to directories.
    """
    normalised = require_non_empty(value)
    if not DOMAIN_PATTERN.fullmatch(normalised) or not normalised.strip("."):
        raise InputError("Invalid domain format, try again.")
    return normalised


def validate_host(value: str) -> str:
    """Validate an upstream host (any non-empty token without whitespace)."""
    normalised = require_non_empty(value)
    if any(char.isspace() for char in normalised):
        raise InputError("Upstream host cannot contain whitespace, try again.")
    return normalised


def validate_port(value: str | int) -> int:
    """Validate a TCP port given as decimal digits (1-65535)."""
    text = str(value).strip()
    if not PORT_PATTERN.fullmatch(text):
        raise InputError("Invalid port. Must be a number between 1-65535.")
    port = int(text, 10)
    if not MIN_PORT <= port <= MAX_PORT:
        raise InputError("Invalid port. Must be a number between 1-65535.")
    return port


def validate_redirect_path(value: str) -> str:
    """Validate a root redirect target; it must be an absolute path."""
    normalised = require_non_empty(value)
    if not normalised.startswith("/"):
        raise InputError("Path must start with '/', try again.")
    return normalised


def is_valid_domain(value: str) -> bool:
    """Return True when *value* is an acceptable domain."""
    try:
        validate_domain(value)
    except InputError:
        return False
    return True


def is_valid_port(value: str | int) -> bool:
    """Return True when *value* is an acceptable port."""
    try:
        validate_port(value)
    except InputError:
        return False
    return True


def is_affirmative(answer: str) -> bool:
    """Return True for ``y``/``yes``; every other answer means no."""
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS


__all__ = [
    "InputError",
    "is_affirmative",
    "is_valid_domain",
    "is_valid_port",
    "require_non_empty",
    "validate_domain",
    "validate_host",
    "validate_port",
    "validate_redirect_path",
]
