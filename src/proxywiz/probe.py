"""Best-effort reachability probe for the upstream application."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import requests

LOGGER = logging.getLogger(__name__)


class ProbeOutcome(Enum):
    """Tri-state result of an upstream probe."""

    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """What the probe observed; callers only report it."""

    outcome: ProbeOutcome
    url: str
    status_code: int | None = None
    detail: str = ""


def probe_upstream(
    host: str,
    port: int,
    *,
    scheme: str = "http",
    timeout: float | None = None,
    session: requests.Session | None = None,
) -> ProbeResult:
    """Issue a single GET against the upstream and classify the response.

    Any 2xx or 3xx status counts as reachable. Redirects are not followed.
    This function never raises.
    """
    url = f"{scheme}://{host}:{port}"
    client = session or requests.Session()
    try:
        response = client.get(url, timeout=timeout, allow_redirects=False)
    except (requests.ConnectionError, requests.Timeout) as exc:
        LOGGER.debug("Upstream probe for %s failed: %s", url, exc)
        return ProbeResult(ProbeOutcome.UNREACHABLE, url, detail=str(exc))
    except (requests.RequestException, ValueError) as exc:
        # urllib3 raises LocationParseError (a ValueError) for unparsable hosts.
        LOGGER.debug("Upstream probe for %s could not run: %s", url, exc)
        return ProbeResult(ProbeOutcome.INDETERMINATE, url, detail=str(exc))
    finally:
        if session is None:
            client.close()

    status = response.status_code
    if 200 <= status < 400:
        return ProbeResult(ProbeOutcome.REACHABLE, url, status_code=status)
    return ProbeResult(
        ProbeOutcome.UNREACHABLE,
        url,
        status_code=status,
        detail=f"HTTP {status}",
    )


def skipped_probe(host: str, port: int, *, scheme: str = "http") -> ProbeResult:
    """Return the result recorded when probing is disabled."""
    return ProbeResult(
        ProbeOutcome.INDETERMINATE,
        f"{scheme}://{host}:{port}",
        detail="probe disabled",
    )


__all__ = ["ProbeOutcome", "ProbeResult", "probe_upstream", "skipped_probe"]
