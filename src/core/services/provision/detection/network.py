"""
Detection — network reachability and payload fetches.

Connectivity probes use a short timeout; they are the only operations
in the pipeline that are time-bounded by design.
"""

from __future__ import annotations

import http.client
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

_USER_AGENT = "podman-provisioner/0.1"


def check_endpoint_reachable(
    url: str,
    timeout: int = 5,
) -> dict:
    """Probe a remote endpoint for reachability.

    Any HTTP response counts as reachable; only connection-level
    failures (DNS, refused, timeout) do not.

    Returns::

        {"reachable": True, "url": "https://...", "status": 200, "latency_ms": 42}
        or
        {"reachable": False, "url": "https://...", "error": "timeout", "latency_ms": 5000}
    """
    start = time.monotonic()

    try:
        req = urllib.request.Request(
            url,
            method="HEAD",
            headers={"User-Agent": _USER_AGENT},
        )
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            elapsed = int((time.monotonic() - start) * 1000)
            return {
                "reachable": True,
                "url": url,
                "status": resp.getcode(),
                "latency_ms": elapsed,
            }
    except urllib.error.HTTPError as exc:
        # The server answered; that is all we need to know
        elapsed = int((time.monotonic() - start) * 1000)
        return {
            "reachable": True,
            "url": url,
            "status": exc.code,
            "latency_ms": elapsed,
        }
    except Exception as exc:
        elapsed = int((time.monotonic() - start) * 1000)
        return {
            "reachable": False,
            "url": url,
            "error": str(exc)[:200],
            "latency_ms": elapsed,
        }


def first_reachable(
    urls: Iterable[str],
    timeout: int = 5,
    probe: Callable[[str, int], dict] = check_endpoint_reachable,
) -> dict:
    """Try endpoints in order, stopping at the first reachable one.

    Returns:
        The reachable probe result, or
        ``{"reachable": False, "tried": [...], "errors": {...}}``.
    """
    tried: list[str] = []
    errors: dict[str, str] = {}
    for url in urls:
        tried.append(url)
        result = probe(url, timeout)
        if result.get("reachable"):
            return result
        errors[url] = result.get("error", "unreachable")
        logger.debug("Endpoint unreachable: %s (%s)", url, errors[url])
    return {"reachable": False, "tried": tried, "errors": errors}


def fetch_text(url: str, timeout: int = 30) -> str:
    """Download a small text payload.

    Raises:
        OSError: (including ``urllib.error.URLError``) on any failure.
        ValueError: if the payload is empty or not UTF-8.
    """
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except http.client.HTTPException as e:
        # Truncated bodies and malformed status lines are not OSErrors
        raise OSError(f"Bad response from {url}: {e!r}") from e
    text = body.decode("utf-8")
    if not text.strip():
        raise ValueError(f"Empty payload from {url}")
    return text
