"""Probe executor — one outbound GET per check, plus health classification.

Any HTTP status is a completed probe; only transport failures (DNS,
connect, TLS, timeout, redirect loop) come back as ``network_error``.
No retries here: a probe is a single attempt.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass

import httpx

from healthwatch.config import settings

logger = logging.getLogger(__name__)


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeOutcome:
    """Raw result of a single probe, before classification."""

    status_code: int | None
    response_time_ms: float
    network_error: str | None = None


# ── Probe ────────────────────────────────────────────────────────────────────


class _DeadlineExceeded(Exception):
    """The overall budget ran out between reads or between redirect hops."""


def _elapsed_ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 1)


def _remaining(deadline: float) -> float:
    left = deadline - time.perf_counter()
    if left <= 0:
        raise _DeadlineExceeded
    return left


def _fetch(
    url: str,
    deadline: float,
    max_redirects: int,
    transport: httpx.BaseTransport | None,
) -> int:
    """Follow redirects by hand so every hop and body read shares one deadline."""
    with httpx.Client(follow_redirects=False, transport=transport) as client:
        request = client.build_request("GET", url, timeout=_remaining(deadline))
        for _ in range(max_redirects + 1):
            resp = client.send(request, stream=True)
            try:
                for _chunk in resp.iter_raw():
                    if time.perf_counter() >= deadline:
                        raise _DeadlineExceeded
            finally:
                resp.close()

            if resp.next_request is None:
                return resp.status_code
            request = resp.next_request
            request.extensions["timeout"] = httpx.Timeout(_remaining(deadline)).as_dict()

    raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)


def run_http_probe(
    url: str,
    timeout_ms: int,
    *,
    max_redirects: int | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ProbeOutcome:
    """GET ``url`` with a total deadline of ``timeout_ms``.

    The deadline covers connecting, every redirect hop and reading the
    body; a server that keeps trickling bytes past it is a timeout.
    ``response_time_ms`` is measured from dispatch to the final response,
    or to the failure, and is always reported.
    """
    if max_redirects is None:
        max_redirects = settings.probe_max_redirects

    budget = timeout_ms / 1000
    t0 = time.perf_counter()
    # The worker enforces the deadline between reads; waiting on the future
    # bounds a single read that blocks past it.
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="http-check")
    try:
        future = executor.submit(_fetch, url, t0 + budget, max_redirects, transport)
        status_code = future.result(timeout=max(0.0, t0 + budget - time.perf_counter()))
        latency = _elapsed_ms(t0)
        logger.debug("Probe %s -> %d (%.1fms)", url, status_code, latency)
        return ProbeOutcome(status_code=status_code, response_time_ms=latency)
    except (FutureTimeout, _DeadlineExceeded, httpx.TimeoutException):
        error = f"Request timed out after {timeout_ms}ms"
    except httpx.TooManyRedirects:
        error = f"Maximum number of redirects exceeded ({max_redirects})"
    except httpx.ConnectError as e:
        error = f"Connection error: {e}"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        error = f"Request failed: {type(e).__name__}: {e}"
    finally:
        executor.shutdown(wait=False)

    latency = _elapsed_ms(t0)
    logger.debug("Probe %s failed after %.1fms: %s", url, latency, error)
    return ProbeOutcome(status_code=None, response_time_ms=latency, network_error=error)


# ── Classification ───────────────────────────────────────────────────────────


def classify(status_code: int | None, expected_status: int) -> bool:
    """Healthy iff the status meets the expectation.

    An expected 2xx accepts any 2xx; anything else must match exactly.
    """
    if status_code is None:
        return False
    if 200 <= expected_status < 300:
        return 200 <= status_code < 300
    return status_code == expected_status


def evaluate(outcome: ProbeOutcome, expected_status: int) -> tuple[bool, str | None]:
    """Return ``(is_healthy, error_message)`` for a probe outcome."""
    if outcome.status_code is None:
        return False, outcome.network_error or "Request failed"
    if classify(outcome.status_code, expected_status):
        return True, None
    return False, f"Unexpected status code: {outcome.status_code}"
