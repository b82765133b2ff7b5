"""Shared HTTP helpers used by the registry clients.

Encapsulates request/timeout error handling so callers avoid duplicating
try/except blocks. Failures are raised as ``RegistryError``; retries are
left to the caller.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from ..constants import Constants
from ..errors import RegistryError
from .logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)


def safe_get(url: str, *, context: str, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "find-links").
        **kwargs: Passed through to requests.get.

    Returns:
        requests.Response: The HTTP response object.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            res = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                Constants.REQUEST_TIMEOUT,
            )
            raise RegistryError(f"{context}: request to {safe_target} timed out") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise RegistryError(f"{context}: failed to fetch {safe_target}: {exc}") from exc
    if is_debug_enabled(logger):
        logger.debug(
            "HTTP response",
            extra=extra_context(
                event="http_response",
                component="http_client",
                action="GET",
                outcome="success" if res.status_code < 400 else "error",
                status_code=res.status_code,
                duration_ms=t.duration_ms(),
                target=safe_target,
                context=context,
            ),
        )
    return res


def fetch_text(url: str, *, context: str, **kwargs: Any) -> str:
    """GET ``url`` and return its body, raising on non-2xx status codes."""
    res = safe_get(url, context=context, **kwargs)
    if res.status_code >= 400:
        raise RegistryError(
            f"{context}: {safe_url(url)} returned HTTP {res.status_code}"
        )
    return res.text
