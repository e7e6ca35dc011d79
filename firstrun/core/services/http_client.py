"""
Outbound HTTP for the license service and package downloads.

Both calls run with certificate validation disabled; nothing else in
the package uses the unverified context.

Malformed URLs, transport errors, timeouts, non-2xx statuses and
undecodable bodies all surface as ExternalServiceError.
"""

from __future__ import annotations

import http.client
import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Any

from firstrun import __version__
from firstrun.core.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_USER_AGENT = f"firstrun/{__version__}"


def _unverified_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _open(
    url: str,
    timeout: float,
    *,
    method: str = "GET",
    data: bytes | None = None,
    headers: dict[str, str] | None = None,
) -> tuple[int, bytes]:
    """Send one request and return (status, body).  Non-2xx raises."""
    try:
        req = urllib.request.Request(
            url,
            data=data,
            headers={"User-Agent": _USER_AGENT, **(headers or {})},
            method=method,
        )
        with urllib.request.urlopen(req, timeout=timeout, context=_unverified_context()) as resp:
            status = resp.status
            body = resp.read()
    except urllib.error.HTTPError as e:
        raise ExternalServiceError(f"{url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, TimeoutError, OSError, http.client.HTTPException) as e:
        raise ExternalServiceError(f"{url} unreachable: {e}") from e
    except ValueError as e:
        # Malformed URL: missing scheme, control characters
        raise ExternalServiceError(f"Invalid URL {url!r}: {e}") from e

    if not 200 <= status < 300:
        raise ExternalServiceError(f"{url} returned HTTP {status}")
    return status, body


def post_json(url: str, payload: dict[str, Any], timeout: float) -> Any:
    """POST ``payload`` as JSON and decode the JSON reply.

    Raises:
        ExternalServiceError: On any transport, status or decode failure.
    """
    _status, body = _open(
        url,
        timeout,
        method="POST",
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", "Accept": "application/json"},
    )
    try:
        return json.loads(body) if body else None
    except ValueError as e:
        raise ExternalServiceError(f"{url} returned invalid JSON: {e}") from e


def get_bytes(url: str, timeout: float) -> bytes:
    """GET ``url`` and return the raw body.

    Raises:
        ExternalServiceError: On any transport, status or URL failure.
    """
    _status, body = _open(url, timeout)
    logger.debug("Downloaded %d bytes from %s", len(body), url)
    return body
