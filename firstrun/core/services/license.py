"""
License verification — optional, fail-soft.

An empty purchase code skips the remote call entirely.  Any failure of
the remote call is logged and replaced by the default "unverified,
proceed anyway" result: license-service trouble never blocks an
install.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from firstrun.core.models.request import (
    DEFAULT_PRODUCT_ID,
    DEFAULT_VERSION,
    VerificationResult,
)
from firstrun.core.models.result import StageOutcome
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.services.errors import ExternalServiceError
from firstrun.core.services.http_client import post_json

logger = logging.getLogger(__name__)

STAGE = "license"

_VERIFIED_STATUSES = {"1", "ok", "true", "success"}


def resolve_domain(host_header: str | None, base_url: str) -> str:
    """Install domain: the Host header, else the base URL's host.

    A leading ``www.`` is dropped either way.
    """
    domain = (host_header or "").strip()
    if not domain:
        domain = urlparse(base_url).hostname or "localhost"
    if domain.lower().startswith("www."):
        domain = domain[4:]
    return domain


def _is_verified(status: object) -> bool:
    if isinstance(status, bool):
        return status
    return str(status).strip().lower() in _VERIFIED_STATUSES


def _text(value: object) -> str:
    """Reply field as text; nested or null values count as absent."""
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value).strip()


def _parse_reply(reply: object) -> VerificationResult:
    """Turn the service's JSON reply into a VerificationResult.

    Raises:
        ExternalServiceError: The reply is not an object or cannot be
            turned into a result.
    """
    if not isinstance(reply, dict):
        raise ExternalServiceError(f"Unexpected verification reply: {type(reply).__name__}")

    status = reply.get("status", 0)
    if not _is_verified(status):
        logger.warning(
            "Purchase code not verified (status=%r, message=%r), continuing unverified",
            status, reply.get("message", ""),
        )
        return VerificationResult(status=str(status))

    # A download URL is only usable as a string
    download_url = reply.get("download_url")
    if not isinstance(download_url, str) or not download_url.strip():
        download_url = None

    try:
        return VerificationResult(
            status="ok",
            verified=True,
            product_id=_text(reply.get("product_id")) or DEFAULT_PRODUCT_ID,
            version=_text(reply.get("version")) or DEFAULT_VERSION,
            install_path=_text(reply.get("install_path")),
            download_url=download_url.strip() if download_url else None,
        )
    except ValueError as e:
        raise ExternalServiceError(f"Malformed verification reply: {e}") from e


def verify_license(
    purchase_code: str,
    domain: str,
    website: str,
    settings: InstallerSettings,
) -> tuple[VerificationResult, StageOutcome]:
    """Verify a purchase code against the marketplace.

    Args:
        purchase_code: Code with whitespace already removed (may be empty).
        domain: Resolved install domain.
        website: Public URL the install is served from.
        settings: Installer settings (endpoint, timeout).

    Returns:
        (result, outcome).  ``result`` is the default value whenever
        the code is empty or the call fails.
    """
    if not purchase_code:
        return VerificationResult.default(), StageOutcome.skip(STAGE, "No purchase code supplied")

    payload = {
        "purchase_code": purchase_code,
        "domain": domain,
        "website": website,
        "is_main": 1,
    }

    try:
        reply = post_json(settings.verify_url, payload, timeout=settings.verify_timeout)
        result = _parse_reply(reply)
    except ExternalServiceError as e:
        logger.warning("Purchase code verification skipped: %s", e.message)
        return VerificationResult.default(), StageOutcome.failure(STAGE, e.message)

    logger.info(
        "License check for %s: verified=%s product=%s version=%s",
        domain, result.verified, result.product_id, result.version,
    )
    return result, StageOutcome.success(
        STAGE,
        "Purchase code verified" if result.verified else "Purchase code not verified",
        metadata={"verified": result.verified, "product_id": result.product_id},
    )
