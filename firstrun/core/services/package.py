"""
Licensed package fetch + install — best-effort enrichment.

Runs only when the license service handed back a download URL and an
install path.  Each step is fail-soft: whatever goes wrong is logged
and reported as a failed StageOutcome, and the temporary archive is
removed on every exit path.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path, PurePosixPath

from firstrun.core.models.request import VerificationResult
from firstrun.core.models.result import StageOutcome
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.services.errors import ExternalServiceError
from firstrun.core.services.http_client import get_bytes

logger = logging.getLogger(__name__)

STAGE = "package"


def resolve_install_dir(app_root: Path, install_path: str) -> Path | None:
    """Resolve the license service's install path under ``app_root``.

    Returns None when the path would land outside the application or
    is not a usable path at all.
    """
    if "\x00" in install_path:
        return None
    root = app_root.resolve()
    try:
        target = (root / install_path.lstrip("/\\")).resolve()
    except (OSError, ValueError):
        return None
    if target != root and root not in target.parents:
        return None
    return target


def _unsafe_members(archive: zipfile.ZipFile) -> list[str]:
    """Archive entries that would extract outside the target directory."""
    bad = []
    for name in archive.namelist():
        p = PurePosixPath(name.replace("\\", "/"))
        if p.is_absolute() or ".." in p.parts:
            bad.append(name)
    return bad


def extract_archive(payload: bytes, target: Path, scratch: Path) -> int:
    """Write ``payload`` to a temp archive in ``scratch`` and unpack into ``target``.

    Returns:
        Number of entries extracted.

    Raises:
        zipfile.BadZipFile, OSError, ValueError on a broken or hostile archive.
    """
    fd, tmp_name = tempfile.mkstemp(dir=scratch, prefix="installer_", suffix=".zip")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)

        with zipfile.ZipFile(tmp) as archive:
            bad = _unsafe_members(archive)
            if bad:
                raise ValueError(f"Archive entries escape install directory: {bad[:5]}")
            archive.extractall(target)
            return len(archive.namelist())
    finally:
        tmp.unlink(missing_ok=True)


def install_package(
    verification: VerificationResult,
    settings: InstallerSettings,
) -> StageOutcome:
    """Download and unpack the licensed bundle, if there is one.

    Never raises: every failure comes back as a failed StageOutcome.
    """
    url = verification.download_url
    if not url or not verification.install_path:
        return StageOutcome.skip(STAGE, "No package to install")

    try:
        return _fetch_and_extract(url, verification, settings)
    except Exception as e:
        logger.warning("Package install failed (continuing anyway): %s", e)
        return StageOutcome.failure(STAGE, f"Package install failed: {e}")


def _fetch_and_extract(
    url: str,
    verification: VerificationResult,
    settings: InstallerSettings,
) -> StageOutcome:
    target = resolve_install_dir(settings.app_root, verification.install_path)
    if target is None:
        logger.warning("Install path %r escapes the application root, skipping download",
                       verification.install_path)
        return StageOutcome.failure(STAGE, f"Install path outside application: {verification.install_path!r}")

    try:
        target.mkdir(parents=True, exist_ok=True)
        settings.storage_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot prepare install directories: %s", e)
        return StageOutcome.failure(STAGE, f"Cannot create directories: {e}")

    try:
        payload = get_bytes(url, timeout=settings.download_timeout)
    except ExternalServiceError as e:
        logger.warning("Download failed (continuing anyway): %s", e.message)
        return StageOutcome.failure(STAGE, e.message)

    if not payload:
        logger.warning("Download returned an empty body, nothing to install")
        return StageOutcome.failure(STAGE, "Empty download")

    try:
        count = extract_archive(payload, target, settings.storage_path)
    except (zipfile.BadZipFile, OSError, ValueError) as e:
        logger.warning("Package extraction failed (continuing anyway): %s", e)
        return StageOutcome.failure(STAGE, f"Extraction failed: {e}")

    logger.info("Installed %s %s (%d entries) into %s",
                verification.product_id, verification.version, count, target)
    return StageOutcome.success(
        STAGE,
        f"Extracted {count} entries",
        metadata={"install_dir": str(target), "entries": count},
    )
