"""
Install use case — the first-run provisioning pipeline.

Drives every stage in strict order and assembles the one PipelineResult
the caller sees:

    validate → (reinstall policy) → verify license → fetch package
      → persist config → connect → ledger + migrations
      → create admin → register addon → report

Fail-fast stages raise an InstallError subclass, which ends the run
right here.  Fail-soft stages hand back a StageOutcome that is logged
and recorded but never changes the success flag.  Anything else is
caught at the top and reported as a generic failure with status 500.

Runs are serialized per process: a second request arriving while one
is in flight is turned away instead of racing it.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from datetime import UTC, datetime
from typing import Any

from firstrun.core import context
from firstrun.core.models.request import InstallationRequest
from firstrun.core.models.result import PipelineResult, StageOutcome
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.persistence.audit import AuditWriter, InstallAuditEntry
from firstrun.core.services.accounts import create_admin
from firstrun.core.services.addons import register_addon
from firstrun.core.services.database import bootstrap_database, open_database
from firstrun.core.services.env_config import persist_configuration, read_env_values
from firstrun.core.services.errors import InstallError, ValidationError
from firstrun.core.services.license import resolve_domain, verify_license
from firstrun.core.services.package import install_package
from firstrun.core.services.validation import validate_request

logger = logging.getLogger(__name__)

_install_lock = threading.Lock()


class PayloadError(InstallError):
    """The request body is not a JSON object."""


def generate_operation_id() -> str:
    """Short, sortable identifier for one installation attempt."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    return f"install-{ts}-{uuid.uuid4().hex[:8]}"


def parse_payload(raw: bytes | str) -> dict[str, Any]:
    """Decode the request body.

    Raises:
        PayloadError: Malformed JSON or not a JSON object.
    """
    try:
        data = json.loads(raw or b"")
    except (ValueError, UnicodeDecodeError) as e:
        raise PayloadError(f"Invalid JSON in request: {e}") from e
    if not isinstance(data, dict):
        raise PayloadError(
            f"Invalid JSON in request: expected an object, got {type(data).__name__}"
        )
    return data


def is_installed(settings: InstallerSettings) -> bool:
    """Whether the durable .env already marks the application installed."""
    return read_env_values(settings.env_path).get("APP_INSTALLED", "").lower() == "true"


# ═══════════════════════════════════════════════════════════════════
#  Pipeline
# ═══════════════════════════════════════════════════════════════════


class _Run:
    """Mutable bookkeeping for one pipeline execution."""

    def __init__(self) -> None:
        self.stage = "validate"
        self.outcomes: list[StageOutcome] = []
        self.env_values: dict[str, str] = {}

    def record(self, outcome: StageOutcome) -> StageOutcome:
        self.outcomes.append(outcome)
        if outcome.failed:
            logger.warning("Stage %s failed (fail-soft): %s", outcome.stage, outcome.error)
        else:
            logger.info("Stage %s: %s %s", outcome.stage, outcome.status, outcome.message)
        return outcome


def _execute(
    request: InstallationRequest,
    settings: InstallerSettings,
    run: _Run,
    host: str | None,
    base_url: str,
) -> PipelineResult:
    """Run the stages.  Fail-fast errors propagate as InstallError."""
    # ── 1. Input validation ─────────────────────────────────────
    run.stage = "validate"
    errors = validate_request(request)
    if errors:
        raise ValidationError("Validation error", errors)
    run.record(StageOutcome.success("validate"))

    # ── Re-run policy (still before any side effect) ────────────
    if not settings.allow_reinstall and is_installed(settings):
        raise InstallError("Application is already installed",
                           {"general": "Reinstallation is disabled."})

    # ── 2. License verification (fail-soft) ─────────────────────
    run.stage = "license"
    purchase_code = request.clean_purchase_code
    domain = resolve_domain(host, base_url)
    verification, outcome = verify_license(purchase_code, domain, base_url, settings)
    run.record(outcome)

    # ── 3. Package fetch (fail-soft) ────────────────────────────
    run.stage = "package"
    run.record(install_package(verification, settings))

    # ── 4. Configuration persistence ────────────────────────────
    run.stage = "config"
    runtime, outcome = persist_configuration(request, settings, base_url)
    run.env_values = runtime.env_values
    run.record(outcome)

    # ── 5–7. Database, admin, addon on one live connection ──────
    run.stage = "database"
    with open_database(runtime.database) as conn:
        run.record(bootstrap_database(conn, settings.resolved_migrations_path))

        run.stage = "admin"
        run.record(create_admin(conn, request))

        run.stage = "addon"
        run.record(register_addon(conn, verification, purchase_code))

    return PipelineResult.succeeded()


def run_install(
    request: InstallationRequest,
    settings: InstallerSettings,
    *,
    host: str | None = None,
    base_url: str | None = None,
) -> PipelineResult:
    """Run the whole provisioning pipeline for one request.

    Args:
        request: The submitted form.
        settings: Installer settings.
        host: Host header of the inbound request (domain resolution).
        base_url: URL the installer is served from; defaults to
            ``settings.base_url``.

    Returns:
        The single PipelineResult for this request.  Never raises.
    """
    operation_id = generate_operation_id()
    base_url = base_url or settings.base_url
    started = time.monotonic()

    if not _install_lock.acquire(blocking=False):
        logger.warning("Rejected %s: another installation is in progress", operation_id)
        return PipelineResult.failed(
            "Another installation is already in progress",
            {"general": "Installation in progress."},
        )

    run = _Run()
    try:
        logger.info("Installation %s started for %s", operation_id, request.site_name or "(unnamed)")
        result = _execute(request, settings, run, host, base_url)
    except InstallError as e:
        logger.error("Installation %s failed at %s: %s", operation_id, run.stage, e.message)
        result = PipelineResult.failed(e.message, e.errors, failed_stage=run.stage)
    except Exception as e:
        logger.exception("Installer error during %s: %s", run.stage, e)
        result = PipelineResult.failed(
            f"Installation failed: {e}",
            {"general": str(e)},
            status_code=500,
            failed_stage=run.stage,
        )
    finally:
        _install_lock.release()

    result.stages = run.outcomes

    if result.success:
        context.set_installed_config(run.env_values)
        logger.info("Installation %s completed", operation_id)

    # Nothing was touched before validation passed; leave no trace either
    if result.failed_stage != "validate":
        _audit(settings, operation_id, request, result, host, started)
    return result


def install_from_json(
    raw: bytes | str,
    settings: InstallerSettings,
    *,
    host: str | None = None,
    base_url: str | None = None,
) -> PipelineResult:
    """Decode a raw JSON body and run the pipeline.

    An undecodable body is a failed installation (HTTP 500), reported
    the same way as any other unexpected failure.
    """
    try:
        data = parse_payload(raw)
        request = InstallationRequest.from_payload(data)
    except (PayloadError, ValueError) as e:
        reason = e.message if isinstance(e, PayloadError) else f"Invalid JSON in request: {e}"
        logger.warning("Rejected install request: %s", reason)
        return PipelineResult.failed(
            f"Installation failed: {reason}",
            {"general": reason},
            status_code=500,
            failed_stage="parse",
        )

    return run_install(request, settings, host=host, base_url=base_url)


def _audit(
    settings: InstallerSettings,
    operation_id: str,
    request: InstallationRequest,
    result: PipelineResult,
    host: str | None,
    started: float,
) -> None:
    redacted = request.redacted()
    entry = InstallAuditEntry(
        operation_id=operation_id,
        success=result.success,
        message=result.message,
        status_code=result.status_code,
        failed_stage=result.failed_stage,
        duration_ms=int((time.monotonic() - started) * 1000),
        stages=[o.model_dump(mode="json") for o in result.stages],
        errors=result.errors or {},
        context={
            "host": host or "",
            "site_name": redacted["site_name"],
            "admin_username": redacted["admin_username"],
            "database_host": redacted["database_host"],
            "database_name": redacted["database_name"],
            "purchase_code": redacted["purchase_code"],
        },
    )
    AuditWriter(settings.audit_path).write(entry)
