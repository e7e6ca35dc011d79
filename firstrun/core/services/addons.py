"""
Addon registration — license bookkeeping, always fail-soft.

Writes one ``addons`` row when the caller supplied a purchase code.
Fields missing from the verification reply fall back to "main" /
"1.0.0".
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import column, insert, table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from firstrun.core.models.request import AddonRecord, VerificationResult
from firstrun.core.models.result import StageOutcome
from firstrun.core.services.database import driver_message
from firstrun.core.services.errors import AddonError

logger = logging.getLogger(__name__)

STAGE = "addon"

addons = table(
    "addons",
    column("id"),
    column("product_id"),
    column("version"),
    column("module_name"),
    column("purchase_code"),
    column("install_path"),
    column("created"),
)


def build_addon_record(verification: VerificationResult, purchase_code: str) -> AddonRecord:
    return AddonRecord(
        product_id=verification.product_id or "main",
        version=verification.version or "1.0.0",
        module_name="main",
        purchase_code=purchase_code,
        install_path=verification.install_path,
    )


def insert_addon(conn: Connection, record: AddonRecord) -> None:
    """Insert ``record``.

    Raises:
        AddonError: On any database failure.
    """
    try:
        with conn.begin():
            conn.execute(insert(addons).values(**record.model_dump(), created=int(time.time())))
    except SQLAlchemyError as e:
        raise AddonError(f"Purchase addon insertion failed: {driver_message(e)}") from e


def register_addon(
    conn: Connection,
    verification: VerificationResult,
    purchase_code: str,
) -> StageOutcome:
    """Record the purchase, never failing the install."""
    if not purchase_code:
        return StageOutcome.skip(STAGE, "No purchase code supplied")

    record = build_addon_record(verification, purchase_code)
    try:
        insert_addon(conn, record)
    except AddonError as e:
        logger.warning("%s (continuing anyway)", e.message)
        return StageOutcome.failure(STAGE, e.message)

    logger.info("Registered addon %s %s", record.product_id, record.version)
    return StageOutcome.success(STAGE, f"Registered {record.product_id} {record.version}",
                                metadata={"product_id": record.product_id, "version": record.version})
