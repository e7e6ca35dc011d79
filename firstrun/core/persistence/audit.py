"""
Install audit trail — append-only record of every installation attempt.

Each pipeline run appends one entry to an NDJSON (newline-delimited
JSON) file under the application's .state directory.  Secrets are never
written: the entry carries stage outcomes and messages only.

The trail is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class InstallAuditEntry(BaseModel):
    """A single installation attempt."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""

    # Outcome
    success: bool = False
    message: str = ""
    status_code: int = 200
    failed_stage: str | None = None
    duration_ms: int = 0

    # Per-stage detail
    stages: list[dict[str, Any]] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    # Non-secret request context (site name, domain, db host, ...)
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit trail writer.

    Each call to write() appends a single JSON line.  The file and its
    directory are created on first write.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: InstallAuditEntry) -> bool:
        """Append an entry.  Failures are logged, never raised.

        Returns:
            True if the entry was written.
        """
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write install audit entry: %s", e)
            return False

        logger.debug("Audit entry written: %s", entry.operation_id)
        return True

    def read_all(self) -> list[InstallAuditEntry]:
        """Read all entries, oldest first.  Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(InstallAuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read install audit trail: %s", e)

        return entries
