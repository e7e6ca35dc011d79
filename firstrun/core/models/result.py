"""
Result models — the per-stage outcome and the single response payload.

StageOutcome is the contract for fail-soft stages: they report what
happened here and NEVER raise.  PipelineResult is the one artifact the
caller sees per request.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StageOutcome(BaseModel):
    """What a single pipeline stage did."""

    stage: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    finished_at: str = Field(default_factory=_now_iso)
    message: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, stage: str, message: str = "", **kwargs: Any) -> StageOutcome:
        """Create a success outcome."""
        return cls(stage=stage, status="ok", message=message, **kwargs)

    @classmethod
    def failure(cls, stage: str, error: str, **kwargs: Any) -> StageOutcome:
        """Create a failure outcome."""
        return cls(stage=stage, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, stage: str, reason: str = "", **kwargs: Any) -> StageOutcome:
        """Create a skip outcome."""
        return cls(stage=stage, status="skipped", message=reason, **kwargs)


class PipelineResult(BaseModel):
    """Consolidated installation report.

    Only ``success``, ``message`` and ``errors`` reach the response
    body.  ``status_code`` picks the HTTP status; ``stages`` feeds the
    audit trail.
    """

    success: bool
    message: str
    errors: dict[str, str] | None = None
    status_code: int = 200
    failed_stage: str | None = None
    stages: list[StageOutcome] = Field(default_factory=list)

    @classmethod
    def succeeded(cls, message: str = "Installation successful!", **kwargs: Any) -> PipelineResult:
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def failed(
        cls,
        message: str,
        errors: dict[str, str] | None = None,
        status_code: int = 200,
        **kwargs: Any,
    ) -> PipelineResult:
        return cls(
            success=False,
            message=message,
            errors=errors or None,
            status_code=status_code,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        """Response body — pure status data, nothing else."""
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.errors:
            body["errors"] = dict(self.errors)
        return body
