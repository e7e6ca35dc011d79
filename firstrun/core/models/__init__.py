"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from firstrun.core.models import InstallationRequest, PipelineResult
"""

from firstrun.core.models.request import (
    AddonRecord,
    AdminUser,
    InstallationRequest,
    VerificationResult,
)
from firstrun.core.models.result import PipelineResult, StageOutcome
from firstrun.core.models.runtime import DatabaseConnection, RuntimeConfig
from firstrun.core.models.settings import InstallerSettings

__all__ = [
    # request.py
    "AddonRecord",
    "AdminUser",
    # runtime.py
    "DatabaseConnection",
    "InstallationRequest",
    # settings.py
    "InstallerSettings",
    # result.py
    "PipelineResult",
    "RuntimeConfig",
    "StageOutcome",
    "VerificationResult",
]
