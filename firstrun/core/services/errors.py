"""
Installer error taxonomy.

Fail-fast stages raise one of these; the install use case turns it
into the final PipelineResult.  Fail-soft stages never raise them past
their own boundary — they report a StageOutcome instead.
"""

from __future__ import annotations


class InstallError(Exception):
    """Base for every anticipated installation failure.

    Args:
        message: Human-readable message for the response body.
        errors: Field-keyed error map for the response body.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = dict(errors or {})


class ValidationError(InstallError):
    """User-correctable input problem; nothing has been touched yet."""


class ExternalServiceError(InstallError):
    """License service or package download unreachable or erroring."""


class ConnectivityError(InstallError):
    """The application database cannot be opened."""


class SchemaError(InstallError):
    """Migration ledger or migration failure other than "table exists"."""


class AccountCreationError(InstallError):
    """The administrator account could not be created."""


class AddonError(InstallError):
    """License bookkeeping row could not be written."""
