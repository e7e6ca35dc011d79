"""
Request-side models — what the caller submits and what the license
service tells us about it.

InstallationRequest is frozen: every stage reads from the same
immutable snapshot of the submitted form.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PRODUCT_ID = "main"
DEFAULT_VERSION = "1.0.0"
ADMIN_ROLE = "administrator"

_WHITESPACE_RE = re.compile(r"\s+")

# Fields never echoed into logs or the audit trail
_SECRET_FIELDS = frozenset({
    "admin_password",
    "admin_password_confirm",
    "database_password",
    "purchase_code",
})


class InstallationRequest(BaseModel):
    """The submitted installation form, flattened to strings."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # ── Site ─────────────────────────────────────────────────────
    site_name: str = ""
    timezone: str = ""

    # ── Administrator ────────────────────────────────────────────
    fullname: str = ""
    admin_email: str = ""
    admin_username: str = ""
    admin_password: str = ""
    admin_password_confirm: str = ""

    # ── Database ─────────────────────────────────────────────────
    database_host: str = ""
    database_name: str = ""
    database_username: str = ""
    database_password: str = ""
    database_port: str = ""
    database_socket: str = ""

    # ── License ──────────────────────────────────────────────────
    purchase_code: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_str(cls, value: Any) -> str:
        # JSON forms send ports as numbers and unset fields as null
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> InstallationRequest:
        """Build a request from a decoded JSON object."""
        return cls.model_validate(data)

    @property
    def clean_purchase_code(self) -> str:
        """Purchase code with every whitespace character removed."""
        return _WHITESPACE_RE.sub("", self.purchase_code)

    def redacted(self) -> dict[str, str]:
        """Field values safe for logging — secrets masked."""
        data = self.model_dump()
        for key in _SECRET_FIELDS:
            if data.get(key):
                data[key] = "***"
        return data


class VerificationResult(BaseModel):
    """Outcome of the purchase-code verification call.

    The default value means "unverified, proceed anyway": the
    pipeline never requires a verified license.
    """

    status: str = "ok"
    verified: bool = False
    product_id: str = DEFAULT_PRODUCT_ID
    version: str = DEFAULT_VERSION
    install_path: str = ""
    download_url: str | None = None

    @classmethod
    def default(cls) -> VerificationResult:
        return cls()


class AdminUser(BaseModel):
    """The first administrator account, password already hashed."""

    fullname: str
    username: str
    email: str
    password_hash: str = Field(repr=False)
    role: str = ADMIN_ROLE
    timezone: str = "UTC"


class AddonRecord(BaseModel):
    """License bookkeeping row for a verified purchase."""

    product_id: str = DEFAULT_PRODUCT_ID
    version: str = DEFAULT_VERSION
    module_name: str = "main"
    purchase_code: str
    install_path: str = ""
