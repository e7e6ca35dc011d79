"""
Input validation — every rule checked, every violation reported.

No short-circuit: a form with five problems gets five messages back
in one round trip.  Pure function, no side effects.
"""

from __future__ import annotations

import re

from firstrun.core.models.request import InstallationRequest

# Pragmatic address grammar: local@domain.tld, no whitespace, one "@",
# dot-separated labels that do not start or end with a hyphen.
_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+"
    r"[A-Za-z]{2,63}$"
)

# (field, message), checked for presence only
_REQUIRED: tuple[tuple[str, str], ...] = (
    ("site_name", "Site name is required"),
    ("timezone", "Timezone is required"),
    ("fullname", "Full name is required"),
    ("admin_username", "Username is required"),
    ("admin_password", "Password is required"),
    ("database_host", "Database host is required"),
    ("database_name", "Database name is required"),
    ("database_username", "Database username is required"),
)


def is_valid_email(value: str) -> bool:
    """Whether ``value`` looks like a deliverable email address."""
    if not value or len(value) > 254:
        return False
    local, _, _ = value.partition("@")
    if len(local) > 64 or local.startswith(".") or local.endswith(".") or ".." in local:
        return False
    return _EMAIL_RE.match(value) is not None


def validate_request(request: InstallationRequest) -> dict[str, str]:
    """Check the install form.

    Returns:
        Field name → message.  Empty when the request is valid.
    """
    errors: dict[str, str] = {}

    for field, message in _REQUIRED:
        if not getattr(request, field).strip():
            errors[field] = message

    if not request.admin_email.strip():
        errors["admin_email"] = "Email is required"
    elif not is_valid_email(request.admin_email.strip()):
        errors["admin_email"] = "Invalid email format"

    # Exact comparison: no trimming, no normalisation
    if request.admin_password != request.admin_password_confirm:
        errors["admin_password_confirm"] = "Password confirmation does not match"

    return errors
