"""
Administrator account creation — the last fail-fast stage.

Username and email uniqueness are checked up front so the caller gets
a field-keyed message instead of a raw constraint violation; the
table's unique indexes still back that up.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import column, insert, or_, select, table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import generate_password_hash

from firstrun.core.models.request import ADMIN_ROLE, AdminUser, InstallationRequest
from firstrun.core.models.result import StageOutcome
from firstrun.core.services.database import driver_message
from firstrun.core.services.errors import AccountCreationError

logger = logging.getLogger(__name__)

STAGE = "admin"

users = table(
    "users",
    column("id"),
    column("fullname"),
    column("username"),
    column("email"),
    column("password"),
    column("role"),
    column("status"),
    column("timezone"),
    column("created"),
)


def normalize_email(address: str) -> str:
    """Trim and lowercase the domain; the local part is case-sensitive."""
    local, sep, domain = address.strip().rpartition("@")
    if not sep:
        return address.strip()
    return f"{local}@{domain.lower()}"


def _integrity_field(exc: IntegrityError) -> dict[str, str]:
    """Field error for a unique-constraint violation on ``users``."""
    if "email" in driver_message(exc).lower():
        return {"admin_email": "Email is already registered"}
    return {"admin_username": "Username is already taken"}


def build_admin(request: InstallationRequest) -> AdminUser:
    """Admin user from the form, password hashed."""
    return AdminUser(
        fullname=request.fullname.strip(),
        username=request.admin_username.strip(),
        email=normalize_email(request.admin_email),
        password_hash=generate_password_hash(request.admin_password),
        role=ADMIN_ROLE,
        timezone=request.timezone or "UTC",
    )


def _conflicts(conn: Connection, admin: AdminUser) -> dict[str, str]:
    rows = conn.execute(
        select(users.c.username, users.c.email).where(
            or_(users.c.username == admin.username, users.c.email == admin.email)
        )
    ).all()
    errors: dict[str, str] = {}
    for username, email in rows:
        if username == admin.username:
            errors["admin_username"] = "Username is already taken"
        if email == admin.email:
            errors["admin_email"] = "Email is already registered"
    return errors


def create_admin(conn: Connection, request: InstallationRequest) -> StageOutcome:
    """Insert the first administrator.

    Raises:
        AccountCreationError: Duplicate account or database failure.
    """
    admin = build_admin(request)

    try:
        with conn.begin():
            conflicts = _conflicts(conn, admin)
            if conflicts:
                raise AccountCreationError("Cannot create admin account: account already exists", conflicts)

            conn.execute(
                insert(users).values(
                    fullname=admin.fullname,
                    username=admin.username,
                    email=admin.email,
                    password=admin.password_hash,
                    role=admin.role,
                    status=1,
                    timezone=admin.timezone,
                    created=int(time.time()),
                )
            )
    except IntegrityError as e:
        raise AccountCreationError(
            f"Cannot create admin account: {driver_message(e)}",
            _integrity_field(e),
        ) from e
    except SQLAlchemyError as e:
        logger.error("Admin account creation failed: %s", driver_message(e))
        raise AccountCreationError(
            f"Cannot create admin account: {driver_message(e)}",
            {"general": "Admin account creation failed."},
        ) from e

    logger.info("Created administrator %r", admin.username)
    return StageOutcome.success(STAGE, f"Created administrator {admin.username}",
                                metadata={"username": admin.username})
