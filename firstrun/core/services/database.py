"""
Database bootstrap — connect, ensure the migration ledger, migrate.

Failure policy:
    - cannot connect                → ConnectivityError (fail-fast)
    - ledger table already exists   → logged, continue
    - ledger creation, other error  → SchemaError (fail-fast)
    - migrations                    → see ``firstrun.core.services.migrations``

The connection is opened through SQLAlchemy with a connect timeout and
always closed, success or failure.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine
from sqlalchemy.engine import URL, Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from firstrun.core.models.result import StageOutcome
from firstrun.core.models.runtime import DatabaseConnection
from firstrun.core.services.errors import ConnectivityError, SchemaError

logger = logging.getLogger(__name__)

STAGE = "database"

MIGRATIONS_TABLE = "migrations"

MIGRATE_FIELD_ERROR = {"migrate": "Migrate database failed!"}

_ledger_metadata = MetaData()

migrations_ledger = Table(
    MIGRATIONS_TABLE,
    _ledger_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("migration", String(255), nullable=False),
    Column("batch", Integer, nullable=False),
    mysql_charset="utf8mb4",
    mysql_collate="utf8mb4_unicode_ci",
)

# MySQL 1050 / SQLSTATE 42S01, PostgreSQL 42P07
_TABLE_EXISTS_SQLSTATES = frozenset({"42S01", "42P07"})
_TABLE_EXISTS_MYSQL_CODE = 1050


# ═══════════════════════════════════════════════════════════════════
#  Error classification
# ═══════════════════════════════════════════════════════════════════


def driver_message(exc: BaseException) -> str:
    """The underlying driver's message, without SQLAlchemy's wrapping."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def is_table_exists_error(exc: BaseException) -> bool:
    """Whether ``exc`` is the "table/relation already exists" condition."""
    orig = getattr(exc, "orig", None) or exc

    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) in _TABLE_EXISTS_SQLSTATES:
            return True

    args = getattr(orig, "args", ())
    if args and args[0] == _TABLE_EXISTS_MYSQL_CODE:
        return True

    return "already exists" in str(orig).lower()


# ═══════════════════════════════════════════════════════════════════
#  Connection
# ═══════════════════════════════════════════════════════════════════


def build_url(db: DatabaseConnection) -> URL:
    """SQLAlchemy URL for the submitted credentials.

    SQLite drivers treat ``database`` as the file path.

    Raises:
        ConnectivityError: If the port is not a number.
    """
    if db.is_sqlite:
        return URL.create(db.driver, database=db.database)

    port = db.port.strip()
    if port and not port.isdigit():
        raise ConnectivityError(
            f"Cannot connect to database: invalid port {port!r}",
            {"database_port": "Database port must be a number"},
        )

    query = {"charset": db.charset}
    if db.unix_socket:
        query["unix_socket"] = db.unix_socket

    return URL.create(
        db.driver,
        username=db.username or None,
        password=db.password or None,
        host=db.host or None,
        port=int(port) if port else None,
        database=db.database or None,
        query=query,
    )


def _connect_args(db: DatabaseConnection) -> dict:
    if db.is_sqlite:
        return {"timeout": db.connect_timeout}
    args: dict = {"connect_timeout": db.connect_timeout}
    if db.driver.startswith("mysql") and db.strict:
        args["init_command"] = "SET SESSION sql_mode='STRICT_TRANS_TABLES,NO_ENGINE_SUBSTITUTION'"
    return args


@contextmanager
def open_database(db: DatabaseConnection) -> Iterator[Connection]:
    """Open a live connection; close it and the engine on every exit path.

    Raises:
        ConnectivityError: If the database cannot be reached.
    """
    url = build_url(db)
    try:
        engine = create_engine(url, connect_args=_connect_args(db), poolclass=NullPool)
    except (SQLAlchemyError, ImportError) as e:
        raise ConnectivityError(
            f"Cannot connect to database: {e}",
            {"database_host": "Database connection failed."},
        ) from e

    try:
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            logger.error("Database connection to %s failed: %s",
                         url.render_as_string(hide_password=True), driver_message(e))
            raise ConnectivityError(
                f"Cannot connect to database: {driver_message(e)}",
                {"database_host": "Database connection failed."},
            ) from e

        logger.info("Connected to %s", url.render_as_string(hide_password=True))
        try:
            yield conn
        finally:
            conn.close()
    finally:
        engine.dispose()


# ═══════════════════════════════════════════════════════════════════
#  Ledger + migrations
# ═══════════════════════════════════════════════════════════════════


def ensure_migrations_ledger(conn: Connection) -> bool:
    """Create the migration ledger table.

    Returns:
        True if created, False if it already existed.

    Raises:
        SchemaError: Creation failed for any other reason.
    """
    try:
        with conn.begin():
            migrations_ledger.create(conn, checkfirst=False)
    except SQLAlchemyError as e:
        if is_table_exists_error(e):
            logger.warning("Migration warning: table `%s` already exists - %s",
                           MIGRATIONS_TABLE, driver_message(e))
            return False
        raise SchemaError(f"Migrate failed: {driver_message(e)}", MIGRATE_FIELD_ERROR) from e

    logger.info("Created migration ledger `%s`", MIGRATIONS_TABLE)
    return True


def bootstrap_database(conn: Connection, migrations_path: Path) -> StageOutcome:
    """Ensure the ledger and apply every pending migration.

    Raises:
        SchemaError: On any schema failure other than "table exists".
    """
    from firstrun.core.services.migrations import run_migrations

    created = ensure_migrations_ledger(conn)
    report = run_migrations(conn, migrations_path)

    return StageOutcome.success(
        STAGE,
        f"Applied {len(report.applied)} migration(s)",
        metadata={
            "ledger_created": created,
            "batch": report.batch,
            "applied": report.applied,
            "tolerated": report.tolerated,
        },
    )
