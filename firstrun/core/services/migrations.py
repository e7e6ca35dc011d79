"""
Migration runner — applies pending schema migrations in filename order.

A migration is a Python file exposing ``up(connection)``.  Files whose
name starts with ``_`` are ignored.  Every newly applied migration is
recorded in the ledger under one batch number per run.

A migration that fails because its table already exists (leftovers
from an earlier crashed attempt) is logged, recorded as applied, and
the run continues.  Any other failure raises SchemaError.
"""

from __future__ import annotations

import contextlib
import importlib.util
import io
import logging
import sys
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from sqlalchemy import func, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from firstrun.core.services.database import (
    MIGRATE_FIELD_ERROR,
    driver_message,
    is_table_exists_error,
    migrations_ledger,
)
from firstrun.core.services.errors import SchemaError

logger = logging.getLogger(__name__)


@dataclass
class Migration:
    """One migration file on disk."""

    name: str
    path: Path

    def load(self) -> Callable[[Connection], None]:
        """Import the file and return its ``up`` callable.

        Raises:
            SchemaError: If the file cannot be imported or has no ``up``.
        """
        spec = importlib.util.spec_from_file_location(f"firstrun_migration_{self.name}", self.path)
        if spec is None or spec.loader is None:
            raise SchemaError(f"Migrate failed: cannot load {self.path}", MIGRATE_FIELD_ERROR)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise SchemaError(f"Migrate failed: {self.name}: {e}", MIGRATE_FIELD_ERROR) from e

        up = getattr(module, "up", None)
        if not callable(up):
            raise SchemaError(f"Migrate failed: {self.name} has no up()", MIGRATE_FIELD_ERROR)
        return up


@dataclass
class MigrationReport:
    """What a migration run did."""

    batch: int = 0
    applied: list[str] = field(default_factory=list)
    tolerated: list[str] = field(default_factory=list)
    already_applied: int = 0


def discover_migrations(directory: Path) -> list[Migration]:
    """List migration files in ``directory``, sorted by filename."""
    if not directory.is_dir():
        logger.warning("Migrations directory %s does not exist", directory)
        return []
    return [
        Migration(name=p.stem, path=p)
        for p in sorted(directory.glob("*.py"))
        if not p.name.startswith("_")
    ]


def applied_migrations(conn: Connection) -> set[str]:
    """Names already recorded in the ledger."""
    rows = conn.execute(select(migrations_ledger.c.migration)).scalars().all()
    conn.commit()
    return set(rows)


def next_batch(conn: Connection) -> int:
    current = conn.execute(select(func.max(migrations_ledger.c.batch))).scalar()
    conn.commit()
    return (current or 0) + 1


def _record(conn: Connection, name: str, batch: int) -> None:
    conn.execute(insert(migrations_ledger).values(migration=name, batch=batch))


class _ThreadStdout:
    """Stand-in for sys.stdout that diverts one thread's writes into a buffer.

    Writes from every other thread (other requests served by the same
    process) go to the stream that was in place before.
    """

    def __init__(self, previous: TextIO, buffer: io.StringIO, thread_id: int):
        self._previous = previous
        self._buffer = buffer
        self._thread_id = thread_id

    def _target(self) -> TextIO:
        return self._buffer if threading.get_ident() == self._thread_id else self._previous

    def write(self, text: str) -> int:
        return self._target().write(text)

    def flush(self) -> None:
        self._target().flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._previous, name)


@contextlib.contextmanager
def _capture_stdout(buffer: io.StringIO) -> Iterator[None]:
    """Collect what the calling thread prints into ``buffer``."""
    previous = sys.stdout
    proxy = _ThreadStdout(previous, buffer, threading.get_ident())
    sys.stdout = proxy  # type: ignore[assignment]
    try:
        yield
    finally:
        if sys.stdout is proxy:
            sys.stdout = previous


def run_migrations(conn: Connection, directory: Path) -> MigrationReport:
    """Apply every migration in ``directory`` not yet in the ledger.

    Stray output printed by migration code is captured and logged at
    DEBUG, never passed through.  Only the calling thread's output is
    captured.

    Raises:
        SchemaError: On any failure other than "table already exists".
    """
    try:
        done = applied_migrations(conn)
        batch = next_batch(conn)
    except SQLAlchemyError as e:
        raise SchemaError(f"Migrate failed: {driver_message(e)}", MIGRATE_FIELD_ERROR) from e

    report = MigrationReport(batch=batch)
    pending = []
    for migration in discover_migrations(directory):
        if migration.name in done:
            report.already_applied += 1
        else:
            pending.append(migration)

    if not pending:
        logger.info("Nothing to migrate (%d already applied)", report.already_applied)
        return report

    for migration in pending:
        up = migration.load()
        captured = io.StringIO()
        try:
            with _capture_stdout(captured), conn.begin():
                up(conn)
                _record(conn, migration.name, batch)
        except SQLAlchemyError as e:
            if not is_table_exists_error(e):
                logger.error("Migration %s failed: %s", migration.name, driver_message(e))
                raise SchemaError(f"Migrate failed: {driver_message(e)}", MIGRATE_FIELD_ERROR) from e
            logger.warning("Migration warning: a table already exists in the database (%s) - %s",
                           migration.name, driver_message(e))
            try:
                with conn.begin():
                    _record(conn, migration.name, batch)
            except SQLAlchemyError as e2:
                raise SchemaError(f"Migrate failed: {driver_message(e2)}", MIGRATE_FIELD_ERROR) from e2
            report.tolerated.append(migration.name)
        except Exception as e:
            logger.error("Migration %s failed: %s", migration.name, e)
            raise SchemaError(f"Migrate failed: {migration.name}: {e}", MIGRATE_FIELD_ERROR) from e
        else:
            report.applied.append(migration.name)
            logger.info("Migrated: %s", migration.name)
        finally:
            if captured.getvalue():
                logger.debug("Output from %s: %s", migration.name, captured.getvalue().strip())

    return report
