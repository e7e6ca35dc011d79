"""
Logging configuration for the installer.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

All output goes to stderr (and optionally a file), never to stdout or
an HTTP response body.  Handlers mask credentials before a record is
emitted: the installer handles database and admin passwords, purchase
codes and DSNs with embedded passwords.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  FIRSTRUN_LOG_LEVEL  >  WARNING

Optional file output via FIRSTRUN_LOG_FILE / FIRSTRUN_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping

LEVEL_ENV = "FIRSTRUN_LOG_LEVEL"
DEFAULT_LEVEL = "WARNING"

# ── Format strings ──────────────────────────────────────────────

# (max level, format, datefmt) for the console, most detailed first
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s: %(message)s", None),
)

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Request logging, SQL echo and driver chatter
_NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine", "sqlalchemy.pool", "pymysql")

# ── Secret masking ──────────────────────────────────────────────

_SECRET_KEYS = r"(?:password|passwd|pwd|purchase_code|secret|token)"
_KEY_VALUE_RE = re.compile(
    rf"""(?P<key>\b\w*{_SECRET_KEYS}\w*["']?\s*[=:]\s*["']?)(?P<value>[^\s"',&}}]+)""",
    re.IGNORECASE,
)
_DSN_PASSWORD_RE = re.compile(r"(?P<key>://[^:/@\s]+:)(?P<value>[^@\s]+)(?=@)")


def mask_secrets(text: str) -> str:
    """Replace credential values in ``text`` with ``***``."""
    text = _DSN_PASSWORD_RE.sub(r"\g<key>***", text)
    return _KEY_VALUE_RE.sub(r"\g<key>***", text)


class RedactSecretsFilter(logging.Filter):
    """Handler filter that masks credentials in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


# ── Setup ───────────────────────────────────────────────────────


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level name from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(LEVEL_ENV) or DEFAULT_LEVEL


def setup_logging(
    level: str = DEFAULT_LEVEL,
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: Hold the web server, SQLAlchemy and PyMySQL
            loggers at WARNING unless running at DEBUG.
    """
    numeric_level = _parse_level(level)
    redact = RedactSecretsFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(_console_formatter(numeric_level))
    console.addFilter(redact)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        fh.addFilter(redact)
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_formatter(numeric_level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if numeric_level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_FORMATS[-1][1])


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    return logging.getLevelNamesMapping().get(level.strip().upper(), logging.WARNING)
