"""
Configuration persistence — the durable .env and the in-process copy.

Writes the installer-managed keys into .env (rewriting existing lines
in place, appending new ones, never duplicating), builds the
RuntimeConfig the database stage connects with, and drops any stale
compiled configuration cache.
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from firstrun.core.models.request import InstallationRequest
from firstrun.core.models.result import StageOutcome
from firstrun.core.models.runtime import DEFAULT_DB_PORT, DatabaseConnection, RuntimeConfig
from firstrun.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

STAGE = "config"

INSTALLER_SEGMENT = "installer"

_NEEDS_QUOTES = (" ", "#", "=", '"', "'", "\t", "\n", "\r")

# Inside double quotes; a raw line break would end the value
_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r"})
_UNESCAPES = {"n": "\n", "r": "\r"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


# ═══════════════════════════════════════════════════════════════════
#  .env reading / writing
# ═══════════════════════════════════════════════════════════════════


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        inner = value[1:-1]
        if value[0] == '"':
            inner = _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(1)), inner)
        return inner
    return value


def _format_line(key: str, value: str) -> str:
    if any(ch in value for ch in _NEEDS_QUOTES):
        return f'{key}="{value.translate(_ESCAPES)}"'
    return f"{key}={value}"


def read_env_values(env_path: Path) -> dict[str, str]:
    """Read raw key=value pairs from a .env file."""
    if not env_path.exists():
        return {}
    values: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = _unquote(value.strip())
    return values


def write_env_values(env_path: Path, values: dict[str, str]) -> dict[str, int]:
    """Set ``values`` in ``env_path``, last write wins per key.

    Existing lines for a key are rewritten in place (later duplicates
    of the same key are dropped); unknown keys are appended.  Comments
    and unrelated keys are preserved.  The write is atomic.

    Returns:
        ``{"added": n, "updated": m}``
    """
    lines = env_path.read_text(encoding="utf-8").splitlines() if env_path.exists() else []

    out: list[str] = []
    seen: set[str] = set()
    updated = 0
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith("#") and "=" in stripped:
            key = stripped.partition("=")[0].strip()
            if key in values:
                if key in seen:
                    continue
                out.append(_format_line(key, values[key]))
                seen.add(key)
                updated += 1
                continue
        out.append(line)

    added = 0
    for key, value in values.items():
        if key not in seen:
            out.append(_format_line(key, value))
            added += 1

    content = "\n".join(out) + "\n"

    env_path.parent.mkdir(parents=True, exist_ok=True)
    _fd, tmp_path = tempfile.mkstemp(dir=env_path.parent, prefix=".env_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(env_path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise

    logger.info("Wrote %s: added %d, updated %d keys", env_path, added, updated)
    return {"added": added, "updated": updated}


# ═══════════════════════════════════════════════════════════════════
#  Derived values
# ═══════════════════════════════════════════════════════════════════


def site_url_from_base(base_url: str) -> str:
    """Public site URL: the installer's base URL minus its "installer" segment.

    ``https://example.com/installer/`` → ``https://example.com/``
    """
    parts = urlsplit(base_url)
    segments = [s for s in parts.path.split("/") if s and s != INSTALLER_SEGMENT]
    path = "/" + "/".join(segments)
    if not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def build_env_values(request: InstallationRequest, site_url: str) -> dict[str, str]:
    """The fixed set of keys the installer owns in .env."""
    return {
        "SITE_TITLE": request.site_name,
        "APP_NAME": request.site_name,
        "APP_URL": site_url,
        "APP_TIMEZONE": request.timezone or "UTC",
        "APP_INSTALLED": "true",
        "DB_HOST": request.database_host,
        "DB_DATABASE": request.database_name,
        "DB_USERNAME": request.database_username,
        "DB_PASSWORD": request.database_password,
    }


def build_runtime_config(
    request: InstallationRequest,
    settings: InstallerSettings,
    site_url: str,
    env_values: dict[str, str],
) -> RuntimeConfig:
    """Mirror the submitted database parameters into a RuntimeConfig."""
    database = DatabaseConnection(
        driver=settings.db_driver,
        host=request.database_host,
        port=request.database_port.strip() or DEFAULT_DB_PORT,
        database=request.database_name,
        username=request.database_username,
        password=request.database_password,
        unix_socket=request.database_socket.strip(),
        connect_timeout=settings.db_connect_timeout,
    )
    return RuntimeConfig(
        app_url=site_url,
        timezone=request.timezone or "UTC",
        env_values=dict(env_values),
        database=database,
    )


def clear_cached_config(path: Path) -> bool:
    """Delete the compiled configuration cache if present.

    Returns:
        False only when a cache file existed and could not be removed.
    """
    try:
        if path.exists():
            path.unlink()
            logger.info("Cleared cached configuration %s", path)
    except OSError as e:
        logger.warning("Config clear failed: %s", e)
        return False
    return True


# ═══════════════════════════════════════════════════════════════════
#  Stage entry point
# ═══════════════════════════════════════════════════════════════════


def persist_configuration(
    request: InstallationRequest,
    settings: InstallerSettings,
    base_url: str,
) -> tuple[RuntimeConfig, StageOutcome]:
    """Write .env and build the runtime configuration.

    An unwritable .env raises OSError; the install cannot be
    completed without it.  A stuck cache file is only logged.
    """
    site_url = site_url_from_base(base_url)
    values = build_env_values(request, site_url)

    counts = write_env_values(settings.env_path, values)
    runtime = build_runtime_config(request, settings, site_url, values)
    cache_cleared = clear_cached_config(settings.cached_config_path)

    return runtime, StageOutcome.success(
        STAGE,
        f"Wrote {len(values)} keys to {settings.env_path.name}",
        metadata={**counts, "cache_cleared": cache_cleared, "app_url": site_url},
    )
