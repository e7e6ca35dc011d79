"""
Settings loader — reads firstrun.yml into InstallerSettings.

Reads YAML, applies FIRSTRUN_* environment overrides, validates
against the Pydantic schema and returns typed settings.  A missing
file is not an error: the installer runs on defaults.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml

from firstrun.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

# Default settings filename
SETTINGS_FILE = "firstrun.yml"

ENV_PREFIX = "FIRSTRUN_"


class ConfigError(Exception):
    """Raised when installer settings are invalid."""


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for firstrun.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to firstrun.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """Collect FIRSTRUN_<FIELD> variables that name a settings field."""
    fields = InstallerSettings.model_fields
    overrides: dict[str, str] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in fields:
            overrides[name] = value
    return overrides


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to firstrun.yml. If None, searches upward.
        environ: Environment mapping for overrides (default: os.environ).

    Returns:
        Validated InstallerSettings.

    Raises:
        ConfigError: If the file is unreadable or the values are invalid.
    """
    if environ is None:
        environ = os.environ

    if path is None:
        path = find_settings_file()

    data: dict = {}
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Settings file not found: {path}")

        logger.debug("Loading installer settings from %s", path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected a YAML mapping in {path}, got {type(loaded).__name__}")

        # Relative app_root is relative to the settings file, not the cwd
        if isinstance(loaded.get("app_root"), str) and not Path(loaded["app_root"]).is_absolute():
            loaded["app_root"] = str((path.parent / loaded["app_root"]).resolve())

        data.update(loaded)

    data.update(_env_overrides(environ))

    try:
        settings = InstallerSettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid installer settings: {e}") from e

    logger.info("Installer settings loaded (app_root=%s)", settings.app_root)
    return settings
