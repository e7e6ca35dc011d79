"""
Config check use case — validate firstrun.yml and report issues.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from firstrun.core.config.loader import ConfigError, find_settings_file, load_settings
from firstrun.core.models.settings import InstallerSettings


@dataclass
class ConfigCheckResult:
    """Result of settings validation."""

    valid: bool = False
    settings: InstallerSettings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "app_root": str(self.settings.app_root) if self.settings else None,
            "db_driver": self.settings.db_driver if self.settings else None,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate installer settings and sanity-check the target directory.

    Args:
        config_path: Optional explicit path to firstrun.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_settings_file()
    result.config_path = config_path

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.settings = settings

    if config_path is None:
        result.warnings.append("No firstrun.yml found — using defaults.")

    if not settings.app_root.is_dir():
        result.errors.append(f"app_root does not exist: {settings.app_root}")
    elif not os.access(settings.app_root, os.W_OK):
        result.errors.append(f"app_root is not writable: {settings.app_root}")

    if not settings.resolved_migrations_path.is_dir():
        result.errors.append(f"Migrations directory not found: {settings.resolved_migrations_path}")

    if not settings.verify_url.startswith("https://"):
        result.warnings.append(f"verify_url is not HTTPS: {settings.verify_url}")

    if settings.verify_timeout <= 0 or settings.download_timeout <= 0:
        result.errors.append("Timeouts must be positive.")

    result.valid = not result.errors
    return result
