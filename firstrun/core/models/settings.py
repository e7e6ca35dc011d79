"""
InstallerSettings — how this installer is deployed.

Loaded from firstrun.yml (see ``firstrun.core.config.loader``) with
FIRSTRUN_* environment overrides.  These are operator settings, not
the user's install form.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_VERIFY_URL = "https://stackposts.com/api/marketplace/install"

# Packaged migration set
_PACKAGED_MIGRATIONS = Path(__file__).resolve().parent.parent / "data" / "migrations"


class InstallerSettings(BaseModel):
    """Operator-level installer configuration."""

    # ── Target application ───────────────────────────────────────
    app_root: Path = Field(default_factory=Path.cwd)
    base_url: str = "http://localhost/installer"

    # ── License service ──────────────────────────────────────────
    verify_url: str = DEFAULT_VERIFY_URL
    verify_timeout: float = 15.0
    download_timeout: float = 60.0

    # ── Database ─────────────────────────────────────────────────
    db_driver: str = "mysql+pymysql"
    db_connect_timeout: int = 10
    migrations_path: Path | None = None

    # ── Policy ───────────────────────────────────────────────────
    allow_reinstall: bool = True

    @property
    def env_path(self) -> Path:
        return self.app_root / ".env"

    @property
    def storage_path(self) -> Path:
        """Scratch directory for downloaded archives."""
        return self.app_root / "storage" / "app"

    @property
    def cached_config_path(self) -> Path:
        return self.app_root / "bootstrap" / "cache" / "config.php"

    @property
    def audit_path(self) -> Path:
        return self.app_root / ".state" / "install_audit.ndjson"

    @property
    def resolved_migrations_path(self) -> Path:
        if self.migrations_path is None:
            return _PACKAGED_MIGRATIONS
        if self.migrations_path.is_absolute():
            return self.migrations_path
        return self.app_root / self.migrations_path
