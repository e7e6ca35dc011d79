"""
Status use case — is the application installed, and where?
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from firstrun.core import context
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.persistence.audit import AuditWriter
from firstrun.core.services.env_config import read_env_values


@dataclass
class InstallStatus:
    """Install state as seen from the durable configuration."""

    installed: bool = False
    app_url: str = ""
    site_title: str = ""
    env_path: Path | None = None
    attempts: int = 0
    last_attempt_ok: bool | None = None

    def to_dict(self) -> dict:
        return {
            "installed": self.installed,
            "app_url": self.app_url,
            "site_title": self.site_title,
            "env_path": str(self.env_path) if self.env_path else None,
            "attempts": self.attempts,
            "last_attempt_ok": self.last_attempt_ok,
        }


def get_install_status(settings: InstallerSettings) -> InstallStatus:
    """Report install state.

    Prefers the values registered by a successful run in this process;
    falls back to reading .env.
    """
    values = context.get_installed_config()
    if values is None:
        values = read_env_values(settings.env_path)

    entries = AuditWriter(settings.audit_path).read_all()

    return InstallStatus(
        installed=values.get("APP_INSTALLED", "").lower() == "true",
        app_url=values.get("APP_URL", ""),
        site_title=values.get("SITE_TITLE", ""),
        env_path=settings.env_path,
        attempts=len(entries),
        last_attempt_ok=entries[-1].success if entries else None,
    )
