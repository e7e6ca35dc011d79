"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from firstrun.core import context
from firstrun.core.models.request import InstallationRequest
from firstrun.core.models.settings import InstallerSettings


@pytest.fixture(autouse=True)
def _reset_context():
    """Every test starts with no installed configuration registered."""
    context.reset()
    yield
    context.reset()


@pytest.fixture
def app_root(tmp_path: Path) -> Path:
    """Empty application directory the installer provisions."""
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def settings(app_root: Path) -> InstallerSettings:
    """Settings pointing at a SQLite-backed temp application."""
    return InstallerSettings(
        app_root=app_root,
        base_url="http://example.com/installer/",
        verify_url="https://license.test/api/marketplace/install",
        db_driver="sqlite",
        db_connect_timeout=5,
    )


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "app.sqlite"


@pytest.fixture
def payload(db_file: Path) -> dict[str, str]:
    """A complete, valid install form."""
    return {
        "site_name": "My Site",
        "timezone": "Europe/Paris",
        "fullname": "Ada Admin",
        "admin_email": "ada@example.com",
        "admin_username": "ada",
        "admin_password": "s3cret-pass",
        "admin_password_confirm": "s3cret-pass",
        "database_host": "localhost",
        "database_name": str(db_file),
        "database_username": "root",
        "database_password": "dbpass",
        "purchase_code": "",
    }


@pytest.fixture
def install_request(payload: dict[str, str]) -> InstallationRequest:
    return InstallationRequest.from_payload(payload)


@pytest.fixture
def make_zip():
    """Factory building an in-memory zip archive from name → content."""

    def _make(files: dict[str, str]) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            for name, content in files.items():
                zf.writestr(name, content)
        return buf.getvalue()

    return _make
