"""
Tests for the installer web endpoint — app factory and install routes.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from flask.testing import FlaskClient

from firstrun.core.models.settings import InstallerSettings
from firstrun.ui.web.server import create_app


@pytest.fixture()
def client(settings: InstallerSettings) -> FlaskClient:
    app = create_app(settings)
    app.config["TESTING"] = True
    return app.test_client()


class TestAppFactory:
    def test_settings_attached(self, settings: InstallerSettings):
        app = create_app(settings)
        assert app.config["INSTALLER_SETTINGS"] is settings

    def test_default_settings(self):
        app = create_app()
        assert isinstance(app.config["INSTALLER_SETTINGS"], InstallerSettings)


class TestInstallRoute:
    def test_successful_install(self, client: FlaskClient, payload: dict, settings: InstallerSettings):
        resp = client.post("/install", json=payload)

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "message": "Installation successful!"}
        assert "APP_URL=http://localhost/" in settings.env_path.read_text()

    def test_root_path_alias(self, client: FlaskClient, payload: dict):
        resp = client.post("/", json=payload)
        assert resp.get_json()["success"] is True

    def test_body_is_pure_json(self, client: FlaskClient, payload: dict):
        resp = client.post("/install", json=payload)
        assert resp.mimetype == "application/json"
        body = json.loads(resp.get_data(as_text=True))
        assert set(body) == {"success", "message"}

    def test_validation_error(self, client: FlaskClient, payload: dict):
        resp = client.post("/install", json={**payload, "admin_email": "not-an-email"})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is False
        assert data["message"] == "Validation error"
        assert data["errors"] == {"admin_email": "Invalid email format"}

    def test_malformed_json(self, client: FlaskClient):
        resp = client.post("/install", data="{oops", content_type="application/json")

        assert resp.status_code == 500
        data = resp.get_json()
        assert data["success"] is False
        assert data["message"].startswith("Installation failed: Invalid JSON in request: ")
        assert data["errors"]["general"].startswith("Invalid JSON in request: ")

    def test_body_without_content_type(self, client: FlaskClient, payload: dict):
        resp = client.post("/install", data=json.dumps(payload))
        assert resp.get_json()["success"] is True

    def test_unexpected_error_is_500(self, client: FlaskClient, payload: dict):
        with patch("firstrun.core.use_cases.install.create_admin", side_effect=RuntimeError("kaboom")):
            resp = client.post("/install", json=payload)

        assert resp.status_code == 500
        assert resp.get_json() == {
            "success": False,
            "message": "Installation failed: kaboom",
            "errors": {"general": "kaboom"},
        }

    def test_host_header_used_for_license_domain(self, client: FlaskClient, payload: dict):
        with patch("firstrun.core.services.license.post_json", return_value={"status": 0}) as post:
            client.post("/install", json={**payload, "purchase_code": "CODE"},
                        headers={"Host": "www.shop.example"})
        assert post.call_args.args[1]["domain"] == "shop.example"


class TestStatusRoute:
    def test_not_installed(self, client: FlaskClient):
        resp = client.get("/install/status")
        assert resp.status_code == 200
        assert resp.get_json() == {"installed": False, "app_url": "", "site_title": ""}

    def test_installed(self, client: FlaskClient, payload: dict):
        client.post("/install", json=payload)

        data = client.get("/install/status").get_json()

        assert data == {"installed": True, "app_url": "http://localhost/", "site_title": "My Site"}

    def test_install_only_accepts_post(self, client: FlaskClient):
        assert client.get("/install").status_code == 405

    def test_wrong_method_answers_json(self, client: FlaskClient):
        resp = client.get("/install")
        data = resp.get_json()
        assert data["success"] is False
        assert data["errors"] == {"general": "Method Not Allowed"}

    def test_unknown_path_answers_json(self, client: FlaskClient):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False


class TestRequestLimits:
    def test_oversized_body_answers_json(self, settings: InstallerSettings, payload: dict):
        app = create_app(settings)
        app.config["MAX_CONTENT_LENGTH"] = 64
        resp = app.test_client().post("/install", json={**payload, "site_name": "x" * 500})

        assert resp.status_code == 413
        data = resp.get_json()
        assert data["success"] is False
        assert data["errors"] == {"general": "Request Entity Too Large"}
        assert not settings.env_path.exists()
