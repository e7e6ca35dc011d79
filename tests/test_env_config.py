"""
Tests for configuration persistence — .env rewrite, site URL, runtime config.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from firstrun.core.models.request import InstallationRequest
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.services.env_config import (
    build_env_values,
    build_runtime_config,
    clear_cached_config,
    persist_configuration,
    read_env_values,
    site_url_from_base,
    write_env_values,
)


class TestSiteUrl:
    def test_strips_installer_segment(self):
        assert site_url_from_base("https://example.com/installer/") == "https://example.com/"

    def test_strips_installer_without_trailing_slash(self):
        assert site_url_from_base("https://example.com/installer") == "https://example.com/"

    def test_keeps_subdirectory(self):
        assert site_url_from_base("https://example.com/app/installer/") == "https://example.com/app/"

    def test_root_unchanged(self):
        assert site_url_from_base("http://localhost/") == "http://localhost/"

    def test_keeps_port(self):
        assert site_url_from_base("http://localhost:8080/installer") == "http://localhost:8080/"

    def test_only_whole_segments_removed(self):
        assert site_url_from_base("https://example.com/installers/") == "https://example.com/installers/"


class TestWriteEnv:
    def test_creates_file(self, tmp_path: Path):
        env = tmp_path / ".env"
        counts = write_env_values(env, {"A": "1", "B": "two"})
        assert counts == {"added": 2, "updated": 0}
        assert read_env_values(env) == {"A": "1", "B": "two"}

    def test_rewrites_in_place_and_preserves_others(self, tmp_path: Path):
        env = tmp_path / ".env"
        env.write_text("# App settings\nAPP_NAME=Old\nMAIL_HOST=smtp.test\n\nDB_HOST=old-host\n")

        write_env_values(env, {"APP_NAME": "New", "DB_HOST": "db.internal"})

        lines = env.read_text().splitlines()
        assert lines[0] == "# App settings"
        assert lines[1] == "APP_NAME=New"
        assert lines[2] == "MAIL_HOST=smtp.test"
        assert lines[4] == "DB_HOST=db.internal"

    def test_idempotent(self, tmp_path: Path):
        env = tmp_path / ".env"
        values = {"SITE_TITLE": "My Site", "APP_INSTALLED": "true", "DB_PASSWORD": 'p"w#d'}
        write_env_values(env, values)
        first = env.read_text()
        counts = write_env_values(env, values)
        assert env.read_text() == first
        assert counts == {"added": 0, "updated": 3}

    def test_duplicate_keys_collapsed(self, tmp_path: Path):
        env = tmp_path / ".env"
        env.write_text("DB_HOST=a\nDB_HOST=b\n")
        write_env_values(env, {"DB_HOST": "c"})
        assert env.read_text() == "DB_HOST=c\n"

    def test_special_values_round_trip(self, tmp_path: Path):
        env = tmp_path / ".env"
        values = {
            "SPACES": "My Great Site",
            "HASH": "pa#ss",
            "EQUALS": "a=b",
            "QUOTE": 'say "hi"',
            "BACKSLASH": "C:\\path with space",
            "EMPTY": "",
        }
        write_env_values(env, values)
        assert read_env_values(env) == values

    def test_line_breaks_cannot_inject_keys(self, tmp_path: Path):
        env = tmp_path / ".env"
        values = {"APP_NAME": "Acme\nAPP_DEBUG=true", "SITE_TITLE": "a\r\nb", "DB_PASSWORD": "x\\ny"}
        write_env_values(env, values)

        assert len(env.read_text().splitlines()) == 3
        assert read_env_values(env) == values
        assert "APP_DEBUG" not in read_env_values(env)

    def test_no_temp_files_left(self, tmp_path: Path):
        env = tmp_path / ".env"
        write_env_values(env, {"A": "1"})
        assert list(tmp_path.glob(".env_*.tmp")) == []


class TestClearCachedConfig:
    def test_removes_cache(self, tmp_path: Path):
        cache = tmp_path / "bootstrap" / "cache" / "config.php"
        cache.parent.mkdir(parents=True)
        cache.write_text("<?php return [];")
        assert clear_cached_config(cache) is True
        assert not cache.exists()

    def test_missing_cache_is_fine(self, tmp_path: Path):
        assert clear_cached_config(tmp_path / "nope.php") is True

    def test_deletion_failure_is_logged_not_raised(self, tmp_path: Path):
        cache = tmp_path / "config.php"
        cache.write_text("x")
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            assert clear_cached_config(cache) is False


class TestPersistConfiguration:
    def test_env_values(self, install_request: InstallationRequest):
        values = build_env_values(install_request, "https://example.com/")
        assert values == {
            "SITE_TITLE": "My Site",
            "APP_NAME": "My Site",
            "APP_URL": "https://example.com/",
            "APP_TIMEZONE": "Europe/Paris",
            "APP_INSTALLED": "true",
            "DB_HOST": "localhost",
            "DB_DATABASE": install_request.database_name,
            "DB_USERNAME": "root",
            "DB_PASSWORD": "dbpass",
        }

    def test_runtime_config_defaults(self, install_request: InstallationRequest, settings: InstallerSettings):
        runtime = build_runtime_config(install_request, settings, "https://example.com/", {})
        db = runtime.database
        assert db.port == "3306"
        assert db.unix_socket == ""
        assert db.charset == "utf8mb4"
        assert db.collation == "utf8mb4_unicode_ci"
        assert db.strict is True
        assert db.driver == "sqlite"
        assert db.connect_timeout == 5

    def test_runtime_config_uses_submitted_port_and_socket(self, payload: dict, settings: InstallerSettings):
        req = InstallationRequest.from_payload({**payload, "database_port": 3307,
                                                "database_socket": "/run/mysqld.sock"})
        runtime = build_runtime_config(req, settings, "", {})
        assert runtime.database.port == "3307"
        assert runtime.database.unix_socket == "/run/mysqld.sock"

    def test_persist_writes_env_and_clears_cache(self, install_request: InstallationRequest,
                                                 settings: InstallerSettings):
        settings.cached_config_path.parent.mkdir(parents=True)
        settings.cached_config_path.write_text("<?php")

        runtime, outcome = persist_configuration(install_request, settings,
                                                 "http://example.com/installer/")

        assert outcome.ok
        env = read_env_values(settings.env_path)
        assert env["APP_URL"] == "http://example.com/"
        assert env["APP_INSTALLED"] == "true"
        assert runtime.app_url == "http://example.com/"
        assert runtime.env_values == env
        assert not settings.cached_config_path.exists()

    def test_timezone_defaults_to_utc(self, payload: dict):
        req = InstallationRequest.from_payload({**payload, "timezone": ""})
        assert build_env_values(req, "")["APP_TIMEZONE"] == "UTC"
