"""
Tests for license verification and the outbound HTTP helpers.
"""

from __future__ import annotations

import http.client
import ssl
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from firstrun.core.models.request import VerificationResult
from firstrun.core.models.settings import InstallerSettings
from firstrun.core.services.errors import ExternalServiceError
from firstrun.core.services.http_client import get_bytes, post_json
from firstrun.core.services.license import resolve_domain, verify_license

_POST = "firstrun.core.services.license.post_json"
_URLOPEN = "urllib.request.urlopen"


def _response(body: bytes, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.status = status
    resp.read.return_value = body
    return resp


# ── Domain resolution ────────────────────────────────────────────────


class TestResolveDomain:
    def test_host_header_wins(self):
        assert resolve_domain("shop.example.com", "http://other.test/") == "shop.example.com"

    def test_strips_leading_www(self):
        assert resolve_domain("www.example.com", "") == "example.com"

    def test_only_leading_www_is_stripped(self):
        assert resolve_domain("mywww.example.com", "") == "mywww.example.com"

    def test_falls_back_to_base_url_host(self):
        assert resolve_domain("", "https://www.fallback.test/installer/") == "fallback.test"

    def test_localhost_when_nothing_known(self):
        assert resolve_domain(None, "") == "localhost"


# ── Verification ─────────────────────────────────────────────────────


class TestVerifyLicense:
    def test_empty_code_skips_remote_call(self, settings: InstallerSettings):
        with patch(_POST) as post:
            result, outcome = verify_license("", "example.com", "http://example.com/", settings)
        post.assert_not_called()
        assert outcome.status == "skipped"
        assert result.status == "ok"
        assert result.product_id == "main"
        assert result.download_url is None

    def test_request_body_and_timeout(self, settings: InstallerSettings):
        with patch(_POST, return_value={"status": 1}) as post:
            verify_license("CODE", "example.com", "http://example.com/", settings)
        post.assert_called_once()
        args, kwargs = post.call_args
        assert args[0] == settings.verify_url
        assert args[1] == {
            "purchase_code": "CODE",
            "domain": "example.com",
            "website": "http://example.com/",
            "is_main": 1,
        }
        assert kwargs["timeout"] == 15.0

    def test_verified_reply_parsed(self, settings: InstallerSettings):
        reply = {
            "status": 1,
            "product_id": "pro",
            "version": "2.3.0",
            "install_path": "modules/Pro",
            "download_url": "https://dl.test/pro.zip",
        }
        with patch(_POST, return_value=reply):
            result, outcome = verify_license("CODE", "example.com", "", settings)
        assert outcome.ok
        assert result.verified
        assert result.product_id == "pro"
        assert result.version == "2.3.0"
        assert result.install_path == "modules/Pro"
        assert result.download_url == "https://dl.test/pro.zip"

    def test_unverified_reply_falls_back_to_defaults(self, settings: InstallerSettings):
        with patch(_POST, return_value={"status": 0, "message": "Invalid code"}):
            result, outcome = verify_license("BAD", "example.com", "", settings)
        assert outcome.ok
        assert not result.verified
        assert result.product_id == "main"
        assert result.download_url is None

    def test_service_error_is_fail_soft(self, settings: InstallerSettings):
        with patch(_POST, side_effect=ExternalServiceError("timed out")):
            result, outcome = verify_license("CODE", "example.com", "", settings)
        assert outcome.failed
        assert "timed out" in (outcome.error or "")
        assert result == VerificationResult.default()

    def test_non_object_reply_is_fail_soft(self, settings: InstallerSettings):
        with patch(_POST, return_value=["unexpected"]):
            result, outcome = verify_license("CODE", "example.com", "", settings)
        assert outcome.failed
        assert not result.verified

    def test_non_string_reply_fields_ignored(self, settings: InstallerSettings):
        reply = {"status": 1, "product_id": None, "install_path": "modules/Pro", "download_url": 12345}
        with patch(_POST, return_value=reply):
            result, outcome = verify_license("CODE", "example.com", "", settings)
        assert outcome.ok
        assert result.verified
        assert result.download_url is None
        assert result.product_id == "main"


# ── HTTP helpers ─────────────────────────────────────────────────────


class TestHttpClient:
    def test_post_json_decodes_reply(self):
        with patch(_URLOPEN, return_value=_response(b'{"status": 1}')) as urlopen:
            assert post_json("https://svc.test/x", {"a": 1}, timeout=15) == {"status": 1}
        req = urlopen.call_args.args[0]
        assert req.get_method() == "POST"
        assert req.data == b'{"a": 1}'
        assert urlopen.call_args.kwargs["timeout"] == 15

    def test_certificate_validation_disabled(self):
        with patch(_URLOPEN, return_value=_response(b"{}")) as urlopen:
            post_json("https://svc.test/x", {}, timeout=1)
        ctx = urlopen.call_args.kwargs["context"]
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False

    def test_http_error_raises_service_error(self):
        err = urllib.error.HTTPError("https://svc.test/x", 503, "Unavailable", None, None)
        with patch(_URLOPEN, side_effect=err):
            with pytest.raises(ExternalServiceError, match="503"):
                post_json("https://svc.test/x", {}, timeout=1)

    def test_timeout_raises_service_error(self):
        with patch(_URLOPEN, side_effect=TimeoutError("timed out")):
            with pytest.raises(ExternalServiceError, match="unreachable"):
                get_bytes("https://dl.test/p.zip", timeout=1)

    def test_non_2xx_status_raises(self):
        with patch(_URLOPEN, return_value=_response(b"", status=304)):
            with pytest.raises(ExternalServiceError, match="304"):
                get_bytes("https://dl.test/p.zip", timeout=1)

    def test_invalid_json_raises(self):
        with patch(_URLOPEN, return_value=_response(b"<html>")):
            with pytest.raises(ExternalServiceError, match="invalid JSON"):
                post_json("https://svc.test/x", {}, timeout=1)

    def test_get_bytes_returns_body(self):
        with patch(_URLOPEN, return_value=_response(b"PK\x03\x04")):
            assert get_bytes("https://dl.test/p.zip", timeout=60) == b"PK\x03\x04"

    def test_schemeless_url_raises_service_error(self):
        with patch(_URLOPEN) as urlopen:
            with pytest.raises(ExternalServiceError, match="Invalid URL"):
                get_bytes("dl.test/p.zip", timeout=1)
        urlopen.assert_not_called()

    def test_truncated_body_raises_service_error(self):
        resp = _response(b"")
        resp.read.side_effect = http.client.IncompleteRead(b"PK")
        with patch(_URLOPEN, return_value=resp):
            with pytest.raises(ExternalServiceError, match="unreachable"):
                get_bytes("https://dl.test/p.zip", timeout=1)
