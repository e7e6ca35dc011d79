"""
Install API routes.

POST /install          → run the provisioning pipeline (JSON in, JSON out)
POST /                 → same, for installers mounted at their own path
GET  /install/status   → installed flag and public URL

The response body is built in memory from the PipelineResult and
written exactly once; diagnostics go to the log, never the body.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from firstrun.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

install_bp = Blueprint("install", __name__)


def _settings() -> InstallerSettings:
    return current_app.config["INSTALLER_SETTINGS"]


@install_bp.route("/", methods=["POST"])
@install_bp.route("/install", methods=["POST"])
def api_install():  # type: ignore[no-untyped-def]
    """Run the first-run installation for the submitted form."""
    from firstrun.core.use_cases.install import install_from_json

    result = install_from_json(
        request.get_data(cache=False),
        _settings(),
        host=request.headers.get("Host", ""),
        base_url=request.url_root,
    )
    return jsonify(result.to_dict()), result.status_code


@install_bp.route("/install/status")
def api_install_status():  # type: ignore[no-untyped-def]
    """Report whether the application is installed."""
    from firstrun.core.use_cases.status import get_install_status

    status = get_install_status(_settings())
    return jsonify({
        "installed": status.installed,
        "app_url": status.app_url,
        "site_title": status.site_title,
    })
