"""
Installer web server — Flask app factory.

Creates the Flask application that exposes the first-run install
endpoint.  The page that renders the install form is served by the
application itself; this server only speaks JSON.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from firstrun.core.models.result import PipelineResult
from firstrun.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)


def create_app(settings: InstallerSettings | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Installer settings.  Defaults to built-in defaults
            rooted at the current directory.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    settings = settings or InstallerSettings()
    app.config["INSTALLER_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024  # install form is tiny
    app.json.sort_keys = False

    # Register blueprints
    from firstrun.ui.web.routes_install import install_bp

    app.register_blueprint(install_bp)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-untyped-def]
        # Oversized bodies, unknown paths and wrong methods still answer JSON
        result = PipelineResult.failed(
            e.description or e.name,
            {"general": e.name},
            status_code=e.code or 500,
        )
        return jsonify(result.to_dict()), result.status_code

    logger.info("Installer app created (app_root=%s)", settings.app_root)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting installer on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
