"""Flask application serving the static page."""

from __future__ import annotations

import logging

from flask import Flask, Response, abort, current_app
from rich.logging import RichHandler

from webapp.settings import ServerSettings

logger = logging.getLogger(__name__)


def create_app(settings: ServerSettings | None = None) -> Flask:
    """Create and configure the Flask application."""
    if settings is None:
        settings = ServerSettings.from_env()

    # Static assets are read by the index view itself; no /static route.
    app = Flask(__name__, static_folder=None)
    app.config["SERVER_SETTINGS"] = settings

    app.add_url_rule("/", "index", index, methods=["GET"])
    app.add_url_rule("/healthz", "healthz", healthz, methods=["GET"])

    return app


def index():
    """Read the index file from disk and return it as-is."""
    settings: ServerSettings = current_app.config["SERVER_SETTINGS"]
    path = settings.index_path
    try:
        body = path.read_bytes()
    except (FileNotFoundError, IsADirectoryError):
        logger.warning("index file missing: %s", path)
        abort(404)
    return Response(body, mimetype="text/html")


def healthz():
    return Response("ok", mimetype="text/plain")


def configure_logging(level: int = logging.INFO) -> None:
    """Route application and werkzeug access logs through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def run_server(settings: ServerSettings | None = None, debug: bool = False) -> None:
    """Serve the app until interrupted."""
    if settings is None:
        settings = ServerSettings.from_env()

    configure_logging(logging.DEBUG if debug else logging.INFO)
    app = create_app(settings)
    logger.info("serving %s on http://%s:%d/", settings.index_path, settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, debug=debug, use_reloader=False)
