from __future__ import annotations

import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .music.provider import SpotifyProvider
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp


def _pick_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config_class=Config, music_provider=None) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_pick_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", "")),
    )

    app.register_blueprint(health_bp)
    app.register_blueprint(health_bp, url_prefix="/api", name="api_health")

    if music_provider is None:
        music_provider = SpotifyProvider(
            redirect_uri=app.config.get("SPOTIFY_REDIRECT_URI", ""),
            timeout_sec=app.config.get("SPOTIFY_REQUEST_TIMEOUT_SEC", 8.0),
        )
    register_socketio_handlers(socketio, music_provider)

    return app, socketio
