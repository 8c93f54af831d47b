import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def _wants_eventlet() -> bool:
    mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if mode not in ("", "eventlet"):
        return False
    return not sys.platform.startswith("win") and sys.version_info < (3, 13)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


def main() -> None:
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")

    # Must run before Flask/Socket.IO are imported.
    if _wants_eventlet():
        import eventlet

        eventlet.monkey_patch()

    try:
        from backend.partyroom.server import create_app
    except ImportError:  # pragma: no cover
        from partyroom.server import create_app

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("partyroom")

    app, socketio = create_app()

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "3001"))
    log.info("party room server listening on %s:%d (async_mode=%s)", host, port, socketio.async_mode)

    socketio.run(
        app,
        host=host,
        port=port,
        debug=_env_flag("FLASK_DEBUG", "0"),
        allow_unsafe_werkzeug=_env_flag("ALLOW_UNSAFE_WERKZEUG", "1"),
        use_reloader=_env_flag("FLASK_USE_RELOADER", "0"),
    )


if __name__ == "__main__":
    main()
