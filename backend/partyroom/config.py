import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO async mode ("" = pick per platform)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    ROOM_CAPACITY = int(os.environ.get("ROOM_CAPACITY", "2"))

    # Drawing game
    MAX_SCORE = int(os.environ.get("MAX_SCORE", "5"))
    MAX_WRONG_GUESSES = int(os.environ.get("MAX_WRONG_GUESSES", "5"))
    MAX_STROKES = int(os.environ.get("MAX_STROKES", "5000"))
    MAX_WORD_LENGTH = int(os.environ.get("MAX_WORD_LENGTH", "32"))

    # Wheel
    WHEEL_OPTION_MAX_LENGTH = int(os.environ.get("WHEEL_OPTION_MAX_LENGTH", "80"))
    WHEEL_MAX_OPTIONS = int(os.environ.get("WHEEL_MAX_OPTIONS", "24"))

    # Lobby notes
    LOBBY_NOTE_MAX_LENGTH = int(os.environ.get("LOBBY_NOTE_MAX_LENGTH", "280"))
    LOBBY_MAX_NOTES = int(os.environ.get("LOBBY_MAX_NOTES", "50"))

    # Music
    MUSIC_MAX_SUGGESTIONS = int(os.environ.get("MUSIC_MAX_SUGGESTIONS", "30"))
    MUSIC_MAX_QUEUE = int(os.environ.get("MUSIC_MAX_QUEUE", "50"))
    SPOTIFY_CLIENT_ID = os.environ.get("SPOTIFY_CLIENT_ID", "")
    SPOTIFY_REDIRECT_URI = os.environ.get("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:3000/spotify/callback")
    # Shared by server-side refresh and the value advertised to host clients.
    SPOTIFY_REFRESH_LEAD_SEC = int(os.environ.get("SPOTIFY_REFRESH_LEAD_SEC", "30"))
    SPOTIFY_REQUEST_TIMEOUT_SEC = float(os.environ.get("SPOTIFY_REQUEST_TIMEOUT_SEC", "8"))
