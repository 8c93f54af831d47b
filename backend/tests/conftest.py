import pytest

from partyroom.config import Config
from partyroom.game import service
from partyroom.game.errors import ProviderError
from partyroom.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False


TRACK_URI = "spotify:track:4uLU6hMCjMI75M1A2tKUQC"
OTHER_TRACK_URI = "spotify:track:7GhIk7Il098yCjg4BQjzvb"


class FakeProvider:
    """Stands in for SpotifyProvider; records every call."""

    def __init__(self):
        self.calls = []
        self.fail_refresh = False
        self.fail_calls = False

    def _record(self, *call):
        self.calls.append(call)
        if self.fail_calls:
            raise ProviderError(f"Spotify request failed ({call[0]}).")

    def refresh(self, client_id, refresh_token):
        self.calls.append(("refresh", client_id, refresh_token))
        if self.fail_refresh:
            raise ProviderError("Spotify request failed (refresh).")
        return {
            "access_token": "fresh-token",
            "refresh_token": refresh_token,
            "expires_at_ms": service.now_ms() + 3_600_000,
        }

    def current_track(self, token):
        self._record("current_track", token)
        return {"uri": TRACK_URI, "name": "Song", "isPlaying": True}

    def search(self, token, query, limit):
        self._record("search", token, query, limit)
        return [{"uri": TRACK_URI, "name": f"{query} result"}]

    def play(self, token, device_id):
        self._record("play", token, device_id)

    def pause(self, token, device_id):
        self._record("pause", token, device_id)

    def next(self, token, device_id):
        self._record("next", token, device_id)

    def previous(self, token, device_id):
        self._record("previous", token, device_id)

    def play_track(self, token, device_id, uri):
        self._record("play_track", token, device_id, uri)


@pytest.fixture(autouse=True)
def _reset_rooms():
    service.clear_rooms()
    yield
    service.clear_rooms()


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def app_and_socketio(provider):
    return create_app(TestConfig, music_provider=provider)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(app_and_socketio):
    """Factory for Socket.IO test clients; all are disconnected at teardown."""
    app, socketio = app_and_socketio
    clients = []

    def _connect():
        c = socketio.test_client(app, flask_test_client=app.test_client())
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        if c.is_connected():
            c.disconnect()


def join(room_id, user_key, sid, pin="1234", name=None, color="#ff0000"):
    return service.join(room_id, pin, user_key, name or user_key.upper(), color, sid)


@pytest.fixture()
def duo_room():
    """Room R1 with A (drawer, sid-a) and B (guesser, sid-b) mid-round."""
    join("R1", "a", "sid-a")
    room, _ = join("R1", "b", "sid-b")
    return room
