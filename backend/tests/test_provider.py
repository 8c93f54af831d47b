import pytest
import requests
import spotipy

from partyroom.game.errors import ProviderError
from partyroom.music import provider as provider_mod
from partyroom.music.provider import SpotifyProvider, normalize_track


SPOTIFY_ITEM = {
    "uri": "spotify:track:4uLU6hMCjMI75M1A2tKUQC",
    "name": "Never Gonna Give You Up",
    "artists": [{"name": "Rick Astley"}, {"name": ""}],
    "album": {"name": "Whenever You Need Somebody", "images": [{"url": "https://img/1"}, {"url": "https://img/2"}]},
    "duration_ms": 213000,
}


class FakeSpotify:
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.calls = []
        FakeSpotify.instances.append(self)

    def current_user_playing_track(self):
        return {"item": SPOTIFY_ITEM, "progress_ms": 5000, "is_playing": True}

    def search(self, **kwargs):
        self.calls.append(("search", kwargs))
        return {"tracks": {"items": [SPOTIFY_ITEM, None]}}

    def start_playback(self, **kwargs):
        self.calls.append(("start_playback", kwargs))

    def pause_playback(self, **kwargs):
        raise spotipy.SpotifyException(404, -1, "No active device")

    def next_track(self, **kwargs):
        raise requests.ConnectionError("offline")


@pytest.fixture(autouse=True)
def fake_spotify(monkeypatch):
    FakeSpotify.instances = []
    monkeypatch.setattr(provider_mod.spotipy, "Spotify", FakeSpotify)
    return FakeSpotify


def test_normalize_track():
    assert normalize_track(None) is None
    assert normalize_track(SPOTIFY_ITEM) == {
        "uri": "spotify:track:4uLU6hMCjMI75M1A2tKUQC",
        "name": "Never Gonna Give You Up",
        "artists": "Rick Astley",
        "album": "Whenever You Need Somebody",
        "albumImage": "https://img/1",
        "durationMs": 213000,
    }


def test_client_disables_retries_and_sets_timeout():
    p = SpotifyProvider(timeout_sec=3)
    p.play("tok", "dev")
    kwargs = FakeSpotify.instances[0].kwargs
    assert kwargs == {"auth": "tok", "requests_timeout": 3, "retries": 0, "status_retries": 0}
    assert FakeSpotify.instances[0].calls == [("start_playback", {"device_id": "dev"})]


def test_current_track_and_search():
    p = SpotifyProvider()
    track = p.current_track("tok")
    assert track["progressMs"] == 5000
    assert track["isPlaying"] is True

    results = p.search("tok", "rick", 5)
    assert [t["name"] for t in results] == ["Never Gonna Give You Up"]
    assert FakeSpotify.instances[-1].calls == [("search", {"q": "rick", "limit": 5, "type": "track"})]


def test_play_track_passes_uri():
    SpotifyProvider().play_track("tok", None, "spotify:track:x")
    assert FakeSpotify.instances[0].calls == [
        ("start_playback", {"device_id": None, "uris": ["spotify:track:x"]})
    ]


def test_failures_become_provider_errors():
    p = SpotifyProvider()
    with pytest.raises(ProviderError):
        p.pause("tok", None)
    with pytest.raises(ProviderError):
        p.next("tok", None)


def test_refresh_converts_expiry_to_ms(monkeypatch):
    seen = {}

    class FakePKCE:
        def __init__(self, **kwargs):
            seen["init"] = kwargs

        def refresh_access_token(self, refresh_token):
            seen["refresh_token"] = refresh_token
            return {"access_token": "new", "expires_at": 1_700_000_000}

    monkeypatch.setattr(provider_mod, "SpotifyPKCE", FakePKCE)
    out = SpotifyProvider(redirect_uri="http://127.0.0.1/cb", timeout_sec=2).refresh("client", "old-refresh")

    assert out == {"access_token": "new", "refresh_token": "old-refresh", "expires_at_ms": 1_700_000_000_000}
    assert seen["refresh_token"] == "old-refresh"
    assert seen["init"]["client_id"] == "client"
    assert seen["init"]["requests_timeout"] == 2


def test_refresh_without_credentials_fails():
    with pytest.raises(ProviderError):
        SpotifyProvider().refresh("", "token")
