"""Spotify Web API access on behalf of a room's music host.

The server never runs the OAuth authorization flow itself: the host's client
does PKCE against Spotify and pushes the resulting token bundle into the room.
This module only refreshes that bundle and issues playback/search calls with
it, using spotipy with retries disabled and a bounded request timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOauthError, SpotifyPKCE

from ..game.errors import ProviderError


logger = logging.getLogger(__name__)

_FAILURES = (spotipy.SpotifyException, SpotifyOauthError, requests.RequestException)


def normalize_track(item: dict | None) -> dict | None:
    """Reduce a Spotify track object to the fields clients render."""
    if not item:
        return None
    artists = ", ".join(a.get("name", "") for a in item.get("artists") or [] if a.get("name"))
    album = item.get("album") or {}
    images = album.get("images") or []
    return {
        "uri": item.get("uri"),
        "name": item.get("name"),
        "artists": artists,
        "album": album.get("name"),
        "albumImage": images[0].get("url") if images else None,
        "durationMs": item.get("duration_ms") or 0,
    }


class SpotifyProvider:
    """Thin spotipy wrapper; every failure surfaces as ``ProviderError``."""

    def __init__(self, redirect_uri: str = "", timeout_sec: float = 8.0) -> None:
        self.redirect_uri = redirect_uri
        self.timeout_sec = timeout_sec

    def _client(self, access_token: str) -> spotipy.Spotify:
        return spotipy.Spotify(
            auth=access_token,
            requests_timeout=self.timeout_sec,
            retries=0,
            status_retries=0,
        )

    def _call(self, label: str, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except _FAILURES as e:
            logger.warning("spotify %s failed: %s", label, e)
            raise ProviderError(f"Spotify request failed ({label}).") from e

    def refresh(self, client_id: str, refresh_token: str) -> dict:
        """Exchange a refresh token; returns ``access_token``, ``refresh_token``, ``expires_at_ms``."""
        if not client_id or not refresh_token:
            raise ProviderError("Spotify session cannot be refreshed.")
        auth = SpotifyPKCE(
            client_id=client_id,
            redirect_uri=self.redirect_uri or None,
            cache_handler=MemoryCacheHandler(),
            requests_timeout=self.timeout_sec,
            open_browser=False,
        )
        token = self._call("refresh", auth.refresh_access_token, refresh_token)
        expires_at = token.get("expires_at") or int(time.time()) + int(token.get("expires_in") or 0)
        return {
            "access_token": token["access_token"],
            "refresh_token": token.get("refresh_token") or refresh_token,
            "expires_at_ms": int(expires_at) * 1000,
        }

    def current_track(self, access_token: str) -> dict | None:
        data = self._call("current_track", self._client(access_token).current_user_playing_track)
        if not data or not data.get("item"):
            return None
        track = normalize_track(data["item"])
        track["progressMs"] = data.get("progress_ms") or 0
        track["isPlaying"] = bool(data.get("is_playing"))
        return track

    def search(self, access_token: str, query: str, limit: int) -> list[dict]:
        data = self._call("search", self._client(access_token).search, q=query, limit=limit, type="track")
        items = ((data or {}).get("tracks") or {}).get("items") or []
        return [t for t in (normalize_track(i) for i in items) if t]

    def play(self, access_token: str, device_id: str | None) -> None:
        self._call("play", self._client(access_token).start_playback, device_id=device_id)

    def pause(self, access_token: str, device_id: str | None) -> None:
        self._call("pause", self._client(access_token).pause_playback, device_id=device_id)

    def next(self, access_token: str, device_id: str | None) -> None:
        self._call("next", self._client(access_token).next_track, device_id=device_id)

    def previous(self, access_token: str, device_id: str | None) -> None:
        self._call("previous", self._client(access_token).previous_track, device_id=device_id)

    def play_track(self, access_token: str, device_id: str | None, uri: str) -> None:
        self._call("play_track", self._client(access_token).start_playback, device_id=device_id, uris=[uri])
