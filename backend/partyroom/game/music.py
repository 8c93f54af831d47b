"""Music session coordination: single host, suggestions, queue, control proxy.

Only one member per room holds ``host_user_key``. The host pushes a Spotify
token bundle which the server uses to run control actions for everyone in the
room. Control requests are request/response: they never broadcast, except
``PLAY_QUEUED_NEXT`` which changes the queue.
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from enum import Enum
from typing import Any

from ..config import Config
from ..realtime.events import Emit
from .errors import HostClaimRejected, HostNotReady, NotAMember, NotMusicHost, RoomError
from .models import HostSession, Member, Room
from .service import now_ms, snapshot_emits, transaction


logger = logging.getLogger(__name__)

TRACK_URI_RE = re.compile(r"^spotify:track:[A-Za-z0-9]{22}$")

_MAX_FIELD = 200
_MAX_IMAGE_URL = 500
_MAX_ID = 128
_MAX_QUERY = 100


class ControlAction(str, Enum):
    CURRENT_TRACK = "CURRENT_TRACK"
    SEARCH = "SEARCH"
    PLAY = "PLAY"
    PAUSE = "PAUSE"
    NEXT = "NEXT"
    PREVIOUS = "PREVIOUS"
    PLAY_TRACK = "PLAY_TRACK"
    PLAY_QUEUED_NEXT = "PLAY_QUEUED_NEXT"


def _bounded(value: Any, limit: int) -> str:
    if value is None:
        return ""
    return str(value).strip()[:limit]


def normalize_candidate(raw: Any) -> dict | None:
    """Validate a proposed track; None when the uri or name is unusable."""
    if not isinstance(raw, dict):
        return None
    uri = _bounded(raw.get("uri"), _MAX_FIELD)
    name = _bounded(raw.get("name"), _MAX_FIELD)
    if not name or not TRACK_URI_RE.match(uri):
        return None

    duration = raw.get("durationMs")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = 0

    return {
        "uri": uri,
        "name": name,
        "artists": _bounded(raw.get("artists"), _MAX_FIELD),
        "album": _bounded(raw.get("album"), _MAX_FIELD),
        "albumImage": _bounded(raw.get("albumImage"), _MAX_IMAGE_URL) or None,
        "durationMs": max(0, int(duration)),
    }


def _require_member(room: Room, sid: str) -> Member:
    member = room.member_by_sid(sid)
    if member is None:
        raise NotAMember("You are not in this room.")
    return member


def _require_host(room: Room, sid: str) -> Member:
    member = _require_member(room, sid)
    if member.user_key != room.music.host_user_key:
        raise NotMusicHost("Only the music host can do that.")
    return member


def _bounded_append(items: list[dict], entry: dict, cap: int) -> list[dict]:
    items.append(entry)
    if len(items) > cap:
        return items[-cap:]
    return items


# ---------------------------------------------------------------------------
# Host role
# ---------------------------------------------------------------------------
def claim_host(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        claimant = _require_member(room, sid)
        music = room.music
        current = room.member_by_key(music.host_user_key)
        if current is not None and current.user_key == claimant.user_key:
            # Re-claim by the holder keeps the session and device.
            return snapshot_emits(room)
        if current is not None and current.connected:
            raise HostClaimRejected(f"{music.host_name or current.name} is already the music host.")

        music.host_user_key = claimant.user_key
        music.host_name = claimant.name
        music.revoke_session()
        logger.info("room %s: %s claimed music host", room.room_id, claimant.user_key)
        return snapshot_emits(room)


def release_host(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        host = _require_host(room, sid)
        room.music.clear_host()
        logger.info("room %s: %s released music host", room.room_id, host.user_key)
        return snapshot_emits(room)


def update_host_session(room: Room, sid: str, client_id: Any, bundle: Any) -> list[Emit]:
    with transaction(room):
        _require_host(room, sid)
        music = room.music

        if not bundle:
            music.revoke_session()
            return snapshot_emits(room)

        if not isinstance(bundle, dict):
            return []
        access_token = bundle.get("accessToken")
        expires_at = bundle.get("expiresAt")
        if (
            not isinstance(access_token, str)
            or not access_token
            or isinstance(expires_at, bool)
            or not isinstance(expires_at, (int, float))
        ):
            return []

        refresh_token = bundle.get("refreshToken")
        music.host_session = HostSession(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else "",
            expires_at_ms=int(expires_at),
        )
        music.has_host_session = True
        music.client_id = _bounded(client_id, _MAX_ID) or music.client_id
        return snapshot_emits(room)


def update_host_device(room: Room, sid: str, device_id: Any) -> list[Emit]:
    with transaction(room):
        _require_host(room, sid)
        room.music.host_device_id = _bounded(device_id, _MAX_ID) or None
        return snapshot_emits(room)


# ---------------------------------------------------------------------------
# Suggestions / queue
# ---------------------------------------------------------------------------
def suggest_track(room: Room, sid: str, candidate: Any) -> list[Emit]:
    track = normalize_candidate(candidate)
    if track is None:
        return []
    with transaction(room):
        member = room.member_by_sid(sid)
        if member is None:
            return []
        entry = dict(
            track,
            id=uuid.uuid4().hex,
            suggestedBy={"userKey": member.user_key, "name": member.name},
            suggestedAt=now_ms(),
        )
        room.music.suggestions = _bounded_append(room.music.suggestions, entry, Config.MUSIC_MAX_SUGGESTIONS)
        return snapshot_emits(room)


def _queue_entry(track: dict, host: Member) -> dict:
    return dict(
        track,
        id=uuid.uuid4().hex,
        acceptedBy={"userKey": host.user_key, "name": host.name},
        acceptedAt=now_ms(),
    )


def accept_suggestion(room: Room, sid: str, suggestion_id: Any) -> list[Emit]:
    with transaction(room):
        host = _require_host(room, sid)
        music = room.music
        for i, s in enumerate(music.suggestions):
            if s["id"] == suggestion_id:
                del music.suggestions[i]
                track = {k: s[k] for k in ("uri", "name", "artists", "album", "albumImage", "durationMs")}
                entry = _queue_entry(track, host)
                entry["suggestedBy"] = s.get("suggestedBy")
                music.queue = _bounded_append(music.queue, entry, Config.MUSIC_MAX_QUEUE)
                return snapshot_emits(room)
        return []


def reject_suggestion(room: Room, sid: str, suggestion_id: Any) -> list[Emit]:
    with transaction(room):
        _require_host(room, sid)
        music = room.music
        remaining = [s for s in music.suggestions if s["id"] != suggestion_id]
        if len(remaining) == len(music.suggestions):
            return []
        music.suggestions = remaining
        return snapshot_emits(room)


def add_to_queue(room: Room, sid: str, candidate: Any) -> list[Emit]:
    with transaction(room):
        host = _require_host(room, sid)
        track = normalize_candidate(candidate)
        if track is None:
            return []
        room.music.queue = _bounded_append(room.music.queue, _queue_entry(track, host), Config.MUSIC_MAX_QUEUE)
        return snapshot_emits(room)


# ---------------------------------------------------------------------------
# Control proxy
# ---------------------------------------------------------------------------
def _parse_payload(action: ControlAction, payload: Any) -> dict:
    payload = payload if isinstance(payload, dict) else {}
    if action is ControlAction.SEARCH:
        query = _bounded(payload.get("query"), _MAX_QUERY)
        if not query:
            raise RoomError("Search query is required.", code="invalid_payload")
        try:
            limit = int(payload.get("limit", 8))
        except (TypeError, ValueError):
            limit = 8
        return {"query": query, "limit": min(max(limit, 1), 20)}
    if action is ControlAction.PLAY_TRACK:
        uri = _bounded(payload.get("uri"), _MAX_FIELD)
        if not TRACK_URI_RE.match(uri):
            raise RoomError("A valid track uri is required.", code="invalid_payload")
        return {"uri": uri}
    return {}


def _fresh_access_token(room: Room, host_key: str, session: HostSession, client_id: str, provider) -> str:
    """Return a usable bearer token, refreshing it when it is about to expire.

    A failed refresh fails only this request; host status is left alone.
    """
    if session.expires_at_ms - now_ms() > Config.SPOTIFY_REFRESH_LEAD_SEC * 1000:
        return session.access_token

    refreshed = provider.refresh(client_id, session.refresh_token)

    with transaction(room):
        music = room.music
        if music.host_user_key != host_key or music.host_session is None:
            raise HostNotReady("Music host changed during the request.")
        # Apply only if nobody pushed a newer bundle meanwhile.
        if music.host_session.access_token == session.access_token:
            music.host_session = HostSession(
                access_token=refreshed["access_token"],
                refresh_token=refreshed["refresh_token"],
                expires_at_ms=refreshed["expires_at_ms"],
            )
            logger.info("room %s: refreshed music host token", room.room_id)
    return refreshed["access_token"]


def _run(action: ControlAction, provider, token: str, device_id: str | None, args: dict, entry: dict | None) -> dict:
    if action is ControlAction.CURRENT_TRACK:
        return {"track": provider.current_track(token)}
    if action is ControlAction.SEARCH:
        return {"tracks": provider.search(token, args["query"], args["limit"])}
    if action is ControlAction.PLAY:
        provider.play(token, device_id)
        return {}
    if action is ControlAction.PAUSE:
        provider.pause(token, device_id)
        return {}
    if action is ControlAction.NEXT:
        provider.next(token, device_id)
        return {}
    if action is ControlAction.PREVIOUS:
        provider.previous(token, device_id)
        return {}
    if action is ControlAction.PLAY_TRACK:
        provider.play_track(token, device_id, args["uri"])
        return {}
    if action is ControlAction.PLAY_QUEUED_NEXT:
        provider.play_track(token, device_id, entry["uri"])
        return {"track": entry}
    raise ValueError(f"unhandled control action {action!r}")


def _requeue(room: Room, entry: dict) -> None:
    """Put a queue head back after its play failed."""
    with transaction(room):
        queue = room.music.queue
        queue.insert(0, entry)
        del queue[Config.MUSIC_MAX_QUEUE:]
        logger.info("room %s: queued track %s put back after failed play", room.room_id, entry["uri"])


def control_request(room: Room, sid: str, action: Any, payload: Any, provider) -> tuple[dict, list[Emit]]:
    """Run one control action; returns ``(outcome, emits)`` or raises ``RoomError``.

    ``PLAY_QUEUED_NEXT`` takes the queue head inside the first critical
    section, so concurrent requests never play the same entry. If the play
    fails or the host changes meanwhile, the entry goes back to the head.
    """
    try:
        kind = ControlAction(action)
    except ValueError:
        raise RoomError("Unknown music action.", code="invalid_action") from None
    args = _parse_payload(kind, payload)

    with transaction(room):
        requester = _require_member(room, sid)
        music = room.music
        if not music.ready:
            raise HostNotReady("The music host is not connected to Spotify.")
        entry = None
        if kind is ControlAction.PLAY_QUEUED_NEXT:
            if requester.user_key != music.host_user_key:
                raise NotMusicHost("Only the music host can play the queue.")
            if not music.queue:
                raise RoomError("The queue is empty.", code="queue_empty")
            entry = music.queue.pop(0)
        host_key = music.host_user_key
        session = copy.copy(music.host_session)
        client_id = music.client_id or Config.SPOTIFY_CLIENT_ID
        device_id = music.host_device_id

    # Provider calls run outside the room lock.
    try:
        token = _fresh_access_token(room, host_key, session, client_id, provider)
        data = _run(kind, provider, token, device_id, args, copy.deepcopy(entry))
    except Exception:
        if entry is not None:
            _requeue(room, entry)
        raise

    if kind is not ControlAction.PLAY_QUEUED_NEXT:
        return {"ok": True, "action": kind.value, "data": data}, []

    with transaction(room):
        if room.music.host_user_key == host_key:
            logger.info("room %s: playing queued track %s", room.room_id, entry["uri"])
            return {"ok": True, "action": kind.value, "data": data}, snapshot_emits(room)

    _requeue(room, entry)
    raise HostNotReady("Music host changed during the request.")
