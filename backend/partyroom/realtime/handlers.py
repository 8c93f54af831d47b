from __future__ import annotations

import logging
import re
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit, join_room

from ..game import music, notes, service, wheel
from ..game.errors import RoomError
from ..game.models import Room
from . import events as ev
from .events import Emit


logger = logging.getLogger(__name__)

_INTERNAL_ERROR = {"ok": False, "error": "internal_error", "message": "Something went wrong."}


def _validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > 24:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def _normalize_color(raw: Any) -> str:
    c = str(raw or "").strip()
    if re.fullmatch(r"#[0-9a-fA-F]{3}|#[0-9a-fA-F]{6}", c):
        return c
    return ""


def register_socketio_handlers(socketio: SocketIO, music_provider) -> None:
    def _emit_all(emits: list[Emit]) -> None:
        for e in emits:
            kwargs: dict[str, Any] = {"to": e.to}
            if e.skip_sid:
                kwargs["skip_sid"] = e.skip_sid
            if e.data is None:
                socketio.emit(e.event, **kwargs)
            else:
                socketio.emit(e.event, e.data, **kwargs)

    def _room_for(payload: dict) -> Room | None:
        room_id = str(payload.get("roomId", "")).strip()
        if not room_id:
            return None
        return service.get_room(room_id)

    def _dispatch(fn: Callable[..., list[Emit]], *args, error_event: str | None = None) -> dict:
        try:
            emits = fn(*args)
        except RoomError as e:
            if error_event:
                emit(error_event, {"code": e.code, "message": e.message}, to=request.sid)
            return e.to_payload()
        except Exception:
            logger.exception("%s failed for %s", getattr(fn, "__name__", fn), request.sid)
            return dict(_INTERNAL_ERROR)
        _emit_all(emits)
        return {"ok": True}

    def _join(data, create: bool) -> dict:
        payload = data or {}
        room_id = str(payload.get("roomId", "")).strip()
        pin = str(payload.get("pin", "") or "").strip()
        name = str(payload.get("name", "") or "").strip()
        user_key = str(payload.get("userKey", "") or "").strip()
        color = _normalize_color(payload.get("color"))

        if not room_id or not user_key or not _validate_name(name):
            emit(ev.JOIN_ERROR, {"code": "invalid_payload", "message": "Room id, name and user key are required."})
            return {"ok": False, "error": "invalid_payload"}

        try:
            room, emits = service.join(room_id, pin, user_key, name, color, request.sid, create=create)
        except RoomError as e:
            logger.info("join %s rejected for %s: %s", room_id, user_key, e.code)
            emit(ev.JOIN_ERROR, {"code": e.code, "message": e.message})
            return e.to_payload()
        except Exception:
            logger.exception("join %s failed for %s", room_id, user_key)
            return dict(_INTERNAL_ERROR)

        join_room(room.room_id)
        _emit_all(emits)
        return {"ok": True}

    @socketio.on("connect")
    def on_connect():
        logger.debug("connected: %s", request.sid)

    @socketio.on(ev.CREATE_ROOM)
    def on_create_room(data):
        return _join(data, create=True)

    @socketio.on(ev.JOIN_ROOM)
    def on_join_room(data):
        return _join(data, create=False)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------
    @socketio.on(ev.DRAW)
    def on_draw(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(service.submit_stroke, room, request.sid, payload.get("stroke"))

    @socketio.on(ev.CLEAR_CANVAS_REQUEST)
    def on_clear_canvas(data):
        room = _room_for(data or {})
        if not room:
            return
        _dispatch(service.clear_canvas, room, request.sid)

    @socketio.on(ev.GUESS)
    def on_guess(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(service.submit_guess, room, request.sid, payload.get("guess"))

    @socketio.on(ev.SKIP_ROUND)
    def on_skip_round(data):
        room = _room_for(data or {})
        if not room:
            return
        _dispatch(service.skip_round, room, request.sid)

    @socketio.on(ev.RESTART_GAME)
    def on_restart_game(data):
        room = _room_for(data or {})
        if not room:
            return
        _dispatch(service.restart_game, room, request.sid)

    @socketio.on(ev.SET_DRAW_WORD)
    def on_set_draw_word(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(service.set_draw_word, room, request.sid, payload.get("word"), error_event=ev.WORD_ERROR)

    @socketio.on(ev.SET_ACTIVE_GAME)
    def on_set_active_game(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(service.set_active_game, room, request.sid, payload.get("game"))

    # ------------------------------------------------------------------
    # Wheel
    # ------------------------------------------------------------------
    @socketio.on(ev.SET_WHEEL_OPTIONS)
    def on_set_wheel_options(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(wheel.set_options, room, request.sid, payload.get("options"))

    @socketio.on(ev.SPIN_WHEEL)
    def on_spin_wheel(data):
        room = _room_for(data or {})
        if not room:
            return
        _dispatch(wheel.spin, room, request.sid, error_event=ev.WHEEL_TURN_DENIED)

    # ------------------------------------------------------------------
    # Music
    # ------------------------------------------------------------------
    @socketio.on(ev.CLAIM_MUSIC_HOST)
    def on_claim_music_host(data):
        room = _room_for(data or {})
        if not room:
            return
        return _dispatch(music.claim_host, room, request.sid, error_event=ev.MUSIC_ERROR)

    @socketio.on(ev.RELEASE_MUSIC_HOST)
    def on_release_music_host(data):
        room = _room_for(data or {})
        if not room:
            return
        return _dispatch(music.release_host, room, request.sid, error_event=ev.MUSIC_ERROR)

    @socketio.on(ev.SPOTIFY_HOST_SESSION_UPDATE)
    def on_host_session_update(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(
            music.update_host_session,
            room,
            request.sid,
            payload.get("clientId"),
            payload.get("session"),
            error_event=ev.MUSIC_ERROR,
        )

    @socketio.on(ev.SPOTIFY_HOST_DEVICE_UPDATE)
    def on_host_device_update(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(music.update_host_device, room, request.sid, payload.get("deviceId"), error_event=ev.MUSIC_ERROR)

    @socketio.on(ev.MUSIC_SUGGEST_TRACK)
    def on_suggest_track(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(music.suggest_track, room, request.sid, payload.get("track"), error_event=ev.MUSIC_ERROR)

    @socketio.on(ev.MUSIC_ACCEPT_SUGGESTION)
    def on_accept_suggestion(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(
            music.accept_suggestion, room, request.sid, payload.get("suggestionId"), error_event=ev.MUSIC_ERROR
        )

    @socketio.on(ev.MUSIC_REJECT_SUGGESTION)
    def on_reject_suggestion(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(
            music.reject_suggestion, room, request.sid, payload.get("suggestionId"), error_event=ev.MUSIC_ERROR
        )

    @socketio.on(ev.MUSIC_ADD_TO_QUEUE)
    def on_add_to_queue(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        return _dispatch(music.add_to_queue, room, request.sid, payload.get("track"), error_event=ev.MUSIC_ERROR)

    @socketio.on(ev.MUSIC_CONTROL_REQUEST)
    def on_music_control_request(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return {"ok": False, "error": "room_not_found", "message": "Room not found."}
        try:
            outcome, emits = music.control_request(
                room, request.sid, payload.get("action"), payload.get("payload"), music_provider
            )
        except RoomError as e:
            return e.to_payload()
        except Exception:
            logger.exception("music control %r failed in room %s", payload.get("action"), room.room_id)
            return dict(_INTERNAL_ERROR)
        _emit_all(emits)
        return outcome

    # ------------------------------------------------------------------
    # Lobby notes
    # ------------------------------------------------------------------
    @socketio.on(ev.ADD_LOBBY_NOTE)
    def on_add_lobby_note(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(notes.add_note, room, request.sid, payload.get("text"))

    @socketio.on(ev.DELETE_LOBBY_NOTE)
    def on_delete_lobby_note(data):
        payload = data or {}
        room = _room_for(payload)
        if not room:
            return
        _dispatch(notes.delete_note, room, request.sid, payload.get("noteId"))

    @socketio.on("disconnect")
    def on_disconnect(*_args):
        sid = request.sid
        logger.debug("disconnected: %s", sid)
        try:
            affected = service.disconnect(sid)
        except Exception:
            logger.exception("disconnect cleanup failed for %s", sid)
            return
        for _room, emits in affected:
            _emit_all(emits)
