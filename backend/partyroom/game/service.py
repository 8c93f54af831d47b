from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from threading import RLock
from typing import Any, Iterator

from ..config import Config
from ..realtime import events as ev
from ..realtime.events import Emit
from .errors import InvalidPin, RoomExists, RoomFull, WordRejected
from .models import GAME_TABS, Member, Room
from .words import DEFAULT_WHEEL_OPTIONS, pick_word


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


_lock = RLock()
_rooms: dict[str, Room] = {}

# Fields restored when a mutation fails half way.
_STATE_FIELDS = ("pin", "members", "game", "music", "lobby_notes")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
def _new_room(room_id: str, pin: str) -> Room:
    room = Room(room_id=room_id, pin=pin, created_at_ms=now_ms())
    room.game.wheel_options = list(DEFAULT_WHEEL_OPTIONS)
    return room


def create_room(room_id: str, pin: str) -> Room:
    with _lock:
        if room_id in _rooms:
            raise RoomExists("Room already exists.")
        room = _new_room(room_id, pin)
        _rooms[room_id] = room
        logger.info("room %s created", room_id)
        return room


def get_or_create_room(room_id: str, pin: str) -> tuple[Room, bool]:
    with _lock:
        room = _rooms.get(room_id)
        if room is not None:
            return room, False
        return create_room(room_id, pin), True


def get_room(room_id: str) -> Room | None:
    with _lock:
        return _rooms.get(room_id)


def list_rooms() -> list[Room]:
    with _lock:
        return list(_rooms.values())


def clear_rooms() -> None:
    with _lock:
        _rooms.clear()


def _checkpoint(room: Room) -> dict[str, Any]:
    # Stroke segments are append-only and never mutated, so the log is
    # copied shallowly; it can hold MAX_STROKES entries.
    game = room.game
    strokes = game.strokes
    game.strokes = []
    try:
        saved = {name: copy.deepcopy(getattr(room, name)) for name in _STATE_FIELDS}
    finally:
        game.strokes = strokes
    saved["game"].strokes = list(strokes)
    return saved


@contextmanager
def transaction(room: Room) -> Iterator[Room]:
    """Hold the room lock for one inbound event.

    If the body raises, the room is put back exactly as it was before the
    event started.
    """
    with room.lock:
        saved = _checkpoint(room)
        try:
            yield room
        except Exception:
            for name, value in saved.items():
                setattr(room, name, value)
            raise


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------
def room_public_state(room: Room, viewer_sid: str | None = None) -> dict:
    with room.lock:
        game = room.game
        music = room.music
        host = room.member_by_key(music.host_user_key)

        users = [
            {
                "userKey": m.user_key,
                "name": m.name,
                "color": m.color,
                "status": m.status,
                "points": m.points,
                "currentGame": m.current_game,
                "connected": m.connected,
            }
            for m in room.members
        ]

        payload: dict[str, Any] = {
            "roomId": room.room_id,
            "users": users,
            "game": {
                "drawerUserKey": game.drawer_user_key,
                "guesserUserKey": game.guesser_user_key,
                "hasWord": game.current_word is not None,
                "wordLength": len(game.current_word) if game.current_word else 0,
                "wrongGuessCount": game.wrong_guess_count,
                "maxWrongGuesses": Config.MAX_WRONG_GUESSES,
                "maxScore": Config.MAX_SCORE,
                "winnerUserKey": game.winner_user_key,
                "wheelTurnUserKey": game.wheel_turn_user_key,
                "wheelOptions": list(game.wheel_options),
            },
            "music": {
                "hostUserKey": music.host_user_key,
                "hostName": music.host_name,
                "hostConnected": bool(host and host.connected),
                "hostDeviceId": music.host_device_id,
                "hasHostSession": music.has_host_session,
                "clientId": music.client_id,
                "refreshLeadSec": Config.SPOTIFY_REFRESH_LEAD_SEC,
                "suggestions": copy.deepcopy(music.suggestions),
                "queue": copy.deepcopy(music.queue),
            },
            "lobbyNotes": [
                {
                    "id": n.id,
                    "userKey": n.user_key,
                    "name": n.name,
                    "color": n.color,
                    "text": n.text,
                    "createdAt": n.created_at_ms,
                }
                for n in room.lobby_notes
            ],
        }

        drawer = room.drawer
        if viewer_sid and drawer and viewer_sid == drawer.sid and game.current_word:
            payload["game"]["currentWord"] = game.current_word

        return payload


def snapshot_emits(room: Room) -> list[Emit]:
    """Public snapshot to the room, then the drawer's private copy."""
    out = [Emit(ev.ROOM_STATE, room_public_state(room), to=room.room_id)]
    drawer = room.drawer
    if drawer and drawer.sid and room.game.current_word:
        out.append(Emit(ev.ROOM_STATE, room_public_state(room, viewer_sid=drawer.sid), to=drawer.sid))
    return out


def _assign_word_emits(room: Room) -> list[Emit]:
    drawer = room.drawer
    if drawer and drawer.sid and room.game.current_word:
        return [Emit(ev.ASSIGN_WORD, {"word": room.game.current_word}, to=drawer.sid)]
    return []


# ---------------------------------------------------------------------------
# Turn / role coordination
# ---------------------------------------------------------------------------
def sync_statuses(room: Room) -> None:
    for m in room.members:
        if not m.connected:
            m.status = "DISCONNECTED"
        elif m.user_key == room.game.drawer_user_key:
            m.status = "DRAWING"
        elif m.user_key == room.game.guesser_user_key:
            m.status = "GUESSING"
        else:
            m.status = "WAITING"


def wheel_eligible(room: Room) -> list[Member]:
    return [m for m in room.members if m.connected and m.current_game == "WHEEL"]


def sync_wheel_turn(room: Room) -> None:
    eligible = wheel_eligible(room)
    if not eligible:
        room.game.wheel_turn_user_key = None
        return
    if not any(m.user_key == room.game.wheel_turn_user_key for m in eligible):
        room.game.wheel_turn_user_key = eligible[0].user_key


def sync_room(room: Room) -> None:
    sync_statuses(room)
    sync_wheel_turn(room)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def join(
    room_id: str,
    pin: str,
    user_key: str,
    name: str,
    color: str,
    sid: str,
    create: bool = False,
) -> tuple[Room, list[Emit]]:
    """Attach ``sid`` to ``user_key`` in ``room_id``, creating the room if needed.

    ``create`` is the explicit CREATE_ROOM path: it fails when the room
    already exists instead of joining it.
    """
    if create:
        room = create_room(room_id, pin)
    else:
        room, _ = get_or_create_room(room_id, pin)

    with transaction(room):
        if room.pin != pin:
            raise InvalidPin("Invalid PIN for this room.")

        # One connection maps to at most one member.
        stale = room.member_by_sid(sid)
        if stale is not None and stale.user_key != user_key:
            stale.sid = None

        member = room.member_by_key(user_key)
        if member is not None:
            member.sid = sid
            logger.info("room %s: %s rejoined", room_id, user_key)
        else:
            if len(room.members) >= Config.ROOM_CAPACITY:
                raise RoomFull("Room is full.")
            member = Member(user_key=user_key, name=name, color=color, sid=sid)
            room.members.append(member)
            logger.info("room %s: %s joined (%d/%d)", room_id, user_key, len(room.members), Config.ROOM_CAPACITY)

        emits: list[Emit] = []
        started = False
        if (
            room.game.drawer_user_key is None
            and room.game.winner_user_key is None
            and len(room.connected_members()) >= 2
        ):
            started = _start_round(room)

        if started or (room.game.current_word and room.game.drawer_user_key == user_key):
            emits.extend(_assign_word_emits(room))

        emits.append(Emit(ev.CANVAS_STATE, {"strokes": list(room.game.strokes)}, to=sid))

        sync_room(room)
        emits.extend(snapshot_emits(room))
        return room, emits


def set_active_game(room: Room, sid: str, game: str) -> list[Emit]:
    if game not in GAME_TABS:
        return []
    with transaction(room):
        member = room.member_by_sid(sid)
        if member is None:
            return []
        member.current_game = game  # type: ignore[assignment]
        sync_wheel_turn(room)
        return snapshot_emits(room)


def disconnect(sid: str) -> list[tuple[Room, list[Emit]]]:
    out = []
    # Linear scan; rooms are few and small.
    for room in list_rooms():
        with transaction(room):
            member = room.member_by_sid(sid)
            if member is None:
                continue
            member.sid = None
            if room.music.host_user_key == member.user_key:
                room.music.revoke_session()
                logger.info("room %s: music host %s disconnected, session revoked", room.room_id, member.user_key)
            sync_room(room)
            logger.info("room %s: %s disconnected", room.room_id, member.user_key)
            out.append((room, snapshot_emits(room)))
    return out


# ---------------------------------------------------------------------------
# Drawing rounds
# ---------------------------------------------------------------------------
def _clear_round(room: Room) -> None:
    game = room.game
    game.drawer_user_key = None
    game.guesser_user_key = None
    game.current_word = None
    game.strokes = []
    game.wrong_guess_count = 0


def _start_round(room: Room) -> bool:
    """Assign roles by join order among connected members; False if < 2."""
    connected = room.connected_members()
    _clear_round(room)
    room.game.winner_user_key = None
    if len(connected) < 2:
        sync_statuses(room)
        return False

    drawer, guesser = connected[0], connected[1]
    room.game.drawer_user_key = drawer.user_key
    room.game.guesser_user_key = guesser.user_key
    room.game.current_word = pick_word()
    sync_statuses(room)
    logger.info("room %s: round started, drawer=%s guesser=%s", room.room_id, drawer.user_key, guesser.user_key)
    return True


def _rotate_roles(room: Room) -> None:
    game = room.game
    game.drawer_user_key, game.guesser_user_key = game.guesser_user_key, game.drawer_user_key
    game.current_word = pick_word()
    game.strokes = []
    game.wrong_guess_count = 0
    game.winner_user_key = None
    sync_statuses(room)


def _round_active(room: Room) -> bool:
    game = room.game
    return bool(game.current_word and game.drawer_user_key and game.guesser_user_key)


def _is_drawer(room: Room, sid: str) -> bool:
    drawer = room.drawer
    return drawer is not None and drawer.sid is not None and drawer.sid == sid


def _is_guesser(room: Room, sid: str) -> bool:
    guesser = room.guesser
    return guesser is not None and guesser.sid is not None and guesser.sid == sid


def submit_stroke(room: Room, sid: str, stroke: Any) -> list[Emit]:
    if not isinstance(stroke, dict):
        return []
    with transaction(room):
        if not _is_drawer(room, sid):
            return []
        room.game.strokes.append(stroke)
        if len(room.game.strokes) > Config.MAX_STROKES:
            room.game.strokes = room.game.strokes[-Config.MAX_STROKES:]
        return [Emit(ev.DRAW, stroke, to=room.room_id, skip_sid=sid)]


def clear_canvas(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        if not _is_drawer(room, sid):
            return []
        room.game.strokes = []
        return [Emit(ev.CLEAR_CANVAS, to=room.room_id)]


def _skip_emits(room: Room) -> list[Emit]:
    skipped = room.game.current_word
    _rotate_roles(room)
    sync_wheel_turn(room)
    logger.info("room %s: round skipped", room.room_id)
    emits = [Emit(ev.ROUND_SKIPPED, {"word": skipped}, to=room.room_id)]
    emits.extend(_assign_word_emits(room))
    emits.append(Emit(ev.CLEAR_CANVAS, to=room.room_id))
    emits.extend(snapshot_emits(room))
    return emits


def submit_guess(room: Room, sid: str, text: Any) -> list[Emit]:
    if not isinstance(text, str):
        return []
    with transaction(room):
        if not _round_active(room) or not _is_guesser(room, sid):
            return []

        game = room.game
        if text.strip().lower() != game.current_word.strip().lower():
            game.wrong_guess_count += 1
            if game.wrong_guess_count >= Config.MAX_WRONG_GUESSES:
                return _skip_emits(room)
            return [
                Emit(
                    ev.WRONG_GUESS,
                    {
                        "message": f"Wrong guess ({game.wrong_guess_count}/{Config.MAX_WRONG_GUESSES}).",
                        "count": game.wrong_guess_count,
                        "max": Config.MAX_WRONG_GUESSES,
                    },
                    to=sid,
                )
            ]

        guessed_word = game.current_word
        guesser = room.guesser
        guesser.points += 1

        if guesser.points >= Config.MAX_SCORE:
            _clear_round(room)
            game.winner_user_key = guesser.user_key
            sync_room(room)
            logger.info("room %s: %s won with %d points", room.room_id, guesser.user_key, guesser.points)
            emits = [
                Emit(ev.CLEAR_CANVAS, to=room.room_id),
                Emit(
                    ev.GAME_WINNER,
                    {
                        "userKey": guesser.user_key,
                        "name": guesser.name,
                        "points": guesser.points,
                        "maxScore": Config.MAX_SCORE,
                    },
                    to=room.room_id,
                ),
            ]
            emits.extend(snapshot_emits(room))
            return emits

        _rotate_roles(room)
        sync_wheel_turn(room)
        emits = [
            Emit(
                ev.ROUND_RESULT,
                {
                    "word": guessed_word,
                    "scorerUserKey": guesser.user_key,
                    "scorerPoints": guesser.points,
                    "maxScore": Config.MAX_SCORE,
                },
                to=room.room_id,
            )
        ]
        emits.extend(_assign_word_emits(room))
        emits.append(Emit(ev.CLEAR_CANVAS, to=room.room_id))
        emits.extend(snapshot_emits(room))
        return emits


def skip_round(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        if not _round_active(room) or not _is_guesser(room, sid):
            return []
        return _skip_emits(room)


def restart_game(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        if room.member_by_sid(sid) is None:
            return []
        for m in room.members:
            m.points = 0
        _start_round(room)
        sync_room(room)
        logger.info("room %s: game restarted", room.room_id)
        emits = _assign_word_emits(room)
        emits.append(Emit(ev.CLEAR_CANVAS, to=room.room_id))
        emits.append(Emit(ev.GAME_RESTARTED, to=room.room_id))
        emits.extend(snapshot_emits(room))
        return emits


def set_draw_word(room: Room, sid: str, word: Any) -> list[Emit]:
    with transaction(room):
        if not _round_active(room) or not _is_drawer(room, sid):
            raise WordRejected("Only the current drawer can set the word.")
        w = word.strip() if isinstance(word, str) else ""
        if not w or len(w) > Config.MAX_WORD_LENGTH:
            raise WordRejected(f"Word must be 1-{Config.MAX_WORD_LENGTH} characters.")

        room.game.current_word = w
        room.game.strokes = []
        room.game.wrong_guess_count = 0
        emits = _assign_word_emits(room)
        emits.append(Emit(ev.CLEAR_CANVAS, to=room.room_id))
        emits.extend(snapshot_emits(room))
        return emits
