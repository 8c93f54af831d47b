from __future__ import annotations

from dataclasses import dataclass
from typing import Any


# Inbound (client -> server)
CREATE_ROOM = "CREATE_ROOM"
JOIN_ROOM = "JOIN_ROOM"
DRAW = "DRAW"
CLEAR_CANVAS_REQUEST = "CLEAR_CANVAS_REQUEST"
GUESS = "GUESS"
SKIP_ROUND = "SKIP_ROUND"
RESTART_GAME = "RESTART_GAME"
SET_DRAW_WORD = "SET_DRAW_WORD"
SET_ACTIVE_GAME = "SET_ACTIVE_GAME"
SET_WHEEL_OPTIONS = "SET_WHEEL_OPTIONS"
SPIN_WHEEL = "SPIN_WHEEL"
CLAIM_MUSIC_HOST = "CLAIM_MUSIC_HOST"
RELEASE_MUSIC_HOST = "RELEASE_MUSIC_HOST"
MUSIC_SUGGEST_TRACK = "MUSIC_SUGGEST_TRACK"
MUSIC_ACCEPT_SUGGESTION = "MUSIC_ACCEPT_SUGGESTION"
MUSIC_REJECT_SUGGESTION = "MUSIC_REJECT_SUGGESTION"
MUSIC_ADD_TO_QUEUE = "MUSIC_ADD_TO_QUEUE"
SPOTIFY_HOST_SESSION_UPDATE = "SPOTIFY_HOST_SESSION_UPDATE"
SPOTIFY_HOST_DEVICE_UPDATE = "SPOTIFY_HOST_DEVICE_UPDATE"
MUSIC_CONTROL_REQUEST = "MUSIC_CONTROL_REQUEST"
ADD_LOBBY_NOTE = "ADD_LOBBY_NOTE"
DELETE_LOBBY_NOTE = "DELETE_LOBBY_NOTE"

# Outbound (server -> client)
ROOM_STATE = "ROOM_STATE"
ASSIGN_WORD = "ASSIGN_WORD"
WORD_ERROR = "WORD_ERROR"
JOIN_ERROR = "JOIN_ERROR"
MUSIC_ERROR = "MUSIC_ERROR"
CANVAS_STATE = "CANVAS_STATE"
CLEAR_CANVAS = "CLEAR_CANVAS"
WRONG_GUESS = "WRONG_GUESS"
ROUND_RESULT = "ROUND_RESULT"
ROUND_SKIPPED = "ROUND_SKIPPED"
GAME_WINNER = "GAME_WINNER"
GAME_RESTARTED = "GAME_RESTARTED"
WHEEL_RESULT = "WHEEL_RESULT"
WHEEL_TURN_DENIED = "WHEEL_TURN_DENIED"


@dataclass
class Emit:
    """One outbound message produced inside a room transaction.

    ``to`` is a room id or a connection id. ``skip_sid`` excludes one
    connection from a room-wide emit. ``data`` of None sends no payload.
    """

    event: str
    data: Any = None
    to: str | None = None
    skip_sid: str | None = None
