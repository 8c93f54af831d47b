from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Literal


GameTab = Literal["DRAWING", "WHEEL", "MUSIC", "LOBBY"]
GAME_TABS: tuple[str, ...] = ("DRAWING", "WHEEL", "MUSIC", "LOBBY")

MemberStatus = Literal["DRAWING", "GUESSING", "WAITING", "DISCONNECTED"]


@dataclass
class Member:
    user_key: str
    name: str
    color: str = ""
    sid: str | None = None
    status: MemberStatus = "WAITING"
    points: int = 0
    current_game: GameTab = "DRAWING"

    @property
    def connected(self) -> bool:
        return self.sid is not None


@dataclass
class DrawingGame:
    drawer_user_key: str | None = None
    guesser_user_key: str | None = None
    current_word: str | None = None
    strokes: list = field(default_factory=list)
    wrong_guess_count: int = 0
    winner_user_key: str | None = None
    wheel_turn_user_key: str | None = None
    wheel_options: list[str] = field(default_factory=list)


@dataclass
class HostSession:
    access_token: str
    refresh_token: str
    expires_at_ms: int


@dataclass
class MusicState:
    host_user_key: str | None = None
    host_name: str | None = None
    host_device_id: str | None = None
    has_host_session: bool = False
    host_session: HostSession | None = None
    client_id: str | None = None
    suggestions: list[dict] = field(default_factory=list)
    queue: list[dict] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return bool(self.host_user_key and self.has_host_session and self.host_session)

    def revoke_session(self) -> None:
        """Drop credentials and device but keep the host identity."""
        self.host_session = None
        self.has_host_session = False
        self.host_device_id = None

    def clear_host(self) -> None:
        self.revoke_session()
        self.host_user_key = None
        self.host_name = None
        self.client_id = None


@dataclass
class LobbyNote:
    id: str
    user_key: str
    name: str
    color: str
    text: str
    created_at_ms: int


@dataclass
class Room:
    room_id: str
    pin: str
    members: list[Member] = field(default_factory=list)
    game: DrawingGame = field(default_factory=DrawingGame)
    music: MusicState = field(default_factory=MusicState)
    lobby_notes: list[LobbyNote] = field(default_factory=list)
    created_at_ms: int = 0
    # Serializes every read/write of this room.
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    def member_by_key(self, user_key: str | None) -> Member | None:
        if not user_key:
            return None
        for m in self.members:
            if m.user_key == user_key:
                return m
        return None

    def member_by_sid(self, sid: str | None) -> Member | None:
        if not sid:
            return None
        for m in self.members:
            if m.sid == sid:
                return m
        return None

    def connected_members(self) -> list[Member]:
        return [m for m in self.members if m.connected]

    @property
    def drawer(self) -> Member | None:
        return self.member_by_key(self.game.drawer_user_key)

    @property
    def guesser(self) -> Member | None:
        return self.member_by_key(self.game.guesser_user_key)
