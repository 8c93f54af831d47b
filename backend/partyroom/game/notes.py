from __future__ import annotations

import uuid
from typing import Any

from ..config import Config
from ..realtime.events import Emit
from .models import LobbyNote, Room
from .service import now_ms, snapshot_emits, transaction


def add_note(room: Room, sid: str, text: Any) -> list[Emit]:
    if not isinstance(text, str):
        return []
    body = text.strip()[: Config.LOBBY_NOTE_MAX_LENGTH].strip()
    if not body:
        return []
    with transaction(room):
        author = room.member_by_sid(sid)
        if author is None:
            return []
        room.lobby_notes.append(
            LobbyNote(
                id=uuid.uuid4().hex,
                user_key=author.user_key,
                name=author.name,
                color=author.color,
                text=body,
                created_at_ms=now_ms(),
            )
        )
        if len(room.lobby_notes) > Config.LOBBY_MAX_NOTES:
            room.lobby_notes = room.lobby_notes[-Config.LOBBY_MAX_NOTES:]
        return snapshot_emits(room)


def delete_note(room: Room, sid: str, note_id: Any) -> list[Emit]:
    with transaction(room):
        requester = room.member_by_sid(sid)
        if requester is None:
            return []
        for i, note in enumerate(room.lobby_notes):
            if note.id == note_id and note.user_key == requester.user_key:
                del room.lobby_notes[i]
                return snapshot_emits(room)
        return []
