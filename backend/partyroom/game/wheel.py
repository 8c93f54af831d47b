from __future__ import annotations

import logging
import random
from typing import Any

from ..config import Config
from ..realtime import events as ev
from ..realtime.events import Emit
from .errors import WheelTurnDenied
from .models import Room
from .service import snapshot_emits, sync_wheel_turn, transaction, wheel_eligible


logger = logging.getLogger(__name__)


def normalize_options(options: Any) -> list[str]:
    """Trim, bound, and case-insensitively dedupe, keeping first-seen order."""
    if not isinstance(options, (list, tuple)):
        return []
    seen: set[str] = set()
    result: list[str] = []
    for raw in options:
        value = str(raw if raw is not None else "").strip()[: Config.WHEEL_OPTION_MAX_LENGTH]
        if not value:
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
        if len(result) >= Config.WHEEL_MAX_OPTIONS:
            break
    return result


def set_options(room: Room, sid: str, options: Any) -> list[Emit]:
    next_options = normalize_options(options)
    if not next_options:
        return []
    with transaction(room):
        if room.member_by_sid(sid) is None:
            return []
        room.game.wheel_options = next_options
        return snapshot_emits(room)


def spin(room: Room, sid: str) -> list[Emit]:
    with transaction(room):
        spinner = room.member_by_sid(sid)
        if spinner is None or spinner.current_game != "WHEEL":
            return []

        sync_wheel_turn(room)
        if room.game.wheel_turn_user_key != spinner.user_key:
            raise WheelTurnDenied("Wait for your turn to spin.")

        options = normalize_options(room.game.wheel_options)
        if not options:
            return []
        room.game.wheel_options = options

        index = random.randrange(len(options))
        prompt = options[index]

        others = [m for m in wheel_eligible(room) if m.user_key != spinner.user_key]
        room.game.wheel_turn_user_key = others[0].user_key if others else spinner.user_key

        logger.debug("room %s: %s spun index %d", room.room_id, spinner.user_key, index)
        emits = [
            Emit(
                ev.WHEEL_RESULT,
                {"prompt": prompt, "winnerIndex": index, "spinnerUserKey": spinner.user_key},
                to=room.room_id,
            )
        ]
        emits.extend(snapshot_emits(room))
        return emits
