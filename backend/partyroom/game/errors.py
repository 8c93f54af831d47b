from __future__ import annotations


class RoomError(Exception):
    """Rejection surfaced to the caller as a named, point-to-point error."""

    code = "room_error"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_payload(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


class InvalidPin(RoomError):
    code = "invalid_pin"


class RoomFull(RoomError):
    code = "room_full"


class RoomExists(RoomError):
    code = "room_exists"


class NotAMember(RoomError):
    code = "not_in_room"


class WordRejected(RoomError):
    code = "word_rejected"


class WheelTurnDenied(RoomError):
    code = "not_your_turn"


class HostClaimRejected(RoomError):
    code = "host_taken"


class NotMusicHost(RoomError):
    code = "not_host"


class HostNotReady(RoomError):
    code = "host_not_ready"


class ProviderError(RoomError):
    code = "provider_error"
