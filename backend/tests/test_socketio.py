from partyroom.game import service


def _events(sio, name):
    return [pkt["args"] for pkt in sio.get_received() if pkt["name"] == name]


def _join(sio, user_key, name, pin="1234", room_id="R1"):
    return sio.emit(
        "JOIN_ROOM",
        {"roomId": room_id, "pin": pin, "name": name, "color": "#00ff00", "userKey": user_key},
        callback=True,
    )


def _pair(connect):
    a, b = connect(), connect()
    assert _join(a, "a", "Alice") == {"ok": True}
    assert _join(b, "b", "Bob") == {"ok": True}
    return a, b


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json() == {"ok": True}
    assert client.get("/api/health").get_json() == {"ok": True}


def test_join_assigns_word_to_drawer_only(connect):
    a, b = _pair(connect)

    a_events = a.get_received()
    b_events = b.get_received()
    words = [p["args"][0]["word"] for p in a_events if p["name"] == "ASSIGN_WORD"]
    assert words == [service.get_room("R1").game.current_word]
    assert not [p for p in b_events if p["name"] == "ASSIGN_WORD"]

    b_states = [p["args"][0] for p in b_events if p["name"] == "ROOM_STATE"]
    assert b_states[-1]["game"]["drawerUserKey"] == "a"
    assert b_states[-1]["game"]["guesserUserKey"] == "b"
    assert "currentWord" not in b_states[-1]["game"]


def test_wrong_pin_gets_join_error(connect):
    a, b = connect(), connect()
    _join(a, "a", "Alice")
    ack = _join(b, "b", "Bob", pin="9999")
    assert ack["ok"] is False
    assert ack["error"] == "invalid_pin"
    errors = _events(b, "JOIN_ERROR")
    assert errors[0][0]["code"] == "invalid_pin"


def test_invalid_join_payload(connect):
    a = connect()
    ack = a.emit("JOIN_ROOM", {"roomId": "R1", "name": "<script>", "userKey": "a"}, callback=True)
    assert ack["error"] == "invalid_payload"
    assert service.get_room("R1") is None


def test_create_room_twice_is_rejected(connect):
    a, b = connect(), connect()
    payload = {"roomId": "R9", "pin": "1", "name": "Alice", "userKey": "a"}
    assert a.emit("CREATE_ROOM", payload, callback=True) == {"ok": True}
    ack = b.emit("CREATE_ROOM", dict(payload, userKey="b", name="Bob"), callback=True)
    assert ack["error"] == "room_exists"


def test_draw_is_relayed_to_others_only(connect):
    a, b = _pair(connect)
    a.get_received()
    b.get_received()

    stroke = {"x0": 0, "y0": 0, "x1": 5, "y1": 5, "color": "#000", "width": 3}
    a.emit("DRAW", {"roomId": "R1", "stroke": stroke})

    assert _events(b, "DRAW") == [[stroke]]
    assert _events(a, "DRAW") == []


def test_correct_guess_over_socket(connect):
    a, b = _pair(connect)
    word = service.get_room("R1").game.current_word
    a.get_received()
    b.get_received()

    b.emit("GUESS", {"roomId": "R1", "guess": word.upper()})

    a_events = a.get_received()
    b_events = b.get_received()
    result = [p["args"][0] for p in a_events if p["name"] == "ROUND_RESULT"]
    assert result[0]["scorerUserKey"] == "b"
    assert result[0]["scorerPoints"] == 1
    assert [p for p in b_events if p["name"] == "ASSIGN_WORD"]
    assert not [p for p in a_events if p["name"] == "ASSIGN_WORD"]
    assert [p for p in a_events if p["name"] == "CLEAR_CANVAS"]


def test_wrong_guess_notice_goes_to_guesser_only(connect):
    a, b = _pair(connect)
    a.get_received()
    b.get_received()

    b.emit("GUESS", {"roomId": "R1", "guess": "zzz-not-a-word"})

    assert _events(b, "WRONG_GUESS")[0][0]["count"] == 1
    assert _events(a, "WRONG_GUESS") == []


def test_set_draw_word_error_for_guesser(connect):
    a, b = _pair(connect)
    b.get_received()
    ack = b.emit("SET_DRAW_WORD", {"roomId": "R1", "word": "cheat"}, callback=True)
    assert ack["error"] == "word_rejected"
    assert _events(b, "WORD_ERROR")


def test_wheel_turn_denied_event(connect):
    a, b = _pair(connect)
    a.emit("SET_ACTIVE_GAME", {"roomId": "R1", "game": "WHEEL"})
    b.emit("SET_ACTIVE_GAME", {"roomId": "R1", "game": "WHEEL"})
    b.get_received()

    b.emit("SPIN_WHEEL", {"roomId": "R1"})
    assert _events(b, "WHEEL_TURN_DENIED")

    a.emit("SPIN_WHEEL", {"roomId": "R1"})
    result = _events(b, "WHEEL_RESULT")
    assert result[0][0]["spinnerUserKey"] == "a"


def test_music_control_without_host(connect):
    a, b = _pair(connect)
    ack = b.emit("MUSIC_CONTROL_REQUEST", {"roomId": "R1", "action": "PLAY"}, callback=True)
    assert ack["ok"] is False
    assert ack["error"] == "host_not_ready"


def test_music_host_flow(connect, provider):
    a, b = _pair(connect)
    assert a.emit("CLAIM_MUSIC_HOST", {"roomId": "R1"}, callback=True) == {"ok": True}

    b.get_received()
    ack = b.emit("CLAIM_MUSIC_HOST", {"roomId": "R1"}, callback=True)
    assert ack["error"] == "host_taken"
    assert _events(b, "MUSIC_ERROR")[0][0]["code"] == "host_taken"

    session = {"accessToken": "tok", "refreshToken": "ref", "expiresAt": service.now_ms() + 3_600_000}
    a.emit("SPOTIFY_HOST_SESSION_UPDATE", {"roomId": "R1", "clientId": "cid", "session": session}, callback=True)
    a.emit("SPOTIFY_HOST_DEVICE_UPDATE", {"roomId": "R1", "deviceId": "dev"}, callback=True)

    ack = b.emit("MUSIC_CONTROL_REQUEST", {"roomId": "R1", "action": "CURRENT_TRACK"}, callback=True)
    assert ack["ok"] is True
    assert ack["data"]["track"]["name"] == "Song"
    assert provider.calls == [("current_track", "tok")]

    a.disconnect()
    states = _events(b, "ROOM_STATE")
    music_state = states[-1][0]["music"]
    assert music_state["hostUserKey"] == "a"
    assert music_state["hasHostSession"] is False
    assert music_state["hostDeviceId"] is None


def test_lobby_notes_over_socket(connect):
    a, b = _pair(connect)
    a.emit("ADD_LOBBY_NOTE", {"roomId": "R1", "text": "hello"})
    notes = _events(b, "ROOM_STATE")[-1][0]["lobbyNotes"]
    assert [n["text"] for n in notes] == ["hello"]

    b.emit("DELETE_LOBBY_NOTE", {"roomId": "R1", "noteId": notes[0]["id"]})
    assert len(service.get_room("R1").lobby_notes) == 1


def test_disconnect_marks_member_disconnected(connect):
    a, b = _pair(connect)
    a.get_received()

    b.disconnect()

    state = _events(a, "ROOM_STATE")[-1][0]
    users = {u["userKey"]: u for u in state["users"]}
    assert users["b"]["status"] == "DISCONNECTED"
    assert users["b"]["connected"] is False
    assert state["game"]["guesserUserKey"] == "b"


def test_events_for_unknown_room_are_ignored(connect):
    a = connect()
    a.emit("GUESS", {"roomId": "missing", "guess": "x"})
    a.emit("SPIN_WHEEL", {})
    assert a.get_received() == []
