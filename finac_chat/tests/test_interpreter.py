from finac_chat.domain.events import Completed, ContentDelta, Malformed, SessionAssigned
from finac_chat.stream.interpreter import EventInterpreter


def test_content_delta():
    assert EventInterpreter().interpret('{"content": "Hi"}') == [ContentDelta(text="Hi")]


def test_session_assigned_only_once():
    interp = EventInterpreter()
    assert interp.interpret('{"chatId": "c1"}') == [SessionAssigned(session_id="c1")]
    assert interp.interpret('{"chatId": "c2", "content": "x"}') == [ContentDelta(text="x")]
    assert interp.session_id == "c1"


def test_existing_session_is_never_overwritten():
    interp = EventInterpreter(session_id="c0")
    assert interp.interpret('{"chatId": "c9"}') == []
    assert interp.session_id == "c0"


def test_completion_takes_precedence_over_content():
    events = EventInterpreter(session_id="c1").interpret('{"content": "final", "done": true}')
    assert events == [Completed()]


def test_done_frame_with_chat_id_for_new_session():
    events = EventInterpreter().interpret('{"done": true, "chatId": "c1", "content": "x", "responseType": "TEXT"}')
    assert events == [SessionAssigned(session_id="c1"), Completed()]


def test_server_error_is_kept_on_completed():
    events = EventInterpreter(session_id="c1").interpret('{"done": true, "error": "boom"}')
    assert events == [Completed(error="boom")]


def test_structurally_valid_but_empty_frames_are_dropped():
    interp = EventInterpreter()
    assert interp.interpret("{}") == []
    assert interp.interpret('{"content": ""}') == []
    assert interp.interpret('{"done": false}') == []
    assert interp.interpret('{"table": {"rows": []}}') == []


def test_invalid_payloads_are_malformed():
    interp = EventInterpreter()
    for raw in ["{not json", "[DONE]", '"text"', "[1, 2]", '{"done": "yes"}', '{"content": 5}']:
        events = interp.interpret(raw)
        assert len(events) == 1
        assert isinstance(events[0], Malformed)
        assert events[0].raw == raw


def test_malformed_frame_between_valid_frames():
    interp = EventInterpreter()
    events = []
    for raw in ['{"chatId": "c1"}', "{oops", '{"content": "Hi"}']:
        events.extend(interp.interpret(raw))
    useful = [e for e in events if not isinstance(e, Malformed)]
    assert useful == [SessionAssigned(session_id="c1"), ContentDelta(text="Hi")]
