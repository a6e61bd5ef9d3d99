import httpx
import pytest
from fastapi.testclient import TestClient

from ugc_storyboard.api.main import create_app
from ugc_storyboard.core.errors import AuthenticationError
from ugc_storyboard.core.session import StoryboardSession

from .conftest import StubBackend, make_plan

REQUEST = {
    "productUrl": "https://shop.test/serum",
    "targetAudience": "Wanita 20-30 tahun",
    "styleConcept": "Rutinitas pagi",
    "frameCount": 2,
    "aspectRatio": "9:16",
    "uploadMode": "separate",
    "musicStyle": "chill"
}


def _client(backend, api_key="sk-user"):
    sessions = []

    def session_factory():
        session = StoryboardSession(api_key=api_key, backend_factory=lambda key: backend)
        sessions.append(session)
        return session

    app = create_app(
        api_key="sk-server",
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        session_factory=session_factory
    )
    return TestClient(app), sessions


def _receive_until(ws, event_type):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event["type"] == event_type:
            return events


def test_generate_streams_progress_then_result():
    client, _ = _client(StubBackend(plans=[make_plan(2, music_prompt="lofi beat")]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "generate", "request": REQUEST})
        events = _receive_until(ws, "storyboard_complete")

    progress = [event["data"] for event in events if event["type"] == "progress"]
    assert [item["current_step"] for item in progress] == [1, 2, 3]
    assert progress[-1]["percent"] == 100

    result = events[-1]["data"]["result"]
    assert result["musicPrompt"] == "lofi beat"
    assert [frame["id"] for frame in result["frames"]] == [1, 2]
    assert result["frames"][0]["imageUrl"] == "https://img.test/frame-1.png"


def test_regeneration_messages():
    client, _ = _client(StubBackend(plans=[make_plan(2), make_plan(2, hook="Hook baru")]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "generate", "request": REQUEST})
        _receive_until(ws, "storyboard_complete")

        ws.send_json({"type": "regenerate_frame", "frameId": 2})
        frame_event = ws.receive_json()

        ws.send_json({"type": "regenerate_text"})
        text_event = ws.receive_json()

    assert frame_event["type"] == "frame_regenerated"
    assert frame_event["data"]["frame"]["id"] == 2
    assert frame_event["data"]["frame"]["imageUrl"] == "https://img.test/frame-3.png"
    assert text_event["type"] == "text_regenerated"
    assert text_event["data"]["hook"] == "Hook baru"


def test_regenerate_before_generate_is_an_error():
    client, _ = _client(StubBackend(plans=[make_plan(2)]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "regenerate_text"})
        event = ws.receive_json()

    assert event["type"] == "error"
    assert event["data"]["code"] == "nothing_to_regenerate"


def test_unknown_frame_id():
    client, _ = _client(StubBackend(plans=[make_plan(2)]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "generate", "request": REQUEST})
        _receive_until(ws, "storyboard_complete")
        ws.send_json({"type": "regenerate_frame", "frameId": 9})
        event = ws.receive_json()

    assert event["data"]["code"] == "frame_not_found"


def test_invalid_request_reports_validation_error():
    client, _ = _client(StubBackend(plans=[make_plan(2)]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "generate", "request": {**REQUEST, "aspectRatio": "4:3"}})
        event = ws.receive_json()

    assert event["type"] == "error"
    assert event["data"]["code"] == "invalid_request"


def test_credential_flow():
    backend = StubBackend(plans=[make_plan(2)])
    client, sessions = _client(backend, api_key=None)

    with client, client.websocket_connect("/ws/storyboard") as ws:
        assert ws.receive_json()["type"] == "credential_required"

        ws.send_json({"type": "generate", "request": REQUEST})
        assert ws.receive_json()["data"]["code"] == "credential_required"
        assert ws.receive_json()["type"] == "credential_required"

        ws.send_json({"type": "set_credential", "apiKey": "sk-entered"})
        assert ws.receive_json()["type"] == "credential_accepted"

        ws.send_json({"type": "generate", "request": REQUEST})
        _receive_until(ws, "storyboard_complete")

    assert sessions[0].credentials.get() == "sk-entered"


def test_rejected_credential_asks_again():
    client, sessions = _client(StubBackend(plan_error=AuthenticationError("bad key")))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "generate", "request": REQUEST})
        events = _receive_until(ws, "credential_required")

    errors = [event for event in events if event["type"] == "error"]
    assert errors[0]["data"]["code"] == "authentication_failed"
    assert not sessions[0].credentials.is_set


@pytest.mark.parametrize("raw, code", [
    ("not json", "invalid_message"),
    ('{"no_type": true}', "invalid_message"),
    ('{"type": "dance"}', "unknown_message_type"),
    ('{"type": "regenerate_frame"}', "invalid_message"),
])
def test_bad_messages(raw, code):
    client, _ = _client(StubBackend(plans=[make_plan(2)]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_text(raw)
        event = ws.receive_json()

    assert event["type"] == "error"
    assert event["data"]["code"] == code


def test_ping_and_state():
    client, _ = _client(StubBackend(plans=[make_plan(2)]))

    with client, client.websocket_connect("/ws/storyboard") as ws:
        ws.send_json({"type": "ping"})
        pong = ws.receive_json()
        ws.send_json({"type": "get_state"})
        state = ws.receive_json()

    assert pong["type"] == "pong"
    assert state["type"] == "state"
    assert state["data"]["status"] == "idle"
    assert state["data"]["credential_set"] is True
