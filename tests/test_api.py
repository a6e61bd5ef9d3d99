import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ugc_storyboard.api.main import create_app

IMAGE_RESPONSE = {
    "choices": [{"message": {"content": "", "images": [{"image_url": {"url": "data:image/png;base64,QUJD"}}]}}]
}


@pytest.fixture
def upstream():
    """Scripted upstream: records requests and replies with the queued responses"""

    class Upstream:
        def __init__(self):
            self.requests = []
            self.responses = []

        def __call__(self, request):
            self.requests.append(request)
            response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
            if isinstance(response, Exception):
                raise response
            return response

    return Upstream()


@pytest.fixture
def client(upstream):
    app = create_app(api_key="sk-server", upstream_base="https://upstream.test/v1", transport=httpx.MockTransport(upstream))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_chat_completions_forwards_body_and_injects_key(client, upstream):
    upstream.responses = [httpx.Response(200, json={"id": "gen-1"})]
    body = {"model": "m", "messages": [{"role": "user", "content": "hi"}]}

    response = client.post("/api/chat/completions", json=body)

    assert response.status_code == 200
    assert response.json() == {"id": "gen-1"}
    forwarded = upstream.requests[0]
    assert str(forwarded.url) == "https://upstream.test/v1/chat/completions"
    assert forwarded.headers["Authorization"] == "Bearer sk-server"
    assert json.loads(forwarded.content) == body


def test_chat_completions_relays_upstream_errors(client, upstream):
    upstream.responses = [httpx.Response(402, json={"error": {"message": "Insufficient credits"}})]

    response = client.post("/api/chat/completions", json={"model": "m"})

    assert response.status_code == 402
    assert response.json() == {"error": {"message": "Insufficient credits"}}


def test_chat_completions_transport_failure(client, upstream):
    upstream.responses = [httpx.ConnectError("down")]

    response = client.post("/api/chat/completions", json={"model": "m"})

    assert response.status_code == 500
    assert response.json() == {"error": "Proxy error"}


def test_missing_server_key():
    app = create_app(api_key=None, transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with TestClient(app) as test_client:
        response = test_client.post("/api/generate-image", json={"prompt": "a cat"})
    assert response.status_code == 500
    assert response.json() == {"error": "OPENROUTER_API_KEY is not configured"}


def test_generate_image(client, upstream):
    upstream.responses = [httpx.Response(200, json=IMAGE_RESPONSE)]

    response = client.post("/api/generate-image", json={
        "prompt": "frame one",
        "aspectRatio": "1:1",
        "seed": 7,
        "imageRef": "QUJD"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["image"] == "data:image/png;base64,QUJD"
    assert data["meta"]["aspectRatio"] == "1:1"
    assert data["meta"]["seed"] == 7

    body = json.loads(upstream.requests[0].content)
    assert body["seed"] == 7
    assert body["image_config"] == {"aspect_ratio": "1:1"}
    assert body["messages"][0]["content"][1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,QUJD"}}


@pytest.mark.parametrize("payload", [{}, {"prompt": ""}, {"prompt": 42}])
def test_generate_image_requires_prompt(client, payload):
    response = client.post("/api/generate-image", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "prompt is required (string)"}


def test_generate_image_without_image_is_502(client, upstream):
    upstream.responses = [httpx.Response(200, json={"choices": [{"message": {"content": "no"}}]})]

    response = client.post("/api/generate-image", json={"prompt": "frame"})

    assert response.status_code == 502
    assert response.json()["error"] == "No image returned by model"


def test_generate_image_relays_upstream_status(client, upstream):
    upstream.responses = [httpx.Response(429, json={"error": {"message": "Rate limited"}})]

    response = client.post("/api/generate-image", json={"prompt": "frame"})

    assert response.status_code == 429
    assert response.json()["error"] == "Rate limited"


def test_generate_sequence_chains_images(client, upstream):
    upstream.responses = [
        httpx.Response(200, json={"data": [{"url": "https://cdn.test/1.png"}]}),
        httpx.Response(200, json={"data": [{"url": "https://cdn.test/2.png"}]})
    ]

    response = client.post("/api/generate-sequence", json={
        "prompts": ["one", "two"],
        "aspectRatio": "16:9",
        "firstImageRef": "https://cdn.test/start.png"
    })

    assert response.status_code == 200
    data = response.json()
    assert [frame["image"] for frame in data["frames"]] == ["https://cdn.test/1.png", "https://cdn.test/2.png"]
    assert [frame["index"] for frame in data["frames"]] == [0, 1]
    assert data["aspectRatio"] == "16:9"
    assert "seed" not in data

    references = [json.loads(request.content)["messages"][0]["content"][1]["image_url"]["url"] for request in upstream.requests]
    assert references == ["https://cdn.test/start.png", "https://cdn.test/1.png"]


def test_generate_sequence_stops_at_failed_step(client, upstream):
    upstream.responses = [
        httpx.Response(200, json=IMAGE_RESPONSE),
        httpx.Response(500, json={"error": {"message": "boom"}})
    ]

    response = client.post("/api/generate-sequence", json={"prompts": ["one", "two", "three"]})

    assert response.status_code == 500
    assert response.json()["step"] == 1
    assert len(upstream.requests) == 2


@pytest.mark.parametrize("payload", [{}, {"prompts": []}, {"prompts": ["ok", 3]}])
def test_generate_sequence_validates_prompts(client, payload):
    response = client.post("/api/generate-sequence", json=payload)
    assert response.status_code == 400
