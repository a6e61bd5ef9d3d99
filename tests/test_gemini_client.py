import json
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors

from ugc_storyboard.clients import GeminiBackend
from ugc_storyboard.clients.client_gemini import translate_api_error
from ugc_storyboard.core.errors import (
    AuthenticationError,
    MissingAssetError,
    MissingCredentialError,
    UpstreamError,
)
from ugc_storyboard.core.workflow import generate_storyboard

from .conftest import make_plan, png_bytes


class FakeModels:
    """Stands in for client.aio.models; serves scripted responses or errors"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _backend(*outcomes):
    models = FakeModels(outcomes)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiBackend(client=client, retry_delay=0), models


def _image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _api_error(code, message, status):
    return errors.ClientError(code, {"error": {"code": code, "message": message, "status": status}})


async def test_plan_uses_json_mode_and_schema():
    backend, models = _backend(SimpleNamespace(text='{"hook": "x"}'))

    text = await backend.generate_plan_json("rencana", schema={"type": "OBJECT"})

    assert text == '{"hook": "x"}'
    config = models.calls[0]["config"]
    assert config.response_mime_type == "application/json"
    assert config.response_schema is not None
    assert models.calls[0]["model"] == backend.text_model
    assert models.calls[0]["contents"] == ["rencana"]


async def test_empty_plan_text_is_upstream_error():
    backend, _ = _backend(SimpleNamespace(text=None))
    with pytest.raises(UpstreamError):
        await backend.generate_plan_json("rencana")


async def test_image_returns_inline_data_as_data_url():
    image = png_bytes()
    backend, models = _backend(_image_response(
        SimpleNamespace(thought=True, inline_data=None),
        SimpleNamespace(thought=False, inline_data=SimpleNamespace(data=image, mime_type="image/png"))
    ))

    result = await backend.generate_image(
        "frame", "9:16", ["data:image/png;base64,QUJD", "https://cdn.test/skipped.png"]
    )

    assert result.startswith("data:image/png;base64,")
    call = models.calls[0]
    assert call["config"].response_modalities == ["IMAGE"]
    assert call["config"].image_config.aspect_ratio == "9:16"
    # One inline reference part plus the prompt; the URL reference is skipped
    assert len(call["contents"]) == 2
    assert call["contents"][-1] == "frame"


async def test_image_response_without_image():
    backend, _ = _backend(_image_response(SimpleNamespace(thought=False, inline_data=None)))
    with pytest.raises(MissingAssetError):
        await backend.generate_image("frame", "1:1")


async def test_invalid_key_is_authentication_error():
    backend, models = _backend(_api_error(400, "API key not valid. Please pass a valid API key.", "INVALID_ARGUMENT"))

    with pytest.raises(AuthenticationError):
        await backend.generate_plan_json("rencana")
    assert len(models.calls) == 1


async def test_server_error_is_retried():
    backend, models = _backend(
        errors.ServerError(503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}}),
        SimpleNamespace(text="{}")
    )

    assert await backend.generate_plan_json("rencana") == "{}"
    assert len(models.calls) == 2


async def test_transport_error_is_retried():
    backend, models = _backend(httpx.ConnectError("connection refused"), SimpleNamespace(text="{}"))

    assert await backend.generate_plan_json("rencana") == "{}"
    assert len(models.calls) == 2


async def test_transport_error_becomes_upstream_error():
    backend, models = _backend(*[httpx.ReadTimeout("timed out")] * 3)

    with pytest.raises(UpstreamError) as excinfo:
        await backend.generate_image("frame", "1:1")
    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)
    assert len(models.calls) == 3


async def test_frame_transport_failure_becomes_placeholder(make_request):
    image_part = SimpleNamespace(thought=False, inline_data=SimpleNamespace(data=png_bytes(), mime_type="image/png"))
    backend, models = _backend(
        SimpleNamespace(text=json.dumps(make_plan(3))),
        _image_response(image_part),
        *[httpx.ConnectError("connection refused")] * 3,
        _image_response(image_part)
    )

    result = await generate_storyboard(make_request(frame_count=3), backend)

    assert [frame.placeholder for frame in result.frames] == [False, True, False]
    assert result.frames[2].image_url.startswith("data:image/png;base64,")
    assert len(models.calls) == 6


def test_translate_api_error():
    assert isinstance(translate_api_error(_api_error(403, "denied", "PERMISSION_DENIED")), AuthenticationError)

    error = translate_api_error(_api_error(429, "quota", "RESOURCE_EXHAUSTED"))
    assert isinstance(error, UpstreamError)
    assert error.status_code == 429
    assert error.retryable


def test_missing_key_without_client():
    with pytest.raises(MissingCredentialError):
        GeminiBackend(api_key=None)
