import pytest
from pydantic import ValidationError

from ugc_storyboard.core.errors import FrameNotFoundError, RequestValidationError
from ugc_storyboard.core.models import (
    GenerationRequest,
    StoryboardFrame,
    StoryboardPlan,
    StoryboardResult,
    resolve_aspect_ratio,
)


def test_aspect_ratio_lookup_is_fixed():
    square = resolve_aspect_ratio("1:1")
    assert (square.width, square.height) == (1080, 1080)
    assert square.orientation == "square"
    assert square.api_size == "1024x1024"
    assert resolve_aspect_ratio("1:1") == square

    assert resolve_aspect_ratio("9:16").resolution == "1080x1920"
    assert resolve_aspect_ratio("16:9").resolution == "1920x1080"


@pytest.mark.parametrize("ratio", ["4:5", "", "21:9", "square"])
def test_unsupported_aspect_ratio_raises(ratio):
    with pytest.raises(RequestValidationError):
        resolve_aspect_ratio(ratio)


def test_reference_images_follow_upload_mode(make_request):
    separate = make_request(model_image="data:image/png;base64,AAA", product_image="data:image/png;base64,BBB",
                            combined_image="data:image/png;base64,CCC")
    assert separate.reference_images() == ["data:image/png;base64,AAA", "data:image/png;base64,BBB"]

    combined = separate.model_copy(update={"upload_mode": "combined"})
    assert combined.reference_images() == ["data:image/png;base64,CCC"]

    assert make_request().reference_images() == []


def test_request_is_immutable_and_bounded(make_request):
    request = make_request()
    with pytest.raises(ValidationError):
        request.frame_count = 5
    with pytest.raises(ValidationError):
        make_request(frame_count=11)
    with pytest.raises(ValidationError):
        make_request(frame_count=0)


def test_request_accepts_camel_case_payload():
    request = GenerationRequest.model_validate({
        "productUrl": "https://shop.test",
        "targetAudience": "Gen Z",
        "styleConcept": "Lucu",
        "frameCount": 2,
        "aspectRatio": "16:9",
        "uploadMode": "combined",
        "musicStyle": "chill"
    })
    assert request.frame_count == 2
    assert request.include_music
    assert request.to_json_dict()["aspectRatio"] == "16:9"


def _result():
    frames = [
        StoryboardFrame(id=i, image_url=f"https://img.test/{i}.png", script=f"s{i}",
                        camera_angle="POV", scene_description=f"d{i}")
        for i in (1, 2, 3)
    ]
    return StoryboardResult(hook="h", full_script="f", music_prompt=None, frames=frames)


def test_with_frame_image_replaces_only_target():
    before = _result()
    after = before.with_frame_image(2, "https://img.test/new.png")

    assert after.frames[1].image_url == "https://img.test/new.png"
    assert after.frames[0] == before.frames[0]
    assert after.frames[2] == before.frames[2]
    assert before.frames[1].image_url == "https://img.test/2.png"

    with pytest.raises(FrameNotFoundError):
        before.with_frame_image(9, "x")


def test_with_text_keeps_frames():
    before = _result()
    plan = StoryboardPlan(hook="new", full_script="new script", music_prompt="lofi", frames=[])
    after = before.with_text(plan)

    assert (after.hook, after.full_script, after.music_prompt) == ("new", "new script", "lofi")
    assert after.frames == before.frames
