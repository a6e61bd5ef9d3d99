import json
from io import BytesIO

import pytest
from PIL import Image

from ugc_storyboard.clients.base import GenerationBackend
from ugc_storyboard.core.models import GenerationRequest


def make_plan(frame_count, music_prompt=None, product_only_index=None, hook="Kulit kusam?", full_script="Naskah lengkap"):
    frames = []
    for i in range(1, frame_count + 1):
        frames.append({
            "sceneDescription": f"Model memakai serum di adegan {i}",
            "cameraAngle": "eye-level",
            "script": f"Baris {i}",
            "productOnly": i == product_only_index
        })
    plan = {"hook": hook, "fullScript": full_script, "frames": frames}
    if music_prompt is not None:
        plan["musicPrompt"] = music_prompt
    return plan


def png_bytes(width=90, height=160, color=(200, 30, 30)):
    output = BytesIO()
    Image.new("RGB", (width, height), color).save(output, format="PNG")
    return output.getvalue()


class StubBackend(GenerationBackend):
    """Scripted backend: plans are served in order, images count up per call"""

    name = "stub"
    schema_dialect = "gemini"

    def __init__(self, plans=None, image_failures=None, supports_reference_images=True, plan_error=None):
        self.plans = list(plans or [])
        self.image_failures = dict(image_failures or {})
        self.supports_reference_images = supports_reference_images
        self.plan_error = plan_error
        self.plan_calls = []
        self.image_calls = []
        self.closed = False

    async def generate_plan_json(self, prompt, reference_images=None, schema=None):
        self.plan_calls.append({"prompt": prompt, "reference_images": reference_images, "schema": schema})
        if self.plan_error is not None:
            raise self.plan_error
        plan = self.plans.pop(0) if len(self.plans) > 1 else self.plans[0]
        return plan if isinstance(plan, str) else json.dumps(plan)

    async def generate_image(self, prompt, aspect_ratio, reference_images=None):
        self.image_calls.append({"prompt": prompt, "aspect_ratio": aspect_ratio, "reference_images": reference_images})
        call_number = len(self.image_calls)
        if call_number in self.image_failures:
            raise self.image_failures[call_number]
        return f"https://img.test/frame-{call_number}.png"

    async def aclose(self):
        self.closed = True


@pytest.fixture
def make_request():
    def factory(**overrides):
        fields = {
            "product_url": "https://shop.test/serum",
            "target_audience": "Wanita 20-30 tahun",
            "style_concept": "Rutinitas pagi yang santai",
            "frame_count": 3,
            "aspect_ratio": "1:1",
            "upload_mode": "separate",
            "music_style": None
        }
        fields.update(overrides)
        return GenerationRequest(**fields)
    return factory
