"""Data model for storyboard generation

All records are immutable pydantic models. They serialize with camelCase
aliases (productUrl, imageUrl, ...) and accept camelCase or snake_case input.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import ASPECT_RATIOS, MAX_FRAMES, MIN_FRAMES
from .errors import FrameNotFoundError, RequestValidationError

AspectRatio = Literal["9:16", "1:1", "16:9"]
UploadMode = Literal["separate", "combined"]
MusicStyle = Literal["chill", "upbeat", "cinematic", "energetic"]


class StoryboardModel(BaseModel):
    """Shared configuration for all storyboard records"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )

    def to_json_dict(self) -> dict:
        """Dump with camelCase keys, the shape clients consume"""
        return self.model_dump(by_alias=True, mode="json")


class AspectSpec(StoryboardModel):
    """Resolved output geometry for one aspect ratio"""

    ratio: str
    width: int
    height: int
    orientation: str
    description: str
    api_size: str

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def value(self) -> float:
        return self.width / self.height


def resolve_aspect_ratio(ratio: str) -> AspectSpec:
    """
    Look up the fixed output geometry for an aspect ratio.

    Args:
        ratio: One of "9:16", "1:1", "16:9"

    Returns:
        AspectSpec with canonical resolution and orientation directive

    Raises:
        RequestValidationError: If the ratio is not supported
    """
    entry = ASPECT_RATIOS.get(ratio)
    if entry is None:
        raise RequestValidationError(
            f"Unsupported aspect ratio '{ratio}'. Must be one of {list(ASPECT_RATIOS)}"
        )
    return AspectSpec(ratio=ratio, **entry)


class GenerationRequest(StoryboardModel):
    """Canonical request record, cached verbatim for later regeneration"""

    product_url: str = ""
    target_audience: str = ""
    style_concept: str = ""
    frame_count: int = Field(ge=MIN_FRAMES, le=MAX_FRAMES)
    aspect_ratio: AspectRatio = "9:16"
    upload_mode: UploadMode = "separate"
    model_image: Optional[str] = None
    product_image: Optional[str] = None
    combined_image: Optional[str] = None
    music_style: Optional[MusicStyle] = None

    @field_validator("music_style", mode="before")
    @classmethod
    def _blank_music_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("model_image", "product_image", "combined_image")
    @classmethod
    def _must_be_data_url(cls, value):
        if value is not None and not value.startswith("data:"):
            raise ValueError("images must be base64 data URLs")
        return value

    @property
    def include_music(self) -> bool:
        return self.music_style is not None

    @property
    def aspect(self) -> AspectSpec:
        return resolve_aspect_ratio(self.aspect_ratio)

    def reference_images(self) -> List[str]:
        """Return the data URLs that apply to the request's upload mode, in order"""
        if self.upload_mode == "combined":
            candidates = [self.combined_image]
        else:
            candidates = [self.model_image, self.product_image]
        return [image for image in candidates if image]


class FramePlan(StoryboardModel):
    """One planned frame, produced by the Plan Generator"""

    scene_description: str
    camera_angle: str
    script: str
    product_only: bool = False


class StoryboardPlan(StoryboardModel):
    """Text-only blueprint produced before any images are rendered"""

    hook: str
    full_script: str
    music_prompt: Optional[str] = None
    frames: List[FramePlan]


class StoryboardFrame(StoryboardModel):
    """One rendered frame; scene description is kept for later regeneration"""

    id: int
    image_url: str
    script: str
    camera_angle: str
    scene_description: str
    placeholder: bool = False


class StoryboardResult(StoryboardModel):
    """Assembled storyboard owned by the caller"""

    hook: str
    full_script: str
    music_prompt: Optional[str] = None
    frames: List[StoryboardFrame]

    def get_frame(self, frame_id: int) -> StoryboardFrame:
        for frame in self.frames:
            if frame.id == frame_id:
                return frame
        raise FrameNotFoundError(f"Frame {frame_id} not found")

    def with_text(self, plan: StoryboardPlan) -> "StoryboardResult":
        """Return a copy with hook, script and music prompt taken from a new plan"""
        return self.model_copy(update={
            "hook": plan.hook,
            "full_script": plan.full_script,
            "music_prompt": plan.music_prompt
        })

    def with_frame_image(self, frame_id: int, image_url: str) -> "StoryboardResult":
        """Return a copy where only the given frame's image is replaced"""
        target = self.get_frame(frame_id)
        updated = target.model_copy(update={"image_url": image_url, "placeholder": False})
        frames = [updated if frame.id == frame_id else frame for frame in self.frames]
        return self.model_copy(update={"frames": frames})
