"""
Plan agent: one text generation call producing the storyboard plan

Builds the rules-laden director prompt, calls the backend with the plan
schema and validates the JSON into a StoryboardPlan.
"""

import json
import logging
import time
from typing import Optional

from ..clients.base import GenerationBackend
from ..core.config import (
    CAMERA_ANGLES,
    ENABLE_PLAN_RULE_CHECK,
    PLAN_RULE_MAX_ATTEMPTS,
    PRODUCT_ONLY_MIN_FRAMES,
    SENTINEL_CAMERA_ANGLE,
    SENTINEL_SCRIPT,
    STRICT_FRAME_COUNT,
)
from ..core.errors import MalformedPlanError
from ..core.models import FramePlan, GenerationRequest, StoryboardPlan
from ..prompts import get_plan_prompt
from ..schemas import get_schema
from .base import clean_json_response, format_time, summarize

logger = logging.getLogger(__name__)

REQUIRED_PLAN_FIELDS = ("hook", "fullScript", "frames")
REQUIRED_FRAME_FIELDS = ("sceneDescription", "cameraAngle", "script")

_CAMERA_ANGLE_LOOKUP = {angle.lower(): angle for angle in CAMERA_ANGLES}


def sentinel_frame() -> FramePlan:
    """Flagged filler for a frame the plan did not provide"""
    return FramePlan(
        scene_description="",
        camera_angle=SENTINEL_CAMERA_ANGLE,
        script=SENTINEL_SCRIPT
    )


def is_sentinel_frame(frame) -> bool:
    return not frame.scene_description and frame.script == SENTINEL_SCRIPT


def normalize_camera_angle(camera_angle: str) -> str:
    """Map case variants onto the fixed vocabulary; unknown angles are kept as-is"""
    cleaned = camera_angle.strip()
    known = _CAMERA_ANGLE_LOOKUP.get(cleaned.lower())
    if known is None:
        logger.warning(f"[Plan Agent] Camera angle '{cleaned}' is outside the known vocabulary, keeping it")
        return cleaned
    return known


def _require_text(container: dict, field: str, context: str) -> str:
    value = container.get(field)
    if not isinstance(value, str) or not value.strip():
        raise MalformedPlanError(f"{context} is missing required field '{field}'")
    return value.strip()


def parse_plan(
    response_text: str,
    request: GenerationRequest,
    strict_frame_count: bool = STRICT_FRAME_COUNT
) -> StoryboardPlan:
    """
    Parse and validate raw plan JSON.

    Args:
        response_text: Raw model output, possibly wrapped in markdown fences
        request: Originating request (frame count, music flag)
        strict_frame_count: Reject a short plan instead of padding it

    Returns:
        Validated StoryboardPlan with exactly request.frame_count frames

    Raises:
        MalformedPlanError: If the output is not JSON, misses required fields,
            or has more frames than requested
    """
    try:
        data = json.loads(clean_json_response(response_text))
    except json.JSONDecodeError as e:
        raise MalformedPlanError(f"Plan is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedPlanError(f"Plan must be a JSON object, got {type(data).__name__}")

    hook = _require_text(data, "hook", "Plan")
    full_script = _require_text(data, "fullScript", "Plan")

    raw_frames = data.get("frames")
    if not isinstance(raw_frames, list) or not raw_frames:
        raise MalformedPlanError("Plan is missing required field 'frames'")

    frames = []
    for index, raw_frame in enumerate(raw_frames, start=1):
        context = f"Frame {index}"
        if not isinstance(raw_frame, dict):
            raise MalformedPlanError(f"{context} must be a JSON object")
        frames.append(FramePlan(
            scene_description=_require_text(raw_frame, "sceneDescription", context),
            camera_angle=normalize_camera_angle(_require_text(raw_frame, "cameraAngle", context)),
            script=_require_text(raw_frame, "script", context),
            product_only=raw_frame.get("productOnly") is True
        ))

    expected = request.frame_count
    if len(frames) > expected:
        raise MalformedPlanError(f"Plan has {len(frames)} frames, expected {expected}")
    if len(frames) < expected:
        if strict_frame_count:
            raise MalformedPlanError(f"Plan has {len(frames)} frames, expected {expected}")
        logger.warning(f"[Plan Agent] Plan has {len(frames)} frames, padding {expected - len(frames)} placeholder frame(s)")
        frames.extend(sentinel_frame() for _ in range(expected - len(frames)))

    music_prompt = None
    if request.include_music:
        raw_music = data.get("musicPrompt")
        if isinstance(raw_music, str) and raw_music.strip():
            music_prompt = raw_music.strip()
        else:
            logger.warning("[Plan Agent] Music was requested but the plan has no musicPrompt")

    return StoryboardPlan(
        hook=hook,
        full_script=full_script,
        music_prompt=music_prompt,
        frames=frames
    )


def check_product_only_rule(plan: StoryboardPlan, frame_count: int) -> Optional[str]:
    """
    Check the exactly-one product-only shot rule on a parsed plan.

    Returns:
        None when the plan complies, otherwise the reason it does not
    """
    if frame_count < PRODUCT_ONLY_MIN_FRAMES:
        return None

    flagged = sum(1 for frame in plan.frames if frame.product_only)
    if flagged == 1:
        return None
    return (
        f"The plan has {flagged} frames marked productOnly; exactly one product-only shot "
        f"is required for {frame_count} frames."
    )


async def generate_plan(
    request: GenerationRequest,
    backend: GenerationBackend,
    strict_frame_count: bool = STRICT_FRAME_COUNT,
    enforce_product_rule: bool = ENABLE_PLAN_RULE_CHECK,
    max_attempts: int = PLAN_RULE_MAX_ATTEMPTS
) -> StoryboardPlan:
    """
    Generate the storyboard plan for a request.

    Args:
        request: Validated GenerationRequest
        backend: Generation backend for the text call
        strict_frame_count: Reject short plans instead of padding them
        enforce_product_rule: Re-request plans that break the product-only rule
        max_attempts: Total attempts when enforce_product_rule is on

    Returns:
        StoryboardPlan with request.frame_count frames

    Raises:
        AuthenticationError: Credential rejected
        UpstreamError: Non-success response from the backend
        MalformedPlanError: Unparseable plan, too many frames, or rule check exhausted
    """
    start_time = time.time()
    schema = get_schema("storyboard_plan", backend.schema_dialect, include_music=request.include_music)
    reference_images = request.reference_images()

    attempts = max_attempts if enforce_product_rule else 1
    rejection_reason = None

    for attempt in range(1, attempts + 1):
        prompt = get_plan_prompt(
            request,
            json_only=not backend.enforces_response_schema,
            rejection_reason=rejection_reason
        )
        logger.info(
            f"[Plan Agent] Requesting plan from {backend.name} "
            f"(attempt {attempt}/{attempts}, {request.frame_count} frames)"
        )

        response_text = await backend.generate_plan_json(prompt, reference_images, schema)
        logger.debug(f"[Plan Agent] Raw plan: {summarize(response_text, 300)}")
        plan = parse_plan(response_text, request, strict_frame_count)

        if not enforce_product_rule:
            break

        rejection_reason = check_product_only_rule(plan, request.frame_count)
        if rejection_reason is None:
            break
        logger.warning(f"[Plan Agent] Plan rejected: {rejection_reason}")
    else:
        raise MalformedPlanError(f"Plan failed the product-only rule after {attempts} attempts: {rejection_reason}")

    logger.info(f"[Plan Agent] Plan ready with {len(plan.frames)} frames in {format_time(time.time() - start_time)}")
    return plan
