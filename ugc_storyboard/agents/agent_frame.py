"""
Frame agent: one image generation call per planned frame

Failures raise; the orchestrator decides whether a failure becomes a
placeholder (full run) or reaches the caller (single-frame regeneration).
"""

import logging
import time
from typing import List, Optional

from ..clients.base import GenerationBackend
from ..core.config import ENABLE_ASPECT_RATIO_CORRECTION
from ..core.errors import MissingAssetError
from ..core.models import GenerationRequest
from ..prompts import get_frame_prompt
from .agent_plan import is_sentinel_frame
from .base import format_time
from .util_image import correct_data_url_aspect_ratio

logger = logging.getLogger(__name__)


async def render_frame(
    frame,
    request: GenerationRequest,
    backend: GenerationBackend,
    reference_images: Optional[List[str]] = None,
    chained: bool = False,
    frame_id: Optional[int] = None
) -> str:
    """
    Render one storyboard frame.

    Args:
        frame: FramePlan or StoryboardFrame (scene description + camera angle)
        request: Originating GenerationRequest
        backend: Generation backend for the image call
        reference_images: Images to attach; defaults to the request's references
        chained: Whether the last reference image is the previous frame
        frame_id: Frame id for log messages

    Returns:
        Data URL or external URL of the rendered image

    Raises:
        MissingAssetError: Sentinel frame, or no image in the response
        AuthenticationError / UpstreamError: From the backend
    """
    label = f"Frame {frame_id}" if frame_id is not None else "Frame"

    if is_sentinel_frame(frame):
        raise MissingAssetError(f"{label} has no scene description to render")

    if reference_images is None:
        reference_images = request.reference_images()

    if reference_images and not backend.supports_reference_images:
        logger.info(f"[Frame Agent] {backend.name} cannot take reference images, rendering {label} from text only")
        reference_images = []

    prompt = get_frame_prompt(
        frame,
        request,
        has_reference_images=bool(reference_images),
        chained=chained and bool(reference_images)
    )

    start_time = time.time()
    logger.info(f"[Frame Agent] Rendering {label} ({frame.camera_angle}, {request.aspect_ratio})")
    image_url = await backend.generate_image(prompt, request.aspect_ratio, reference_images)

    if not image_url:
        raise MissingAssetError(f"{label}: backend returned no image")

    if ENABLE_ASPECT_RATIO_CORRECTION:
        image_url = correct_data_url_aspect_ratio(image_url, request.aspect_ratio)

    logger.info(f"[Frame Agent] {label} rendered in {format_time(time.time() - start_time)}")
    return image_url
