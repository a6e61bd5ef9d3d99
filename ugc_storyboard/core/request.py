"""Request normalizer: raw user input to a canonical GenerationRequest"""

import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from .errors import RequestValidationError
from .models import GenerationRequest, resolve_aspect_ratio

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, str, Path, None]


def detect_image_mime(image_bytes: bytes) -> str:
    """
    Detect the MIME type of raw image bytes with Pillow.

    Raises:
        RequestValidationError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            image_format = img.format
    except (UnidentifiedImageError, OSError) as e:
        raise RequestValidationError(f"Unreadable image: {e}") from e
    return Image.MIME.get(image_format, "image/png")


def encode_image(image: ImageInput, field_name: str = "image") -> Optional[str]:
    """
    Convert an image input into a base64 data URL.

    Args:
        image: Raw bytes, a file path, an existing data URL, or None
        field_name: Field name used in error messages

    Returns:
        data:<mime>;base64,... string, or None when no image was given
    """
    if image is None:
        return None

    if isinstance(image, str) and image.startswith("data:"):
        return image

    if isinstance(image, (str, Path)):
        path = Path(image)
        if not path.is_file():
            raise RequestValidationError(f"{field_name}: file not found: {path}")
        image_bytes = path.read_bytes()
    elif isinstance(image, (bytes, bytearray)):
        image_bytes = bytes(image)
    else:
        raise RequestValidationError(f"{field_name}: unsupported image type {type(image).__name__}")

    if not image_bytes:
        raise RequestValidationError(f"{field_name}: image is empty")

    mime_type = detect_image_mime(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def build_request(
    product_url: str = "",
    target_audience: str = "",
    style_concept: str = "",
    frame_count: int = 4,
    aspect_ratio: str = "9:16",
    upload_mode: str = "separate",
    model_image: ImageInput = None,
    product_image: ImageInput = None,
    combined_image: ImageInput = None,
    music_style: Optional[str] = None
) -> GenerationRequest:
    """
    Build a validated, immutable GenerationRequest from raw user input.

    Args:
        product_url: Product page URL (prompt material only, never fetched)
        target_audience: Free-text audience description
        style_concept: Free-text creative direction
        frame_count: Number of frames to plan and render
        aspect_ratio: "9:16", "1:1" or "16:9"
        upload_mode: "separate" (model + product) or "combined" (one image)
        model_image: Image of the model/talent
        product_image: Image of the product
        combined_image: One image showing the model with the product
        music_style: Optional music style; None disables the music prompt

    Returns:
        GenerationRequest ready to be cached and handed to the orchestrator

    Raises:
        RequestValidationError: If any field is invalid
    """
    # Resolve first so unsupported ratios fail with a clear message
    resolve_aspect_ratio(aspect_ratio)

    try:
        request = GenerationRequest(
            product_url=product_url.strip(),
            target_audience=target_audience.strip(),
            style_concept=style_concept.strip(),
            frame_count=frame_count,
            aspect_ratio=aspect_ratio,
            upload_mode=upload_mode,
            model_image=encode_image(model_image, "model_image"),
            product_image=encode_image(product_image, "product_image"),
            combined_image=encode_image(combined_image, "combined_image"),
            music_style=music_style
        )
    except ValidationError as e:
        raise RequestValidationError(_summarize_validation_error(e)) from e

    logger.info(
        f"[Request] Normalized request: {request.frame_count} frames, "
        f"{request.aspect_ratio}, {request.upload_mode} mode, "
        f"{len(request.reference_images())} reference image(s), music={request.music_style}"
    )
    return request


def request_from_payload(payload: dict) -> GenerationRequest:
    """Validate a camelCase or snake_case JSON payload into a GenerationRequest"""
    try:
        return GenerationRequest.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(_summarize_validation_error(e)) from e


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)
