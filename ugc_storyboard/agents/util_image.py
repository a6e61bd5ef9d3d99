"""
Image utility functions for storyboard frames

Handles data URL conversions, aspect ratio correction and placeholder frames
"""

import base64
import binascii
import logging
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageDraw, ImageFont

from ..core.config import ASPECT_RATIOS, PLACEHOLDER_SCALE
from ..core.errors import MissingAssetError

logger = logging.getLogger(__name__)

PLACEHOLDER_BACKGROUND = (229, 231, 235)
PLACEHOLDER_BORDER = (156, 163, 175)
PLACEHOLDER_TEXT = (75, 85, 99)


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a base64 data URL into MIME type and raw bytes

    Args:
        data_url: data:<mime>;base64,<payload>

    Returns:
        Tuple of (mime_type, image_bytes)
    """
    try:
        header, encoded = data_url.split(",", 1)
        mime_type = header.split(":", 1)[1].split(";", 1)[0] or "image/png"
        return mime_type, base64.b64decode(encoded)
    except (ValueError, IndexError, binascii.Error) as e:
        raise MissingAssetError(f"Invalid image data URL: {e}") from e


def bytes_to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Encode raw image bytes as a base64 data URL"""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def correct_aspect_ratio(image_bytes: bytes, target_aspect_ratio: str) -> bytes:
    """
    Correct image aspect ratio to the exact target ratio using center crop.

    Processes in-memory bytes (no file I/O). Returns original bytes if already correct.

    Args:
        image_bytes: Raw image bytes (PNG/JPEG)
        target_aspect_ratio: "9:16", "1:1" or "16:9"

    Returns:
        Corrected image bytes (PNG) or the original bytes
    """
    entry = ASPECT_RATIOS.get(target_aspect_ratio)
    if not entry:
        logger.warning(f"Unknown aspect ratio '{target_aspect_ratio}', returning original")
        return image_bytes

    target_ratio = entry["width"] / entry["height"]

    try:
        img = Image.open(BytesIO(image_bytes))
        current_ratio = img.width / img.height

        # Check if already correct (within 1% tolerance)
        tolerance = 0.01
        if abs(current_ratio - target_ratio) / target_ratio < tolerance:
            logger.debug(f"Aspect ratio already correct ({img.width}x{img.height}), skipping correction")
            return image_bytes

        if current_ratio > target_ratio:
            # Image too wide, crop horizontally
            new_width = int(img.height * target_ratio)
            left = (img.width - new_width) // 2
            crop_box = (left, 0, left + new_width, img.height)
        else:
            # Image too tall, crop vertically
            new_height = int(img.width / target_ratio)
            top = (img.height - new_height) // 2
            crop_box = (0, top, img.width, top + new_height)

        cropped_img = img.crop(crop_box)

        output = BytesIO()
        cropped_img.save(output, format="PNG")

        logger.info(
            f"Aspect ratio corrected to {target_aspect_ratio}: "
            f"{img.width}x{img.height} → {cropped_img.width}x{cropped_img.height}"
        )
        return output.getvalue()

    except (OSError, ValueError) as e:
        logger.error(f"Error correcting aspect ratio: {str(e)}, returning original")
        return image_bytes


def correct_data_url_aspect_ratio(image_url: str, target_aspect_ratio: str) -> str:
    """Apply correct_aspect_ratio to a data URL; external URLs pass through"""
    if not image_url.startswith("data:"):
        return image_url

    mime_type, image_bytes = parse_data_url(image_url)
    corrected = correct_aspect_ratio(image_bytes, target_aspect_ratio)
    if corrected is image_bytes:
        return image_url
    return bytes_to_data_url(corrected, "image/png")


def make_placeholder(frame_id: int, aspect_ratio: str) -> str:
    """
    Render the deterministic placeholder shown when a frame fails.

    The same frame id and aspect ratio always produce the same PNG bytes.

    Args:
        frame_id: 1-based frame id printed on the placeholder
        aspect_ratio: "9:16", "1:1" or "16:9"

    Returns:
        PNG data URL with the ratio's proportions
    """
    entry = ASPECT_RATIOS.get(aspect_ratio, ASPECT_RATIOS["9:16"])
    width = int(entry["width"] * PLACEHOLDER_SCALE)
    height = int(entry["height"] * PLACEHOLDER_SCALE)

    img = Image.new("RGB", (width, height), PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(img)
    draw.rectangle((4, 4, width - 5, height - 5), outline=PLACEHOLDER_BORDER, width=3)

    font = ImageFont.load_default()
    for offset, text in ((-10, f"Frame {frame_id}"), (10, "image unavailable")):
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        position = ((width - (right - left)) // 2, (height - (bottom - top)) // 2 + offset)
        draw.text(position, text, fill=PLACEHOLDER_TEXT, font=font)

    output = BytesIO()
    img.save(output, format="PNG")
    return bytes_to_data_url(output.getvalue(), "image/png")
