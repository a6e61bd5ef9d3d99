"""
Image extraction strategies for generation API responses

Providers embed generated images in different places depending on model and
endpoint. Each strategy inspects one known shape and returns a displayable
URL/data URL or None; extract_image() tries them in order.

Shapes handled:
- content_parts: choices[0].message.content[] with output_image / image_url parts
- message_images: choices[0].message.images[0].image_url.url
- raw_base64: image_base64 on the payload, the first choice, or its message
- images_api: data[0].b64_json or data[0].url (images generation endpoint)
"""

import re
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+=*$")


def is_bare_base64(value: str) -> bool:
    """True for a base64 string with no data: header"""
    return bool(value) and not value.startswith("data:") and bool(_BASE64_PATTERN.match(value))


def to_data_url(value: Optional[str], mime_type: str = DEFAULT_IMAGE_MIME) -> Optional[str]:
    """Wrap bare base64 as a data URL; data URLs and http(s) URLs pass through"""
    if not value:
        return None
    if value.startswith("data:") or value.startswith(("http://", "https://")):
        return value
    return f"data:{mime_type};base64,{value}"


def _first_choice(payload: Dict[str, Any]) -> Dict[str, Any]:
    choices = payload.get("choices") or []
    if choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _first_message(payload: Dict[str, Any]) -> Dict[str, Any]:
    message = _first_choice(payload).get("message")
    return message if isinstance(message, dict) else {}


def extract_from_content_parts(payload: Dict[str, Any]) -> Optional[str]:
    content = _first_message(payload).get("content")
    if not isinstance(content, list):
        return None

    for part in content:
        if not isinstance(part, dict):
            continue
        part_type = part.get("type")
        image_url = part.get("image_url")
        url = image_url.get("url") if isinstance(image_url, dict) else image_url

        if part_type == "output_image":
            mime_type = part.get("mime_type") or DEFAULT_IMAGE_MIME
            if url:
                return to_data_url(url, mime_type)
            if part.get("image_base64"):
                return to_data_url(part["image_base64"], mime_type)

        if part_type == "image_url" and url:
            return to_data_url(url)

    return None


def extract_from_message_images(payload: Dict[str, Any]) -> Optional[str]:
    images = _first_message(payload).get("images") or []
    if not images or not isinstance(images[0], dict):
        return None
    image_url = images[0].get("image_url")
    url = image_url.get("url") if isinstance(image_url, dict) else image_url
    return to_data_url(url)


def extract_from_raw_base64(payload: Dict[str, Any]) -> Optional[str]:
    for container in (payload, _first_choice(payload), _first_message(payload)):
        value = container.get("image_base64")
        if value:
            return to_data_url(value, container.get("mime_type") or DEFAULT_IMAGE_MIME)
    return None


def extract_from_images_api(payload: Dict[str, Any]) -> Optional[str]:
    data = payload.get("data")
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    first = data[0]
    if first.get("b64_json"):
        return to_data_url(first["b64_json"])
    return first.get("url") or None


# Ordered registry; the first strategy that returns a value wins
IMAGE_EXTRACTORS: List[Tuple[str, Callable[[Dict[str, Any]], Optional[str]]]] = [
    ("content_parts", extract_from_content_parts),
    ("message_images", extract_from_message_images),
    ("raw_base64", extract_from_raw_base64),
    ("images_api", extract_from_images_api),
]


def extract_image(payload: Any) -> Optional[str]:
    """
    Find the generated image in a provider response.

    Args:
        payload: Parsed JSON response body

    Returns:
        Data URL or external URL of the first image found, or None
    """
    if not isinstance(payload, dict):
        return None

    for name, extractor in IMAGE_EXTRACTORS:
        image = extractor(payload)
        if image:
            logger.debug(f"[Extractor] Image found via '{name}'")
            return image

    return None
