"""Type definitions for API request/response validation"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateImageRequest(CamelModel):
    """Request type for single image generation through the proxy"""
    prompt: Optional[Any] = None
    aspect_ratio: str = "9:16"
    seed: Optional[int] = None
    image_ref: Optional[str] = None


class GenerateSequenceRequest(CamelModel):
    """Request type for chained multi-frame generation through the proxy"""
    prompts: Optional[List[Any]] = None
    aspect_ratio: str = "9:16"
    seed: Optional[int] = None
    first_image_ref: Optional[str] = None


class ImageMeta(CamelModel):
    """Metadata returned with each generated image"""
    aspect_ratio: str
    seed: Optional[int] = None
    model: str


class SequenceFrame(BaseModel):
    """One generated frame of a sequence"""
    index: int
    image: str
    meta: ImageMeta


class WebSocketMessage(CamelModel):
    """Type for WebSocket messages from the client"""
    type: str
    api_key: Optional[str] = None
    request: Optional[Dict[str, Any]] = None
    frame_id: Optional[int] = None
