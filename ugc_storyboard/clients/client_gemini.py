"""
Gemini backend using the google-genai SDK

Text plans use gemini-2.5-pro with a native response schema.
Frames use gemini-2.5-flash-image with native aspect ratio support;
reference images are attached as inline parts.
"""

import logging
from typing import List, Optional

import httpx
from google import genai
from google.genai import errors, types

from ..agents.util_image import bytes_to_data_url, parse_data_url
from ..core.config import GEMINI_IMAGE_MODEL, GEMINI_TEXT_MODEL, UPSTREAM_MAX_RETRIES
from ..core.errors import AuthenticationError, MissingAssetError, MissingCredentialError, UpstreamError
from .base import GenerationBackend, call_with_retry

logger = logging.getLogger(__name__)

INVALID_KEY_MARKERS = ("API key not valid", "API_KEY_INVALID", "PERMISSION_DENIED")


def translate_api_error(error: errors.APIError) -> Exception:
    """Map a google-genai APIError onto the storyboard error taxonomy"""
    status = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)
    if status in (401, 403) or any(marker in str(error) for marker in INVALID_KEY_MARKERS):
        return AuthenticationError(f"Gemini rejected the API key: {message}")
    return UpstreamError(f"Gemini error {status}: {message}", status_code=status)


class GeminiBackend(GenerationBackend):
    """Generation backend calling the Gemini API directly"""

    name = "gemini"
    schema_dialect = "gemini"
    supports_reference_images = True
    enforces_response_schema = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[genai.Client] = None,
        text_model: str = GEMINI_TEXT_MODEL,
        image_model: str = GEMINI_IMAGE_MODEL,
        max_retries: int = UPSTREAM_MAX_RETRIES,
        retry_delay: float = 1.0
    ):
        if client is None:
            if not api_key:
                raise MissingCredentialError("Gemini API key is not set")
            client = genai.Client(api_key=api_key)
        self.client = client
        self.text_model = text_model
        self.image_model = image_model
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _reference_parts(self, reference_images: Optional[List[str]]) -> List[types.Part]:
        parts = []
        for image in reference_images or []:
            if not image.startswith("data:"):
                logger.warning(f"[Gemini] Skipping non-inline reference image: {image[:60]}")
                continue
            mime_type, image_bytes = parse_data_url(image)
            parts.append(types.Part.from_bytes(data=image_bytes, mime_type=mime_type))
        return parts

    async def _generate(self, model: str, contents: list, config: types.GenerateContentConfig, label: str):
        async def attempt():
            try:
                return await self.client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config
                )
            except errors.APIError as e:
                raise translate_api_error(e) from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"Gemini request failed: {e}") from e

        return await call_with_retry(attempt, label, max_retries=self.max_retries, base_delay=self.retry_delay)

    async def generate_plan_json(
        self,
        prompt: str,
        reference_images: Optional[List[str]] = None,
        schema: Optional[dict] = None
    ) -> str:
        contents = self._reference_parts(reference_images)
        contents.append(prompt)

        config_params = {"response_mime_type": "application/json"}
        if schema is not None:
            config_params["response_schema"] = schema

        logger.info(f"[Gemini] Plan request to {self.text_model} with {len(contents) - 1} reference image(s)")
        response = await self._generate(
            self.text_model,
            contents,
            types.GenerateContentConfig(**config_params),
            "Gemini plan"
        )

        text = response.text
        if not text:
            raise UpstreamError("Gemini returned an empty plan response")
        return text

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str,
        reference_images: Optional[List[str]] = None
    ) -> str:
        contents = self._reference_parts(reference_images)
        contents.append(prompt)

        logger.info(f"[Gemini] Image request to {self.image_model} ({aspect_ratio}, {len(contents) - 1} reference image(s))")
        response = await self._generate(
            self.image_model,
            contents,
            types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                candidate_count=1
            ),
            "Gemini image"
        )

        if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
            for part in response.candidates[0].content.parts:
                # Skip reasoning output
                if getattr(part, "thought", False):
                    continue
                inline_data = getattr(part, "inline_data", None)
                if inline_data and inline_data.data:
                    return bytes_to_data_url(inline_data.data, inline_data.mime_type or "image/png")

        raise MissingAssetError("No image generated in response")
