"""
OpenRouter backend using httpx

Talks to the OpenAI-compatible chat completions API, either directly with a
bearer credential or through our own proxy (which injects the credential).
Frames use the chat endpoint with image modalities by default; the images
generation endpoint is available but cannot take reference images.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import (
    OPENROUTER_APP_NAME,
    OPENROUTER_BASE_URL,
    OPENROUTER_IMAGE_API,
    OPENROUTER_IMAGE_MODEL,
    OPENROUTER_SITE_URL,
    OPENROUTER_TEXT_MAX_TOKENS,
    OPENROUTER_TEXT_MODEL,
    OPENROUTER_TEXT_TEMPERATURE,
    PROXY_BASE,
    UPSTREAM_MAX_RETRIES,
    UPSTREAM_TIMEOUT,
    USE_PROXY,
)
from ..core.errors import AuthenticationError, MissingAssetError, MissingCredentialError, UpstreamError
from ..core.models import resolve_aspect_ratio
from .base import GenerationBackend, call_with_retry
from .extractors import extract_image

logger = logging.getLogger(__name__)


def build_upstream_headers(api_key: Optional[str]) -> Dict[str, str]:
    """Headers OpenRouter expects: bearer credential plus app attribution"""
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    if OPENROUTER_SITE_URL:
        headers["HTTP-Referer"] = OPENROUTER_SITE_URL
    if OPENROUTER_APP_NAME:
        headers["X-Title"] = OPENROUTER_APP_NAME
    return headers


def upstream_error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return error.get("message") or fallback
        if error:
            return str(error)
    return fallback


def raise_for_upstream_status(status_code: int, payload: Any, text: str = ""):
    """Map a non-success upstream status onto the storyboard error taxonomy"""
    message = upstream_error_message(payload, text[:200] or f"HTTP {status_code}")
    if status_code in (401, 403):
        raise AuthenticationError(f"OpenRouter rejected the API key: {message}")
    raise UpstreamError(f"OpenRouter {status_code}: {message}", status_code=status_code, raw=payload)


def _image_part(url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url}}


class OpenRouterBackend(GenerationBackend):
    """Generation backend calling OpenRouter chat completions"""

    name = "openrouter"
    schema_dialect = "gpt"
    enforces_response_schema = False

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        use_proxy: bool = USE_PROXY,
        base_url: Optional[str] = None,
        text_model: str = OPENROUTER_TEXT_MODEL,
        image_model: str = OPENROUTER_IMAGE_MODEL,
        image_api: str = OPENROUTER_IMAGE_API,
        max_retries: int = UPSTREAM_MAX_RETRIES,
        retry_delay: float = 1.0
    ):
        if not use_proxy and not api_key:
            raise MissingCredentialError("OpenRouter API key is not set")
        if image_api not in ("chat", "images"):
            raise ValueError(f"Invalid image_api: {image_api}. Must be 'chat' or 'images'.")

        self.api_key = None if use_proxy else api_key
        self.base_url = (base_url or (PROXY_BASE if use_proxy else OPENROUTER_BASE_URL)).rstrip("/")
        self.text_model = text_model
        self.image_model = image_model
        self.image_api = image_api
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT)

    @property
    def supports_reference_images(self) -> bool:
        return self.image_api == "chat"

    async def aclose(self):
        if self._owns_client:
            await self.http_client.aclose()

    async def _post(self, path: str, body: Dict[str, Any], label: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = build_upstream_headers(self.api_key)

        async def attempt():
            try:
                response = await self.http_client.post(url, json=body, headers=headers)
            except httpx.HTTPError as e:
                raise UpstreamError(f"OpenRouter request failed: {e}") from e

            try:
                payload = response.json()
            except ValueError:
                payload = None

            if not response.is_success:
                raise_for_upstream_status(response.status_code, payload, response.text)

            if not isinstance(payload, dict):
                raise UpstreamError(
                    "OpenRouter returned a non-JSON response",
                    status_code=response.status_code,
                    raw=response.text[:500]
                )

            # Errors can arrive with a 200 status and an error body
            if payload.get("error") and not payload.get("choices") and not payload.get("data"):
                error = payload["error"]
                code = error.get("code") if isinstance(error, dict) else None
                raise_for_upstream_status(code if isinstance(code, int) else 502, payload)

            return payload

        return await call_with_retry(attempt, label, max_retries=self.max_retries, base_delay=self.retry_delay)

    async def generate_plan_json(
        self,
        prompt: str,
        reference_images: Optional[List[str]] = None,
        schema: Optional[dict] = None
    ) -> str:
        content = [{"type": "text", "text": prompt}]
        content.extend(_image_part(image) for image in reference_images or [])

        body = {
            "model": self.text_model,
            "messages": [{"role": "user", "content": content}],
            "temperature": OPENROUTER_TEXT_TEMPERATURE,
            "max_tokens": OPENROUTER_TEXT_MAX_TOKENS,
            "stream": False
        }
        if schema is not None:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "storyboard_plan", "strict": True, "schema": schema}
            }

        logger.info(f"[OpenRouter] Plan request to {self.text_model} with {len(content) - 1} reference image(s)")
        payload = await self._post("/chat/completions", body, "OpenRouter plan")

        choices = payload.get("choices") or [{}]
        message_content = (choices[0].get("message") or {}).get("content")
        if isinstance(message_content, list):
            message_content = "".join(
                part.get("text", "") for part in message_content if isinstance(part, dict)
            )
        if not message_content:
            raise UpstreamError("OpenRouter returned an empty plan response", raw=payload)
        return message_content

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str,
        reference_images: Optional[List[str]] = None
    ) -> str:
        if self.image_api == "images":
            payload = await self._generate_via_images_api(prompt, aspect_ratio)
        else:
            payload = await self._generate_via_chat(prompt, aspect_ratio, reference_images)

        image = extract_image(payload)
        if not image:
            logger.warning(f"[OpenRouter] No image in response: {json.dumps(payload)[:300]}")
            raise MissingAssetError("No image returned by model")
        return image

    async def _generate_via_chat(self, prompt: str, aspect_ratio: str, reference_images: Optional[List[str]]):
        content = [{"type": "text", "text": prompt}]
        content.extend(_image_part(image) for image in reference_images or [])

        body = {
            "model": self.image_model,
            "messages": [{"role": "user", "content": content}],
            "modalities": ["image", "text"],
            "image_config": {"aspect_ratio": aspect_ratio},
            "stream": False
        }
        logger.info(f"[OpenRouter] Image request to {self.image_model} ({aspect_ratio}, {len(content) - 1} reference image(s))")
        return await self._post("/chat/completions", body, "OpenRouter image")

    async def _generate_via_images_api(self, prompt: str, aspect_ratio: str):
        body = {
            "model": self.image_model,
            "prompt": prompt,
            "size": resolve_aspect_ratio(aspect_ratio).api_size,
            "n": 1,
            "response_format": "b64_json"
        }
        logger.info(f"[OpenRouter] Images API request to {self.image_model} (size {body['size']})")
        return await self._post("/images/generations", body, "OpenRouter images")
