"""Generation backend interface shared by all providers"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..core.config import UPSTREAM_MAX_RETRIES, UPSTREAM_RETRY_BASE_DELAY
from ..core.errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationBackend(ABC):
    """
    Provider adapter for text (plan) and image (frame) generation.

    Implementations translate provider errors into the storyboard error
    taxonomy: AuthenticationError for rejected credentials, UpstreamError for
    every other non-success response, MissingAssetError when an image
    response carries no image.
    """

    name = "base"
    # Schema dialect passed to get_schema(): "gemini" or "gpt"
    schema_dialect = "gemini"
    # False when the image model variant cannot take reference images
    supports_reference_images = True
    # False when the text endpoint may ignore the response schema; the plan
    # prompt then also demands JSON-only output
    enforces_response_schema = True

    @abstractmethod
    async def generate_plan_json(
        self,
        prompt: str,
        reference_images: Optional[List[str]] = None,
        schema: Optional[dict] = None
    ) -> str:
        """
        Run one text generation call and return the raw JSON text.

        Args:
            prompt: Full plan prompt
            reference_images: Data URLs attached to the same call
            schema: Structured output schema in this backend's dialect

        Returns:
            Raw response text (may still contain markdown fences)
        """

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str,
        reference_images: Optional[List[str]] = None
    ) -> str:
        """
        Run one image generation call.

        Args:
            prompt: Full frame prompt
            aspect_ratio: "9:16", "1:1" or "16:9"
            reference_images: Data URLs or URLs to attach when supported

        Returns:
            Data URL or external URL of the generated image
        """

    async def aclose(self):
        """Release network resources held by the backend"""


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_retries: int = UPSTREAM_MAX_RETRIES,
    base_delay: float = UPSTREAM_RETRY_BASE_DELAY
) -> T:
    """
    Await an upstream call, retrying rate limits and server errors.

    Only retryable UpstreamErrors (429, 5xx, transport failures) are retried,
    with exponential backoff plus jitter. Every other error propagates on the
    first attempt.

    Args:
        operation: Zero-argument coroutine factory performing one call
        label: Short description used in log messages
        max_retries: Extra attempts after the first one
        base_delay: Delay in seconds before the first retry

    Returns:
        The operation's result
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except UpstreamError as e:
            if not e.retryable or attempt >= max_retries:
                raise
            wait = base_delay * ((2 ** attempt) + random.random())
            attempt += 1
            logger.warning(
                f"[Retry] {label} failed with status {e.status_code}, "
                f"retrying in {wait:.1f}s (attempt {attempt}/{max_retries})"
            )
            await asyncio.sleep(wait)
