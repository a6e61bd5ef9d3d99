"""
Generation backends

Backends:
- gemini: google-genai SDK (text plan + image frames with reference images)
- openrouter: OpenRouter chat completions over httpx, direct or through the proxy
"""

from typing import Optional

from ..core.config import GEMINI_API_KEY, OPENROUTER_API_KEY, STORYBOARD_BACKEND
from .base import GenerationBackend, call_with_retry
from .client_gemini import GeminiBackend
from .client_openrouter import OpenRouterBackend

BACKENDS = {
    "gemini": GeminiBackend,
    "openrouter": OpenRouterBackend
}

DEFAULT_CREDENTIALS = {
    "gemini": GEMINI_API_KEY,
    "openrouter": OPENROUTER_API_KEY
}


def get_backend(name: Optional[str] = None, api_key: Optional[str] = None, **kwargs) -> GenerationBackend:
    """
    Create the generation backend selected by configuration.

    Args:
        name: Backend name (defaults to STORYBOARD_BACKEND)
        api_key: Session credential (defaults to the environment key)
        **kwargs: Backend-specific options

    Returns:
        GenerationBackend instance

    Raises:
        ValueError: If the backend name is unknown
        MissingCredentialError: If no credential is available
    """
    name = name or STORYBOARD_BACKEND
    if name not in BACKENDS:
        raise ValueError(f"Unknown backend: {name}. Must be one of {list(BACKENDS)}")
    return BACKENDS[name](api_key=api_key or DEFAULT_CREDENTIALS[name], **kwargs)


__all__ = [
    "GenerationBackend",
    "GeminiBackend",
    "OpenRouterBackend",
    "BACKENDS",
    "call_with_retry",
    "get_backend"
]
