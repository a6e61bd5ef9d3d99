"""Error taxonomy for storyboard generation

Errors are grouped by how the orchestrator treats them:
- fatal for the whole run: AuthenticationError, MalformedPlanError, RequestValidationError
- non-fatal per frame during a full run: UpstreamError, MissingAssetError
- caller-side guards: MissingCredentialError, OperationInProgressError,
  FrameNotFoundError, NothingToRegenerateError
"""

from typing import Any, Optional, Tuple


class StoryboardError(Exception):
    """Base class for all storyboard errors"""

    code = "storyboard_error"
    user_message = "Something went wrong while generating the storyboard."


class RequestValidationError(StoryboardError, ValueError):
    """Raised when a generation request fails validation before any call is made"""

    code = "invalid_request"
    user_message = "The request is invalid."


class MissingCredentialError(StoryboardError):
    """Raised when no API credential is available for the session"""

    code = "credential_required"
    user_message = "An API key is required. Please enter your API key."


class AuthenticationError(StoryboardError):
    """Raised when the upstream provider rejects the credential"""

    code = "authentication_failed"
    user_message = "The API key was rejected. Please enter a valid API key."


class UpstreamError(StoryboardError):
    """Raised for any non-success response from a generation call"""

    code = "upstream_error"
    user_message = "The generation service returned an error."

    def __init__(self, message: str, status_code: Optional[int] = None, raw: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.raw = raw

    @property
    def retryable(self) -> bool:
        """True for rate limits, server errors and transport failures"""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class MalformedPlanError(StoryboardError):
    """Raised when the plan response is not JSON or misses required fields"""

    code = "malformed_plan"
    user_message = "The storyboard plan could not be understood. Please try again."


class MissingAssetError(StoryboardError):
    """Raised when a response carries no image or a frame has no usable data"""

    code = "missing_asset"
    user_message = "No image was returned for this frame."


class FrameNotFoundError(StoryboardError, KeyError):
    """Raised when regenerating a frame id that is not in the storyboard"""

    code = "frame_not_found"
    user_message = "That frame does not exist in the current storyboard."

    def __str__(self):
        return Exception.__str__(self)


class NothingToRegenerateError(StoryboardError):
    """Raised when regeneration is requested before a storyboard exists"""

    code = "nothing_to_regenerate"
    user_message = "Generate a storyboard first."


class OperationInProgressError(StoryboardError):
    """Raised when a second operation starts while one is still running"""

    code = "operation_in_progress"
    user_message = "Another generation is still running. Please wait for it to finish."


def describe_error(exc: BaseException) -> Tuple[str, str]:
    """
    Convert an exception into a stable error code and user-facing message.

    Args:
        exc: Any exception raised by the storyboard pipeline

    Returns:
        Tuple of (code, message)
    """
    if isinstance(exc, StoryboardError):
        detail = str(exc)
        if isinstance(exc, (RequestValidationError, UpstreamError, FrameNotFoundError)) and detail:
            return exc.code, f"{exc.user_message} {detail}"
        return exc.code, exc.user_message
    return "internal_error", f"Unexpected error: {exc}"
