"""Per-user storyboard session: cached request/result, credential and single flight"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from ..agents.base import ProgressCallback
from ..clients import get_backend
from ..clients.base import GenerationBackend
from .config import CHAIN_FRAMES, STORYBOARD_BACKEND
from .errors import (
    AuthenticationError,
    MissingCredentialError,
    NothingToRegenerateError,
    OperationInProgressError,
)
from .models import GenerationRequest, StoryboardResult
from .state import WorkflowStatus
from .workflow import StoryboardWorkflow

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], GenerationBackend]


class CredentialStore:
    """Holds the session's API key; empty means the caller must ask for one"""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or None

    @property
    def is_set(self) -> bool:
        return self._api_key is not None

    def set(self, api_key: str):
        api_key = (api_key or "").strip()
        if not api_key:
            raise MissingCredentialError("API key must not be empty")
        self._api_key = api_key

    def get(self) -> str:
        if self._api_key is None:
            raise MissingCredentialError("No API key set for this session")
        return self._api_key

    def clear(self):
        self._api_key = None


class StoryboardSession:
    """
    Owns the cached GenerationRequest and StoryboardResult for one user.

    Only one operation (full run or regeneration) may be in flight; a second
    call raises OperationInProgressError instead of queueing. A rejected
    credential is discarded so the next call asks for a new one.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        backend_name: str = STORYBOARD_BACKEND,
        backend_factory: Optional[BackendFactory] = None,
        chain_frames: bool = CHAIN_FRAMES
    ):
        self.credentials = CredentialStore(api_key)
        self.backend_name = backend_name
        self.backend_factory = backend_factory or (lambda key: get_backend(backend_name, api_key=key))
        self.chain_frames = chain_frames

        self.status = WorkflowStatus.IDLE
        self.last_request: Optional[GenerationRequest] = None
        self.last_result: Optional[StoryboardResult] = None
        self.last_error: Optional[str] = None

        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def _operation(self, name: str):
        """Single-flight guard yielding a workflow bound to a fresh backend"""
        if self._lock.locked():
            raise OperationInProgressError(f"Cannot start '{name}' while another operation is running")

        async with self._lock:
            backend = self.backend_factory(self.credentials.get())
            try:
                yield StoryboardWorkflow(backend, chain_frames=self.chain_frames)
            except AuthenticationError:
                logger.warning(f"[Session] Credential rejected during '{name}', clearing it")
                self.credentials.clear()
                raise
            finally:
                await backend.aclose()

    def _track_progress(self, on_progress: Optional[ProgressCallback]) -> ProgressCallback:
        async def tracker(message: str, current_step: int, total_steps: int):
            self.status = WorkflowStatus.PLANNING if current_step == 1 else WorkflowStatus.RENDERING
            if on_progress is not None:
                result = on_progress(message, current_step, total_steps)
                if asyncio.iscoroutine(result):
                    await result
        return tracker

    async def generate(
        self,
        request: GenerationRequest,
        on_progress: Optional[ProgressCallback] = None
    ) -> StoryboardResult:
        """
        Run a full generation and cache the request and result.

        The request is cached before the run starts so a failed run can still
        be retried with the same input.
        """
        async with self._operation("generate") as workflow:
            self.last_request = request
            self.last_error = None
            try:
                result = await workflow.generate(request, self._track_progress(on_progress))
            except Exception as e:
                self.status = WorkflowStatus.ERROR
                self.last_error = str(e)
                raise
            self.last_result = result
            self.status = WorkflowStatus.COMPLETE
            return result

    def _require_cached(self):
        if self.last_request is None or self.last_result is None:
            raise NothingToRegenerateError("No storyboard has been generated in this session")

    async def regenerate_text(self) -> StoryboardResult:
        """Regenerate hook, script and music prompt of the cached storyboard"""
        self._require_cached()
        async with self._operation("regenerate_text") as workflow:
            self.last_result = await workflow.regenerate_text(self.last_request, self.last_result)
            return self.last_result

    async def regenerate_frame(self, frame_id: int) -> StoryboardResult:
        """Regenerate one frame image of the cached storyboard"""
        self._require_cached()
        async with self._operation("regenerate_frame") as workflow:
            self.last_result = await workflow.regenerate_frame(self.last_request, self.last_result, frame_id)
            return self.last_result

    def snapshot(self) -> dict:
        """Session state for clients, without credential or request images"""
        return {
            "status": self.status.value,
            "credential_set": self.credentials.is_set,
            "busy": self.busy,
            "last_error": self.last_error,
            "result": self.last_result.to_json_dict() if self.last_result else None
        }
