"""State definition for the storyboard workflow"""

from enum import Enum
from typing import List, Optional, TypedDict

from .models import GenerationRequest, StoryboardFrame, StoryboardPlan, StoryboardResult


class WorkflowStatus(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"


class StoryboardState(TypedDict):
    request: GenerationRequest
    status: str

    plan: Optional[StoryboardPlan]

    # Rendering loop
    current_index: int  # 0-based index of the next frame to render
    frames: List[StoryboardFrame]  # Rendered frames in id order, placeholders included
    failed_frames: List[int]  # Frame ids that fell back to a placeholder

    result: Optional[StoryboardResult]
