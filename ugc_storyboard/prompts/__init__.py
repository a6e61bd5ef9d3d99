"""Prompt templates for storyboard agents

This module re-exports all prompts from their individual modules.
"""

from .plan import (
    PLAN_PROMPT_TEMPLATE,
    JSON_ONLY_INSTRUCTION,
    get_plan_prompt
)
from .frame import (
    FRAME_PROMPT_TEMPLATE,
    get_frame_prompt
)

__all__ = [
    "PLAN_PROMPT_TEMPLATE",
    "JSON_ONLY_INSTRUCTION",
    "get_plan_prompt",
    "FRAME_PROMPT_TEMPLATE",
    "get_frame_prompt"
]
