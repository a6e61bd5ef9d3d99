"""
Shared helpers for storyboard agents
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], Union[None, Awaitable[None]]]


class ProgressReporter:
    """
    Reports pipeline progress to a caller-supplied callback.

    Steps are 1-based and strictly increasing; a step that does not advance
    or exceeds the total is rejected, so callers can rely on monotonic updates.
    The callback may be a plain function or a coroutine function.
    """

    def __init__(self, callback: Optional[ProgressCallback], total_steps: int):
        self.callback = callback
        self.total_steps = total_steps
        self.current_step = 0

    async def report(self, message: str, step: int):
        """
        Emit one progress update.

        Args:
            message: Human-readable status message
            step: Step number, must be greater than the previous one
        """
        if step <= self.current_step or step > self.total_steps:
            raise ValueError(
                f"Progress step {step} out of order (last {self.current_step}, total {self.total_steps})"
            )
        self.current_step = step
        logger.info(f"[Progress] {step}/{self.total_steps}: {message}")

        if self.callback is None:
            return
        result = self.callback(message, step, self.total_steps)
        if inspect.isawaitable(result):
            await result


def format_time(seconds: float) -> str:
    """Format time in seconds to minutes and seconds"""
    minutes = int(seconds // 60)
    remaining_seconds = seconds % 60
    if minutes > 0:
        return f"{minutes}m {remaining_seconds:.1f}s"
    else:
        return f"{remaining_seconds:.1f}s"


def clean_json_response(response_text: str) -> str:
    """
    Clean JSON response from markdown code blocks and extra trailing braces.
    LLMs may wrap JSON in ```json...``` blocks which need to be stripped.
    Some models occasionally add extra closing braces at the end.

    Args:
        response_text: Raw text that might contain markdown-wrapped JSON

    Returns:
        Clean JSON string ready for parsing
    """
    response_text = response_text.strip()

    if response_text.startswith("```json"):
        response_text = response_text[7:]
        if response_text.endswith("```"):
            response_text = response_text[:-3]
        response_text = response_text.strip()
    elif response_text.startswith("```"):
        response_text = response_text[3:]
        if response_text.endswith("```"):
            response_text = response_text[:-3]
        response_text = response_text.strip()

    # Remove extra trailing closing braces, only on a clear imbalance
    max_removals = 3
    removals = 0
    while removals < max_removals:
        open_count = response_text.count('{')
        close_count = response_text.count('}')

        if close_count <= open_count:
            break

        if response_text.rstrip().endswith('}'):
            response_text = response_text.rstrip()[:-1]
            removals += 1
        else:
            break

    return response_text.strip()


def summarize(value: Any, limit: int = 120) -> str:
    """Shorten a value for log output"""
    text = str(value)
    return text if len(text) <= limit else f"{text[:limit]}..."
