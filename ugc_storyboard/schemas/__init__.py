"""
Schema registry for structured output.
Selects Gemini or GPT-style schemas based on model type.
"""

import importlib
from typing import Dict, Any

AVAILABLE_SCHEMAS = [
    "storyboard_plan"
]


def get_schema(schema_name: str, model_type: str, include_music: bool = False) -> Dict[str, Any]:
    """
    Load the appropriate schema based on model type.

    Args:
        schema_name: Name of the schema module (e.g., "storyboard_plan")
        model_type: Model type ("gemini" or "gpt")
        include_music: Select the variant that requires musicPrompt

    Returns:
        Schema dictionary compatible with the specified model

    Raises:
        ValueError: If schema_name or model_type is invalid
    """
    if model_type not in ["gemini", "gpt"]:
        raise ValueError(f"Invalid model_type: {model_type}. Must be 'gemini' or 'gpt'.")

    if schema_name not in AVAILABLE_SCHEMAS:
        raise ValueError(f"Invalid schema_name: {schema_name}. Must be one of {AVAILABLE_SCHEMAS}")

    module = importlib.import_module(f"{__name__}.{schema_name}")

    attribute = "GEMINI_SCHEMA" if model_type == "gemini" else "GPT_SCHEMA"
    if include_music:
        attribute += "_MUSIC"

    return getattr(module, attribute)
