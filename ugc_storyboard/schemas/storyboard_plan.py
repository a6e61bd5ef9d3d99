"""
Schema definitions for the storyboard plan.
Supports both Gemini and GPT-style (OpenRouter json_schema) structured output.

Key difference: Gemini includes propertyOrdering (non-standard),
GPT has strict additionalProperties: false on all nested objects.
The *_MUSIC variants add musicPrompt as a required field.
"""

import copy

GEMINI_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "hook": {
            "type": "STRING",
            "description": "A catchy opening line for the first 8 seconds of the ad"
        },
        "fullScript": {
            "type": "STRING",
            "description": "The complete voice-over script for the ad"
        },
        "frames": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "sceneDescription": {"type": "STRING"},
                    "cameraAngle": {"type": "STRING"},
                    "script": {"type": "STRING"},
                    "productOnly": {"type": "BOOLEAN"}
                },
                "required": ["sceneDescription", "cameraAngle", "script"],
                "propertyOrdering": ["sceneDescription", "cameraAngle", "script", "productOnly"]
            }
        }
    },
    "required": ["hook", "fullScript", "frames"],
    "propertyOrdering": ["hook", "fullScript", "frames"]
}

GEMINI_SCHEMA_MUSIC = copy.deepcopy(GEMINI_SCHEMA)
GEMINI_SCHEMA_MUSIC["properties"]["musicPrompt"] = {
    "type": "STRING",
    "description": "A short prompt describing the background music"
}
GEMINI_SCHEMA_MUSIC["required"].append("musicPrompt")
GEMINI_SCHEMA_MUSIC["propertyOrdering"].append("musicPrompt")

GPT_SCHEMA = {
    "type": "object",
    "properties": {
        "hook": {"type": "string"},
        "fullScript": {"type": "string"},
        "frames": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "sceneDescription": {"type": "string"},
                    "cameraAngle": {"type": "string"},
                    "script": {"type": "string"},
                    "productOnly": {"type": "boolean"}
                },
                "required": ["sceneDescription", "cameraAngle", "script", "productOnly"],
                "additionalProperties": False
            }
        }
    },
    "required": ["hook", "fullScript", "frames"],
    "additionalProperties": False
}

GPT_SCHEMA_MUSIC = copy.deepcopy(GPT_SCHEMA)
GPT_SCHEMA_MUSIC["properties"]["musicPrompt"] = {"type": "string"}
GPT_SCHEMA_MUSIC["required"].append("musicPrompt")
