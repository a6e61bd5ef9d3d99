"""Configuration and setup for UGC Storyboard Studio"""

import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Backend Selection ("gemini" or "openrouter")
STORYBOARD_BACKEND = os.getenv('STORYBOARD_BACKEND', 'gemini')

# Credentials (per-session credential may override these)
GEMINI_API_KEY = os.getenv('GEMINI_API_KEY') or os.getenv('API_KEY')
OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')

# Gemini Models
GEMINI_TEXT_MODEL = os.getenv('GEMINI_TEXT_MODEL', 'gemini-2.5-pro')
GEMINI_IMAGE_MODEL = os.getenv('GEMINI_IMAGE_MODEL', 'gemini-2.5-flash-image')

# OpenRouter Configuration
OPENROUTER_BASE_URL = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
OPENROUTER_TEXT_MODEL = os.getenv('OPENROUTER_TEXT_MODEL', 'google/gemini-2.5-pro')
OPENROUTER_IMAGE_MODEL = os.getenv('OPENROUTER_IMAGE_MODEL', 'google/gemini-2.5-flash-image-preview')
OPENROUTER_IMAGE_API = os.getenv('OPENROUTER_IMAGE_API', 'chat')  # "chat" or "images"
OPENROUTER_TEXT_TEMPERATURE = 0.7
OPENROUTER_TEXT_MAX_TOKENS = 4096  # Ten-frame plans overflow smaller limits

# Browser-side proxy routing (requests go through our own proxy without a key)
USE_PROXY = _env_flag('USE_PROXY', False)
PROXY_BASE = os.getenv('PROXY_BASE', 'http://localhost:8787/api')

# Proxy Server Configuration
PORT = int(os.getenv('PORT', '8787'))
OPENROUTER_SITE_URL = os.getenv('OPENROUTER_SITE_URL', 'http://localhost:5173')
OPENROUTER_APP_NAME = os.getenv('OPENROUTER_APP_NAME', 'UGC AI Storyboard')
PROXY_IMAGE_MODEL = os.getenv('MODEL', 'google/gemini-2.5-flash-image')

# Retry Configuration
UPSTREAM_MAX_RETRIES = int(os.getenv('UPSTREAM_MAX_RETRIES', '2'))
UPSTREAM_RETRY_BASE_DELAY = 1.0  # seconds, doubled per attempt plus jitter
UPSTREAM_TIMEOUT = 120.0  # seconds

# Storyboard Configuration
MIN_FRAMES = 1
MAX_FRAMES = 10
OUTPUT_LANGUAGE = os.getenv('OUTPUT_LANGUAGE', 'Bahasa Indonesia')
PRODUCT_ONLY_MIN_FRAMES = 3  # Plans with at least this many frames need one product-only shot

# Plan Validation
STRICT_FRAME_COUNT = False  # Reject short plans instead of padding them; long plans are always rejected
ENABLE_PLAN_RULE_CHECK = False  # Re-request plans that break the product-only rule
PLAN_RULE_MAX_ATTEMPTS = 3

# Frame Rendering
ENABLE_ASPECT_RATIO_CORRECTION = True  # Center crop provider images to the exact ratio
CHAIN_FRAMES = False  # Feed each rendered frame as reference for the next one
PLACEHOLDER_SCALE = 0.25  # Placeholder size relative to the canonical resolution

# Sentinel values for frames the plan did not provide
SENTINEL_SCRIPT = "[frame data unavailable]"
SENTINEL_CAMERA_ANGLE = "unknown"

# Aspect Ratio Mapping
# Fixed lookup: canonical resolution, orientation directive and images-API size
ASPECT_RATIOS = {
    "9:16": {
        "width": 1080,
        "height": 1920,
        "orientation": "portrait",
        "description": "This is a vertical portrait frame. Do not crop a horizontal image.",
        "api_size": "1024x1536"
    },
    "1:1": {
        "width": 1080,
        "height": 1080,
        "orientation": "square",
        "description": "This is a square frame.",
        "api_size": "1024x1024"
    },
    "16:9": {
        "width": 1920,
        "height": 1080,
        "orientation": "landscape",
        "description": "This is a horizontal landscape frame. Do not crop a vertical image.",
        "api_size": "1536x1024"
    }
}

CAMERA_ANGLES = [
    "high angle",
    "side profile",
    "bird's eye view",
    "low angle",
    "macro camera",
    "eye-level",
    "¾ angle",
    "close-up product",
    "POV"
]

# Logging Configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def configure_logging(level: str = None):
    """Configure root logging for the server entry point"""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
