"""Configuration constants and environment variable loading for Style Mixer."""

import os
from dotenv import load_dotenv

load_dotenv()

# ==================== API KEYS ====================
GEMINI_API_KEY_ENV = "GEMINI_API_KEY"

# ==================== ENDPOINT ====================
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)

# ==================== MODELS ====================
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "gemini-3-pro-image-preview")
VIDEO_MODEL = os.getenv("VIDEO_MODEL", "veo-3.1-fast-generate-preview")

# ==================== IMAGE GENERATION ====================
IMAGE_SIZE = "1K"
IMAGE_ASPECT_RATIO = "3:4"
SUPPORTED_IMAGE_TYPES = (
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
)

# ==================== VIDEO GENERATION ====================
VIDEO_COUNT = 1
VIDEO_RESOLUTION = "720p"
VIDEO_ASPECT_RATIO = "9:16"  # Veo supports 9:16 or 16:9

# ==================== TIMEOUTS ====================
COMPOSE_TIMEOUT = float(os.getenv("COMPOSE_TIMEOUT", "120"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", "120"))
DOWNLOAD_MAX_REDIRECTS = int(os.getenv("DOWNLOAD_MAX_REDIRECTS", "5"))

# ==================== POLLING ====================
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "5"))
POLL_BACKOFF = float(os.getenv("POLL_BACKOFF", "1.5"))
POLL_MAX_INTERVAL = float(os.getenv("POLL_MAX_INTERVAL", "30"))
POLL_MAX_WAIT = float(os.getenv("POLL_MAX_WAIT", "600"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "120"))

# ==================== ERROR SIGNATURES ====================
ENTITY_NOT_FOUND_SIGNATURE = "Requested entity was not found"
INVALID_KEY_SIGNATURE = "API_KEY_INVALID"
