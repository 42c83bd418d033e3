"""
CampusCLEAR Configuration System
================================

This file contains ALL configuration for the CampusCLEAR interview coach.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the coach
# =============================================================================

# Credentials: either an API key, or a Google Cloud project for Vertex AI
GEMINI_API_KEY = None  # Or set GEMINI_API_KEY / GOOGLE_API_KEY
GOOGLE_CLOUD_PROJECT = None  # Optional: use Vertex AI instead of an API key
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Models
LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
TEXT_MODEL = "gemini-3-flash-preview"
EVALUATION_MODEL = "gemini-3-pro-preview"

# Interview settings
VOICE_NAME = "Puck"
DEFAULT_DIFFICULTY = "Medium"
VIDEO_FRAME_INTERVAL = 2.0  # seconds between frames sent to the model
CAMERA_INDEX = 0
INPUT_DEVICE = None  # None = system default microphone
OUTPUT_DEVICE = None  # None = system default speaker
TEXT_INTERVIEW_QUESTIONS = 5  # questions asked by the typed fallback interview

# Storage
WORKDIR = "./_campusclear"
PROFILES_DIR = "./_campusclear/profiles"

# Logging
LOG_FILE = "./_campusclear/campusclear.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_CHANNELS = 1
OUTPUT_CHANNELS = 1
CAPTURE_BLOCK_SIZE = 4096
OUTPUT_BUFFER_SIZE = 1024
PCM_SCALE = 32768.0

# Video
FRAME_WIDTH = 320
FRAME_HEIGHT = 240
FRAME_JPEG_QUALITY = 50
SNAPSHOT_WIDTH = 640
SNAPSHOT_HEIGHT = 480
SNAPSHOT_JPEG_QUALITY = 92

# Wire formats
AUDIO_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
IMAGE_MIME_TYPE = "image/jpeg"

# Endpoints
GENAI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GENAI_LIVE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
VERTEX_LOCATION = "us-central1"
VERTEX_LIVE_URL_TEMPLATE = (
    "wss://{location}-aiplatform.googleapis.com/ws/"
    "google.cloud.aiplatform.v1.LlmBidiService/BidiGenerateContent"
)

# LLM
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 2048
LIVE_MAX_MESSAGE_BYTES = 10_000_000
LIVE_PING_INTERVAL = 20


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    api_key: Optional[str] = None
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    vertex_location: str = VERTEX_LOCATION
    live_model: str = LIVE_MODEL
    text_model: str = TEXT_MODEL
    evaluation_model: str = EVALUATION_MODEL
    voice_name: str = VOICE_NAME
    default_difficulty: str = DEFAULT_DIFFICULTY
    video_frame_interval: float = VIDEO_FRAME_INTERVAL
    camera_index: int = CAMERA_INDEX
    input_device: Optional[int] = INPUT_DEVICE
    output_device: Optional[int] = OUTPUT_DEVICE
    workdir: str = WORKDIR
    profiles_dir: str = PROFILES_DIR
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def use_vertex(self) -> bool:
        """Vertex AI is used only when no API key is configured."""
        return not self.api_key and bool(self.google_cloud_project)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key) or bool(self.google_cloud_project)


def get_config() -> Config:
    """Load configuration, letting environment variables override the settings above."""
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or GEMINI_API_KEY
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    return Config(
        api_key=api_key,
        google_cloud_project=project,
        google_application_credentials=credentials,
        live_model=os.getenv("CAMPUSCLEAR_LIVE_MODEL") or LIVE_MODEL,
        voice_name=os.getenv("CAMPUSCLEAR_VOICE") or VOICE_NAME,
        log_level=os.getenv("CAMPUSCLEAR_LOG_LEVEL") or LOG_LEVEL,
    )
