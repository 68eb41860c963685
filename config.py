"""
Configuration for Picture Talk Coach.

Model Selection:
- Text / multimodal: gemini-2.5-flash (override with GEMINI_MODEL)
- Picture generation: imagen-4.0-generate-001 (override with IMAGEN_MODEL)
- Narration: gemini-2.5-flash-preview-tts (override with TTS_MODEL)

API Access:
- Development: Google AI Studio (GOOGLE_API_KEY)
- Production: Vertex AI (USE_VERTEX_AI=true + GOOGLE_CLOUD_PROJECT)
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# =============================================================================
# Model Configuration
# =============================================================================

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
IMAGEN_MODEL = os.getenv("IMAGEN_MODEL", "imagen-4.0-generate-001")
TTS_MODEL = os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts")

# Voice used for narrating questions and sample answers
NARRATOR_VOICE = os.getenv("NARRATOR_VOICE", "Leda")

# =============================================================================
# API Configuration
# =============================================================================

# Google AI Studio (for development/prototyping)
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

# Vertex AI (for production)
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
GOOGLE_CLOUD_LOCATION = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")
USE_VERTEX_AI = os.getenv("USE_VERTEX_AI", "false").lower() == "true"


def get_gemini_client():
    """
    Get the appropriate Gemini client based on configuration.

    Returns either an AI Studio client or a Vertex AI client.
    """
    from google import genai

    if USE_VERTEX_AI:
        if not GOOGLE_CLOUD_PROJECT:
            raise ValueError("USE_VERTEX_AI=true requires GOOGLE_CLOUD_PROJECT to be set.")
        return genai.Client(
            vertexai=True,
            project=GOOGLE_CLOUD_PROJECT,
            location=GOOGLE_CLOUD_LOCATION,
        )

    if not GOOGLE_API_KEY:
        raise ValueError(
            "GOOGLE_API_KEY not set. Either set GOOGLE_API_KEY for AI Studio, "
            "or set USE_VERTEX_AI=true with GOOGLE_CLOUD_PROJECT for Vertex AI."
        )
    return genai.Client(api_key=GOOGLE_API_KEY)


# =============================================================================
# Paths
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.resolve()  # Always absolute
ASSETS_DIR = PROJECT_ROOT / "assets"
# Always resolve OUTPUT_DIR relative to PROJECT_ROOT, not CWD
_output_env = os.getenv("OUTPUT_DIR")
if _output_env:
    OUTPUT_DIR = (PROJECT_ROOT / _output_env).resolve()
else:
    OUTPUT_DIR = ASSETS_DIR / "outputs"
SKILLS_DIR = PROJECT_ROOT / "skills"

# Output subdirectories
PICTURES_DIR = OUTPUT_DIR / "pictures"
EXPORTS_DIR = OUTPUT_DIR / "exports"
NARRATION_DIR = OUTPUT_DIR / "narration"

# Saved practice history (JSON file)
_sessions_env = os.getenv("SESSIONS_FILE")
SESSIONS_FILE = (PROJECT_ROOT / _sessions_env).resolve() if _sessions_env else OUTPUT_DIR / "sessions.json"

# Ensure directories exist
for dir_path in [OUTPUT_DIR, PICTURES_DIR, EXPORTS_DIR, NARRATION_DIR]:
    dir_path.mkdir(parents=True, exist_ok=True)

# =============================================================================
# Practice Settings
# =============================================================================

DIFFICULTIES = ["Easy", "Medium", "Hard"]
DEFAULT_DIFFICULTY = "Medium"

# Generated pictures are always landscape
PICTURE_ASPECT_RATIO = "16:9"
PICTURE_MIME_TYPE = "image/png"

# Narration defaults (matches the browser speech settings students are used to)
NARRATION_LOCALE = "zh-CN"
NARRATION_RATE = 0.9

# Upload limits
MAX_IMAGE_SIZE = 10 * 1024 * 1024   # 10MB
MAX_AUDIO_SIZE = 20 * 1024 * 1024   # 20MB

# =============================================================================
# Video Export Settings
# =============================================================================

VIDEO_EXPORT_WIDTH = 1280
VIDEO_EXPORT_FPS = 30
SLIDE_DURATION_SECONDS = 4.0
FADE_DURATION_SECONDS = 0.5
OVERLAY_OPACITY = 0.5
TERMINAL_CAPTION = "练习结束！"
EXPORT_FILENAME = "看图说话练习.webm"
EXPORT_MIME_TYPE = "video/webm"
VIDEO_CODEC = "libvpx-vp9"
VIDEO_CONTAINER = "webm"

# Bold CJK font for captions. Falls back to common system locations.
CAPTION_FONT_PATH = os.getenv("CAPTION_FONT_PATH")
CAPTION_FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Bold.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-zenhei.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
]

# =============================================================================
# Agent Settings
# =============================================================================

TEMPERATURE_QUESTIONS = 1
TEMPERATURE_FEEDBACK = 1
TEMPERATURE_TRANSCRIPTION = 0

# =============================================================================
# Logging
# =============================================================================

import logging

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# =============================================================================
# Print Configuration (for debugging)
# =============================================================================


def print_config():
    """Print current configuration for debugging."""
    print(f"""
Picture Talk Coach Configuration
================================
Model: {GEMINI_MODEL}
Image Model: {IMAGEN_MODEL}
TTS Model: {TTS_MODEL}
API Mode: {"Vertex AI" if USE_VERTEX_AI else "AI Studio"}
Project Root: {PROJECT_ROOT}
Output Dir: {OUTPUT_DIR}
Sessions File: {SESSIONS_FILE}
Export: {VIDEO_EXPORT_WIDTH}px @ {VIDEO_EXPORT_FPS}fps, {VIDEO_CODEC}/{VIDEO_CONTAINER}
Log Level: {LOG_LEVEL}
""")


if __name__ == "__main__":
    print_config()
