"""
API Server for Picture Talk Coach.

This FastAPI server provides:
1. Picture + guiding question generation (or questions for an uploaded picture)
2. Answer review: transcription, feedback, grammar, sample answer, pronunciation
3. Read-aloud narration
4. Practice history
5. Export of the picture and its questions as a captioned WebM video

Run with: uvicorn ui.api_server:app --reload --port 8000
"""

import base64
import binascii
import functools
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Literal, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import (
    DIFFICULTIES,
    EXPORT_FILENAME,
    EXPORT_MIME_TYPE,
    GEMINI_MODEL,
    IMAGEN_MODEL,
    MAX_AUDIO_SIZE,
    MAX_IMAGE_SIZE,
    NARRATION_LOCALE,
    NARRATION_RATE,
    SESSIONS_FILE,
    TTS_MODEL,
    get_gemini_client,
)
from models.session_store import SessionStore
from skills.generate_picture.generate_picture import PictureGenerator
from skills.guiding_questions.guiding_questions import GuidingQuestions
from skills.narrate.narrate import NarrationCancelled, Narrator
from skills.render_caption_video.render_caption_video import (
    CaptionVideoRenderer,
    EncodingError,
    ImageLoadError,
    UnsupportedFormatError,
    VideoExportError,
)
from skills.review_answer.review_answer import AnswerReviewer
from skills.transcribe_audio.transcribe_audio import AudioTranscriber

# =============================================================================
# Setup Logging - File + Console
# =============================================================================

# Create logs directory
LOGS_DIR = Path(__file__).parent.parent / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Generate session log filename with timestamp
_session_start = time.strftime("%Y%m%d_%H%M%S")
_log_file = LOGS_DIR / f"server_{_session_start}.log"

# Configure logging to both file and console
# Use force=True to override any existing handlers (uvicorn issue)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(_log_file, mode='a', encoding="utf-8"),
        logging.StreamHandler()
    ],
    force=True
)
logger = logging.getLogger("api_server")
logger.setLevel(logging.INFO)
logger.info(f"Server session started. Log file: {_log_file}")

# Initialize FastAPI app
app = FastAPI(
    title="Picture Talk Coach API",
    description="看图说话 practice powered by Gemini",
    version="0.1.0",
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}

# User-facing error messages (shown as-is by the front end)
MSG_NOTHING_TO_EXPORT = "没有图片或问题可供导出。"
MSG_PICTURE_FAILED = "生成内容时出现问题，请稍后再试。"
MSG_UPLOAD_FAILED = "根据您的图片生成问题时出现问题，请稍后再试。"


# =============================================================================
# Dependencies (overridable in tests)
# =============================================================================


@functools.lru_cache(maxsize=1)
def get_client():
    """Shared Gemini client, created on first use."""
    return get_gemini_client()


def get_picture_generator(client=Depends(get_client)) -> PictureGenerator:
    return PictureGenerator(client=client)


def get_guiding_questions(client=Depends(get_client)) -> GuidingQuestions:
    return GuidingQuestions(client=client)


def get_transcriber(client=Depends(get_client)) -> AudioTranscriber:
    return AudioTranscriber(client=client)


def get_reviewer(client=Depends(get_client)) -> AnswerReviewer:
    return AnswerReviewer(client=client)


_narrator: Optional[Narrator] = None


def get_narrator(client=Depends(get_client)) -> Narrator:
    """One narrator for the whole process so cancel_all() reaches every utterance."""
    global _narrator
    if _narrator is None:
        _narrator = Narrator(client=client)
    return _narrator


@functools.lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    return SessionStore(SESSIONS_FILE)


def get_renderer() -> CaptionVideoRenderer:
    return CaptionVideoRenderer()


# =============================================================================
# Request/Response Models
# =============================================================================

DifficultyField = Literal["Easy", "Medium", "Hard"]


class PictureRequest(BaseModel):
    """Request a new generated picture."""
    difficulty: DifficultyField = "Medium"


class PictureResponse(BaseModel):
    """A practice picture with its guiding questions."""
    imageBase64: str
    mimeType: str
    questions: list[str]
    difficulty: DifficultyField
    scenario: Optional[str] = None


class QuestionsRequest(BaseModel):
    questions: list[str] = []


class ImageRequest(BaseModel):
    """A picture already held by the client, as base64."""
    imageBase64: str
    mimeType: str = "image/png"
    difficulty: DifficultyField = "Medium"
    questions: list[str] = []


class GrammarRequest(BaseModel):
    transcription: str


class NarrateRequest(BaseModel):
    text: str
    locale: str = NARRATION_LOCALE
    rate: float = Field(default=NARRATION_RATE, gt=0, le=4)


class ExportVideoRequest(BaseModel):
    """Picture + questions to export as a video."""
    imageBase64: Optional[str] = None
    mimeType: str = "image/png"
    questions: list[str] = []


# =============================================================================
# Helpers
# =============================================================================


async def _read_upload(file: UploadFile, max_size: int, kind: str) -> bytes:
    """Read an uploaded file, enforcing a size limit."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail=f"Empty {kind} upload")
    if len(content) > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large: {len(content)} bytes (max: {max_size})"
        )
    return content


def _decode_base64(data: str, kind: str) -> bytes:
    """Decode base64 (a data: URL prefix is tolerated)."""
    if data.startswith("data:"):
        data = data.partition(",")[2]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid base64 {kind}: {e}")


def _check_difficulty(difficulty: str) -> str:
    if difficulty not in DIFFICULTIES:
        raise HTTPException(status_code=400, detail=f"Unknown difficulty: {difficulty}")
    return difficulty


def _export_error_status(error: VideoExportError) -> int:
    if isinstance(error, ImageLoadError):
        return 422
    if isinstance(error, UnsupportedFormatError):
        return 501
    return 500


# =============================================================================
# Endpoints
# =============================================================================


@app.get("/health")
async def health():
    """Liveness check with the configured models."""
    return {
        "status": "ok",
        "models": {"text": GEMINI_MODEL, "image": IMAGEN_MODEL, "tts": TTS_MODEL},
    }


@app.post("/api/picture", response_model=PictureResponse)
async def generate_picture(
    request: PictureRequest,
    generator: PictureGenerator = Depends(get_picture_generator),
):
    """Generate a picture for the difficulty and guiding questions for it."""
    logger.info(f"Generating picture ({request.difficulty})")
    try:
        picture = await generator.generate_picture_and_questions(request.difficulty)
    except Exception as e:
        logger.error(f"Picture generation failed: {e}")
        raise HTTPException(status_code=500, detail=f"{MSG_PICTURE_FAILED} ({e})")

    return PictureResponse(
        imageBase64=base64.b64encode(picture.image_data).decode("ascii"),
        mimeType=picture.mime_type,
        questions=picture.questions,
        difficulty=picture.difficulty,
        scenario=picture.scenario,
    )


@app.post("/api/picture/upload", response_model=PictureResponse)
async def upload_picture(
    file: UploadFile = File(...),
    difficulty: str = Form(default="Medium"),
    generator: PictureGenerator = Depends(get_picture_generator),
):
    """Guiding questions for the student's own picture."""
    _check_difficulty(difficulty)
    mime_type = file.content_type or "image/jpeg"
    if mime_type not in IMAGE_MIME_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {mime_type}")

    content = await _read_upload(file, MAX_IMAGE_SIZE, "image")
    logger.info(f"Uploaded picture: {file.filename} ({len(content)} bytes)")

    try:
        picture = await generator.questions_for_upload(content, mime_type, difficulty)
    except Exception as e:
        logger.error(f"Question generation for upload failed: {e}")
        raise HTTPException(status_code=500, detail=f"{MSG_UPLOAD_FAILED} ({e})")

    return PictureResponse(
        imageBase64=base64.b64encode(content).decode("ascii"),
        mimeType=mime_type,
        questions=picture.questions,
        difficulty=difficulty,
    )


@app.post("/api/keywords")
async def keywords(
    request: QuestionsRequest,
    questions: GuidingQuestions = Depends(get_guiding_questions),
):
    """Key words from the questions for pronunciation practice."""
    return {"keywords": await questions.extract_keywords(request.questions)}


@app.post("/api/vocabulary")
async def vocabulary(
    request: ImageRequest,
    questions: GuidingQuestions = Depends(get_guiding_questions),
):
    """Vocabulary for describing the picture."""
    image_data = _decode_base64(request.imageBase64, "image")
    try:
        items = await questions.vocabulary_for_image(image_data, request.mimeType, request.difficulty)
    except Exception as e:
        logger.error(f"Vocabulary generation failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"items": [item.to_dict() for item in items]}


@app.post("/api/transcribe")
async def transcribe(
    file: UploadFile = File(...),
    transcriber: AudioTranscriber = Depends(get_transcriber),
):
    """Transcribe a recorded answer."""
    content = await _read_upload(file, MAX_AUDIO_SIZE, "audio")
    mime_type = file.content_type or "audio/webm"
    try:
        result = await transcriber.transcribe(content, mime_type)
    except Exception as e:
        logger.error(f"Transcription failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@app.post("/api/feedback")
async def feedback(
    file: UploadFile = File(...),
    questions: list[str] = Form(default=[]),
    keywords: list[str] = Form(default=[]),
    reviewer: AnswerReviewer = Depends(get_reviewer),
):
    """Teacher feedback on a recorded answer."""
    content = await _read_upload(file, MAX_AUDIO_SIZE, "audio")
    mime_type = file.content_type or "audio/webm"
    try:
        text = await reviewer.audio_feedback(content, mime_type, questions, keywords)
    except Exception as e:
        logger.error(f"Feedback failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"feedback": text}


@app.post("/api/grammar")
async def grammar(
    request: GrammarRequest,
    reviewer: AnswerReviewer = Depends(get_reviewer),
):
    """Grammar and wrong-word corrections for a transcript."""
    try:
        corrections = await reviewer.grammar_feedback(request.transcription)
    except Exception as e:
        logger.error(f"Grammar review failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"corrections": [c.to_dict() for c in corrections]}


@app.post("/api/sample-answer")
async def sample_answer(
    request: ImageRequest,
    reviewer: AnswerReviewer = Depends(get_reviewer),
):
    """Model answer for the picture and questions."""
    image_data = _decode_base64(request.imageBase64, "image")
    try:
        parts = await reviewer.sample_answer(image_data, request.mimeType, request.questions)
    except Exception as e:
        logger.error(f"Sample answer failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"answer": [p.to_dict() for p in parts]}


@app.post("/api/pronunciation")
async def pronunciation(
    file: UploadFile = File(...),
    reference_text: str = Form(...),
    reviewer: AnswerReviewer = Depends(get_reviewer),
):
    """Pronunciation tips for a reading of `reference_text`."""
    content = await _read_upload(file, MAX_AUDIO_SIZE, "audio")
    mime_type = file.content_type or "audio/webm"
    try:
        result = await reviewer.pronunciation_feedback(content, mime_type, reference_text)
    except Exception as e:
        logger.error(f"Pronunciation review failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@app.post("/api/narrate")
async def narrate(
    request: NarrateRequest,
    narrator: Narrator = Depends(get_narrator),
):
    """Read text aloud; returns a WAV file."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="text required")
    try:
        result = await narrator.speak(request.text, request.locale, request.rate)
    except NarrationCancelled as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Narration failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return FileResponse(
        result.audio_path,
        media_type="audio/wav",
        background=BackgroundTask(result.audio_path.unlink, missing_ok=True),
    )


@app.post("/api/narrate/cancel")
async def cancel_narration(narrator: Narrator = Depends(get_narrator)):
    """Stop whatever is being read aloud."""
    return {"cancelled": narrator.cancel_all()}


@app.get("/api/sessions")
async def list_sessions(store: SessionStore = Depends(get_session_store)):
    """Saved practice sessions, newest first."""
    return {"sessions": [s.to_dict() for s in store.get_sessions()]}


@app.post("/api/sessions")
async def save_session(
    payload: dict = Body(...),
    store: SessionStore = Depends(get_session_store),
):
    """Save a practice session (id and timestamp are assigned by the server)."""
    try:
        session = store.save(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid session: {e}")
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save session: {e}")
    return session.to_dict()


@app.delete("/api/sessions/{session_id}")
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    """Delete a saved session."""
    try:
        deleted = store.delete(session_id)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete session: {e}")
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"deleted": session_id}


@app.post("/api/export-video")
async def export_video(
    request: ExportVideoRequest,
    renderer: CaptionVideoRenderer = Depends(get_renderer),
):
    """
    Render the picture with its questions as captions and return the WebM.

    Error codes: 422 image could not be decoded, 501 encoder not available,
    500 encoding failed.
    """
    if not request.imageBase64 or not request.questions:
        raise HTTPException(status_code=400, detail=MSG_NOTHING_TO_EXPORT)

    image_data = _decode_base64(request.imageBase64, "image")
    logger.info(f"Exporting video with {len(request.questions)} questions")

    try:
        output_path = await renderer.render(image_data, request.questions)
    except VideoExportError as e:
        raise HTTPException(status_code=_export_error_status(e), detail=f"导出视频失败: {e}")

    # The export directory only lives until the download has been sent
    return FileResponse(
        output_path,
        media_type=EXPORT_MIME_TYPE,
        filename=EXPORT_FILENAME,
        background=BackgroundTask(shutil.rmtree, output_path.parent, ignore_errors=True),
    )


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    print("\n" + "=" * 60)
    print("Picture Talk Coach API Server")
    print("=" * 60)
    print(f"Model: {GEMINI_MODEL}")
    print(f"API Docs: http://localhost:8000/docs")
    print("=" * 60 + "\n")

    is_production = os.getenv("PICTURE_TALK_ENV") == "production"
    uvicorn.run(
        "ui.api_server:app",
        host="0.0.0.0",
        port=8000,
        reload=not is_production,
        workers=2 if is_production else 1,
    )
