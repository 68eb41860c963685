"""
Audio Transcription Skill - Gemini speech-to-text for Mandarin answers.

Returns the student's words in Simplified Chinese plus tone-marked pinyin,
which the UI shows under the transcript.
"""

import asyncio
import json
import logging

from google import genai
from google.genai import types

from config import GEMINI_MODEL, TEMPERATURE_TRANSCRIPTION, get_gemini_client
from agent.prompts import Prompts
from models.feedback import Transcription

logger = logging.getLogger(__name__)


TRANSCRIPTION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "transcription": types.Schema(
            type=types.Type.STRING,
            description="The transcribed text in simplified Chinese.",
        ),
        "pinyin": types.Schema(
            type=types.Type.STRING,
            description="The corresponding pinyin with tone marks for the transcription.",
        ),
    },
    required=["transcription", "pinyin"],
)


class AudioTranscriber:
    """Transcribe a recorded answer."""

    def __init__(self, client: genai.Client = None):
        """Initialize with Gemini client."""
        self.client = client or get_gemini_client()
        self.model = GEMINI_MODEL

    async def transcribe(self, audio_data: bytes, mime_type: str) -> Transcription:
        """
        Transcribe Mandarin speech.

        Args:
            audio_data: Raw audio bytes (webm, wav, mp3, ...)
            mime_type: Audio MIME type

        Returns:
            Transcription with text and pinyin (pinyin may be empty)
        """
        logger.info(f"Transcribing audio ({mime_type}, {len(audio_data)} bytes)")

        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=[
                types.Part.from_bytes(data=audio_data, mime_type=mime_type),
                Prompts.TRANSCRIBE_AUDIO,
            ],
            config=types.GenerateContentConfig(
                temperature=TEMPERATURE_TRANSCRIPTION,
                response_mime_type="application/json",
                response_schema=TRANSCRIPTION_SCHEMA,
            ),
        )

        try:
            result = json.loads(response.text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse transcription response: {e}")
            logger.error(f"Raw response: {response.text}")
            raise

        transcription = Transcription.from_dict(result)
        logger.info(f"Transcription: {transcription.transcription[:50]}")
        return transcription
