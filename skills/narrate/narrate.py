"""
Narration Skill - read questions and answers aloud with Gemini TTS.

A single Narrator is shared by the whole app. Starting a new utterance
cancels the one in flight, the same way a browser's speech synthesis
behaves when you click "read aloud" twice.
"""

import asyncio
import logging
import uuid
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from google import genai
from google.genai import types

from config import (
    NARRATION_DIR,
    NARRATION_LOCALE,
    NARRATION_RATE,
    NARRATOR_VOICE,
    TTS_MODEL,
    get_gemini_client,
)
from agent.prompts import Prompts

logger = logging.getLogger(__name__)

# Audio format constants
SAMPLE_RATE = 24000
CHANNELS = 1
SAMPLE_WIDTH = 2  # 16-bit


class NarrationCancelled(Exception):
    """The utterance was cancelled before it finished."""


@dataclass
class NarrationResult:
    """Result of one utterance."""
    audio_path: Path
    duration_seconds: float
    voice_used: str
    text: str
    locale: str
    rate: float


def _write_wav(filename: Path, pcm_data: bytes) -> None:
    """Write PCM data to a WAV file."""
    with wave.open(str(filename), "wb") as wf:
        wf.setnchannels(CHANNELS)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(pcm_data)


def _calculate_duration(pcm_data: bytes) -> float:
    """Calculate audio duration from PCM data."""
    return len(pcm_data) / (SAMPLE_RATE * CHANNELS * SAMPLE_WIDTH)


def pace_for_rate(rate: float) -> str:
    """Map a speech rate multiplier to a pacing instruction key."""
    if rate < 0.95:
        return "slow"
    if rate > 1.2:
        return "fast"
    return "normal"


def build_narration_prompt(text: str, locale: str = NARRATION_LOCALE, rate: float = NARRATION_RATE) -> str:
    """TTS has no rate or language knob, so both go into the prompt."""
    pace = Prompts.NARRATION_PACE[pace_for_rate(rate)]
    language = Prompts.NARRATION_LANGUAGE.get(locale, f"in the language for locale {locale}")
    return f"{pace}(speak {language}) {text}"


class Narrator:
    """
    Speak text with Gemini TTS, one utterance at a time.

    Usage:
        narrator = Narrator()
        result = await narrator.speak("图里有什么？")
        narrator.cancel_all()
    """

    def __init__(self, client: genai.Client = None, voice: str = NARRATOR_VOICE):
        """Initialize with Gemini client."""
        self.client = client or get_gemini_client()
        self.model = TTS_MODEL
        self.voice = voice
        self.output_dir = NARRATION_DIR
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self._current: Optional[asyncio.Task] = None
        self._cancelled: set[asyncio.Task] = set()

    @property
    def speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    async def speak(
        self,
        text: str,
        locale: str = NARRATION_LOCALE,
        rate: float = NARRATION_RATE,
    ) -> NarrationResult:
        """
        Speak `text`, cancelling anything already being spoken.

        Raises:
            ValueError: if text is empty
            NarrationCancelled: if cancel_all() or another speak() interrupted it
        """
        if not text or not text.strip():
            raise ValueError("Narration text cannot be empty")

        self.cancel_all()
        task = asyncio.create_task(self._synthesize(text, locale, rate))
        self._current = task
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._cancelled:
                raise NarrationCancelled(f"Narration cancelled: {text[:30]}") from None
            raise
        finally:
            self._cancelled.discard(task)
            if self._current is task:
                self._current = None

    def cancel_all(self) -> bool:
        """Cancel the utterance in flight. Returns True if something was cancelled."""
        if self.speaking:
            logger.info("[Narrator] Cancelling current utterance")
            self._cancelled.add(self._current)
            self._current.cancel()
            return True
        return False

    async def _synthesize(self, text: str, locale: str, rate: float) -> NarrationResult:
        prompt = build_narration_prompt(text, locale, rate)
        logger.info(f"[Narrator] Speaking with voice {self.voice}: {text[:50]}...")

        def call_tts():
            return self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(
                                voice_name=self.voice,
                            )
                        )
                    ),
                ),
            )

        response = await asyncio.to_thread(call_tts)

        # Extract audio data
        audio_data = None
        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts:
                if part.inline_data:
                    audio_data = part.inline_data.data
                    break

        if not audio_data:
            raise RuntimeError("Narration failed - no audio in response")

        duration = _calculate_duration(audio_data)
        audio_path = self.output_dir / f"narration_{uuid.uuid4().hex[:8]}.wav"
        _write_wav(audio_path, audio_data)

        logger.info(f"[Narrator] Saved: {audio_path.name} ({duration:.2f}s)")

        return NarrationResult(
            audio_path=audio_path,
            duration_seconds=duration,
            voice_used=self.voice,
            text=text,
            locale=locale,
            rate=rate,
        )
