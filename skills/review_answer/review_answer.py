"""
Answer Review Skill - teacher-style feedback on a spoken answer.

Four kinds of review, each one Gemini call:
- Overall feedback on the recording (warm, 2-3 sentences)
- Grammar and wrong-word corrections on the transcript
- A model answer for the picture, with good words/sentences highlighted
- Pronunciation tips against a reference text
"""

import asyncio
import json
import logging
from typing import Any

from google import genai
from google.genai import types

from config import GEMINI_MODEL, TEMPERATURE_FEEDBACK, get_gemini_client
from agent.prompts import Prompts
from models.feedback import GrammarCorrection, PronunciationFeedback, SampleAnswerPart

logger = logging.getLogger(__name__)


GRAMMAR_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "corrections": types.Schema(
            type=types.Type.ARRAY,
            description="List of corrections for incorrect words or grammar. An empty array means no errors were found.",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "original": types.Schema(type=types.Type.STRING, description="The original incorrect phrase from the student's text."),
                    "corrected": types.Schema(type=types.Type.STRING, description="The corrected phrase."),
                    "explanation": types.Schema(type=types.Type.STRING, description="A simple explanation for the correction in Chinese."),
                },
                required=["original", "corrected", "explanation"],
            ),
        ),
    },
    required=["corrections"],
)

SAMPLE_ANSWER_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "answer": types.Schema(
            type=types.Type.ARRAY,
            description="An array of text segments for the sample answer.",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "text": types.Schema(type=types.Type.STRING, description="A segment of the answer."),
                    "highlight": types.Schema(
                        type=types.Type.BOOLEAN,
                        description="Optional. True if this segment should be highlighted for its good vocabulary or sentence structure.",
                    ),
                    "explanation": types.Schema(
                        type=types.Type.STRING,
                        description="Optional. A brief explanation in Chinese for the highlight, suitable for a 10-year-old.",
                    ),
                },
                required=["text"],
            ),
        ),
    },
    required=["answer"],
)

PRONUNCIATION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "overallFeedback": types.Schema(
            type=types.Type.STRING,
            description="A summary of the pronunciation feedback in Chinese, suitable for a 10-year-old.",
        ),
        "feedbackItems": types.Schema(
            type=types.Type.ARRAY,
            description="A list of specific words with pronunciation feedback. Empty if no errors.",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "word": types.Schema(type=types.Type.STRING, description="The word with the pronunciation issue."),
                    "pinyin": types.Schema(type=types.Type.STRING, description="The correct pinyin for the word."),
                    "feedback": types.Schema(type=types.Type.STRING, description="A simple, specific tip for improving the pronunciation of this word in Chinese."),
                },
                required=["word", "pinyin", "feedback"],
            ),
        ),
    },
    required=["overallFeedback", "feedbackItems"],
)


class AnswerReviewer:
    """
    Review a student's recorded answer like a patient teacher.

    Usage:
        reviewer = AnswerReviewer()
        feedback = await reviewer.audio_feedback(audio, "audio/webm", questions, keywords)
        corrections = await reviewer.grammar_feedback(transcript)
    """

    def __init__(self, client: genai.Client = None):
        """Initialize with Gemini client."""
        self.client = client or get_gemini_client()
        self.model = GEMINI_MODEL

    async def _generate(self, contents: list | str, schema: types.Schema = None):
        """Run one generate_content call off the event loop."""
        if schema is not None:
            config = types.GenerateContentConfig(
                temperature=TEMPERATURE_FEEDBACK,
                response_mime_type="application/json",
                response_schema=schema,
            )
        else:
            config = types.GenerateContentConfig(temperature=TEMPERATURE_FEEDBACK)

        return await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=contents,
            config=config,
        )

    @staticmethod
    def _parse_json(response, what: str) -> dict[str, Any]:
        try:
            return json.loads(response.text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {what} response: {e}")
            logger.error(f"Raw response: {response.text}")
            raise

    async def audio_feedback(
        self,
        audio_data: bytes,
        mime_type: str,
        questions: list[str],
        keywords: list[str] = None,
    ) -> str:
        """
        Short encouraging feedback on the whole answer.

        When `keywords` are given, the feedback also comments on how they
        were pronounced.
        """
        prompt = Prompts.audio_feedback(questions, keywords or [])
        logger.info(f"Reviewing answer audio ({len(audio_data)} bytes, {len(keywords or [])} keywords)")

        response = await self._generate([
            types.Part.from_bytes(data=audio_data, mime_type=mime_type),
            prompt,
        ])
        return response.text.strip()

    async def grammar_feedback(self, transcription: str) -> list[GrammarCorrection]:
        """Corrections for the transcript; empty list means no mistakes."""
        if not transcription or not transcription.strip():
            return []

        response = await self._generate(
            Prompts.GRAMMAR_FEEDBACK.format(transcription=transcription),
            schema=GRAMMAR_SCHEMA,
        )
        result = self._parse_json(response, "grammar")
        corrections = [GrammarCorrection.from_dict(c) for c in result.get("corrections", [])]
        logger.info(f"Grammar review: {len(corrections)} corrections")
        return corrections

    async def sample_answer(
        self,
        image_data: bytes,
        mime_type: str,
        questions: list[str],
    ) -> list[SampleAnswerPart]:
        """A model answer for the picture, split into (optionally highlighted) parts."""
        response = await self._generate(
            [
                types.Part.from_bytes(data=image_data, mime_type=mime_type),
                Prompts.SAMPLE_ANSWER.format(questions="; ".join(questions)),
            ],
            schema=SAMPLE_ANSWER_SCHEMA,
        )
        result = self._parse_json(response, "sample answer")
        return [SampleAnswerPart.from_dict(p) for p in result.get("answer", [])]

    async def pronunciation_feedback(
        self,
        audio_data: bytes,
        mime_type: str,
        reference_text: str,
    ) -> PronunciationFeedback:
        """Compare the recording against `reference_text` and suggest per-word fixes."""
        response = await self._generate(
            [
                types.Part.from_bytes(data=audio_data, mime_type=mime_type),
                Prompts.PRONUNCIATION_FEEDBACK.format(reference_text=reference_text),
            ],
            schema=PRONUNCIATION_SCHEMA,
        )
        result = self._parse_json(response, "pronunciation")
        feedback = PronunciationFeedback.from_dict(result)
        logger.info(f"Pronunciation review: {len(feedback.items)} words to practice")
        return feedback
