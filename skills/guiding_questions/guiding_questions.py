"""
Guiding Questions Skill - Gemini multimodal questions and vocabulary for a picture.

Given a picture, this skill produces:
- Guiding questions pitched at the chosen difficulty
- Key words to practice pronouncing
- Vocabulary (word, pinyin, part of speech, example sentence)
"""

import asyncio
import json
import logging

from google import genai
from google.genai import types

from config import GEMINI_MODEL, TEMPERATURE_QUESTIONS, get_gemini_client
from agent.prompts import Prompts
from models.feedback import Difficulty, VocabularyItem

logger = logging.getLogger(__name__)


KEYWORDS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "keywords": types.Schema(
            type=types.Type.ARRAY,
            description="A list of 3-5 key Chinese words (nouns or verbs).",
            items=types.Schema(type=types.Type.STRING),
        ),
    },
    required=["keywords"],
)

VOCABULARY_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "items": types.Schema(
            type=types.Type.ARRAY,
            description="A list of vocabulary items related to the image.",
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "word": types.Schema(type=types.Type.STRING, description="The Chinese word or phrase."),
                    "pinyin": types.Schema(type=types.Type.STRING, description="The pinyin for the word."),
                    "type": types.Schema(type=types.Type.STRING, description="The part of speech (e.g., '名词')."),
                    "sentence": types.Schema(type=types.Type.STRING, description="An example sentence."),
                },
                required=["word", "pinyin", "type", "sentence"],
            ),
        ),
    },
    required=["items"],
)


def parse_questions(text: str) -> list[str]:
    """One question per line; blank lines dropped."""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


class GuidingQuestions:
    """
    Picture → questions the student answers out loud.

    The questions also become the captions of the exported practice video.
    """

    def __init__(self, client: genai.Client = None):
        """Initialize with Gemini client."""
        self.client = client or get_gemini_client()
        self.model = GEMINI_MODEL

    async def generate_questions(
        self,
        image_data: bytes,
        mime_type: str,
        difficulty: Difficulty = "Medium",
    ) -> list[str]:
        """
        Generate guiding questions for a picture.

        Args:
            image_data: Raw image bytes
            mime_type: Image MIME type (e.g. image/png)
            difficulty: Easy, Medium, or Hard

        Returns:
            Questions in Simplified Chinese, in the order they should be asked
        """
        prompt = Prompts.guiding_questions(difficulty)
        logger.info(f"Generating {difficulty} guiding questions ({mime_type}, {len(image_data)} bytes)")

        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=[
                types.Part.from_bytes(data=image_data, mime_type=mime_type),
                prompt,
            ],
            config=types.GenerateContentConfig(temperature=TEMPERATURE_QUESTIONS),
        )

        questions = parse_questions(response.text)
        logger.info(f"Got {len(questions)} questions")
        return questions

    async def extract_keywords(self, questions: list[str]) -> list[str]:
        """
        Pick 3-5 key words from the questions for pronunciation practice.

        Never raises: an empty list is returned if there is nothing to do or
        the model call fails.
        """
        if not questions:
            return []

        prompt = Prompts.EXTRACT_KEYWORDS.format(questions=" ".join(questions))

        try:
            response = await asyncio.to_thread(
                self.client.models.generate_content,
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=KEYWORDS_SCHEMA,
                ),
            )
            result = json.loads(response.text)
            return [k for k in result.get("keywords", []) if k]
        except Exception as e:
            logger.error(f"Error extracting keywords: {e}")
            return []

    async def vocabulary_for_image(
        self,
        image_data: bytes,
        mime_type: str,
        difficulty: Difficulty = "Medium",
    ) -> list[VocabularyItem]:
        """Useful words for describing the picture."""
        prompt = Prompts.vocabulary(difficulty)

        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=[
                types.Part.from_bytes(data=image_data, mime_type=mime_type),
                prompt,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=VOCABULARY_SCHEMA,
            ),
        )

        try:
            result = json.loads(response.text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse vocabulary response: {e}")
            logger.error(f"Raw response: {response.text}")
            raise

        return [VocabularyItem.from_dict(item) for item in result.get("items", [])]
