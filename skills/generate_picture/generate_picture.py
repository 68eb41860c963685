"""
Picture Generation Skill - Imagen scene + guiding questions.

Picks a random scenario for the chosen difficulty, draws it with Imagen as a
16:9 cartoon, saves it, and asks Gemini for guiding questions about it.
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from google import genai
from google.genai import types

from config import (
    IMAGEN_MODEL,
    PICTURE_ASPECT_RATIO,
    PICTURE_MIME_TYPE,
    PICTURES_DIR,
    get_gemini_client,
)
from agent.prompts import Prompts
from models.feedback import Difficulty
from skills.guiding_questions.guiding_questions import GuidingQuestions

logger = logging.getLogger(__name__)


@dataclass
class PracticePicture:
    """A picture ready for practice."""
    image_data: bytes
    mime_type: str
    questions: list[str] = field(default_factory=list)
    image_path: Optional[Path] = None
    scenario: Optional[str] = None
    difficulty: Difficulty = "Medium"

    def to_dict(self) -> dict:
        """Convert to dict for JSON responses (image bytes omitted)."""
        return {
            "mimeType": self.mime_type,
            "questions": self.questions,
            "imagePath": str(self.image_path) if self.image_path else None,
            "scenario": self.scenario,
            "difficulty": self.difficulty,
        }


class PictureGenerator:
    """
    Generate a practice picture and its questions.

    Usage:
        generator = PictureGenerator()
        picture = await generator.generate_picture_and_questions("Hard")
    """

    def __init__(self, client: genai.Client = None, rng: random.Random = None):
        """Initialize with Gemini client."""
        self.client = client or get_gemini_client()
        self.model = IMAGEN_MODEL
        self.output_dir = PICTURES_DIR
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.questions = GuidingQuestions(client=self.client)
        self.rng = rng or random.Random()

    def pick_scenario(self, difficulty: Difficulty) -> str:
        return self.rng.choice(Prompts.scenarios(difficulty))

    async def generate_picture(self, difficulty: Difficulty = "Medium") -> PracticePicture:
        """Draw a random scenario for the difficulty (no questions yet)."""
        scenario = self.pick_scenario(difficulty)
        logger.info(f"Generating {difficulty} picture: {scenario[:60]}...")

        response = await asyncio.to_thread(
            self.client.models.generate_images,
            model=self.model,
            prompt=scenario,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type=PICTURE_MIME_TYPE,
                aspect_ratio=PICTURE_ASPECT_RATIO,
            ),
        )

        if not response.generated_images:
            raise RuntimeError("Picture generation failed - no image in response")

        image_data = response.generated_images[0].image.image_bytes
        image_path = self.output_dir / f"picture_{uuid.uuid4().hex[:8]}.png"
        image_path.write_bytes(image_data)
        logger.info(f"Saved picture: {image_path.name} ({len(image_data)} bytes)")

        return PracticePicture(
            image_data=image_data,
            mime_type=PICTURE_MIME_TYPE,
            image_path=image_path,
            scenario=scenario,
            difficulty=difficulty,
        )

    async def generate_picture_and_questions(self, difficulty: Difficulty = "Medium") -> PracticePicture:
        """Draw a picture and generate guiding questions for it."""
        picture = await self.generate_picture(difficulty)
        picture.questions = await self.questions.generate_questions(
            picture.image_data, picture.mime_type, difficulty
        )
        return picture

    async def questions_for_upload(
        self,
        image_data: bytes,
        mime_type: str,
        difficulty: Difficulty = "Medium",
    ) -> PracticePicture:
        """Use the student's own picture instead of generating one."""
        questions = await self.questions.generate_questions(image_data, mime_type, difficulty)
        return PracticePicture(
            image_data=image_data,
            mime_type=mime_type,
            questions=questions,
            difficulty=difficulty,
        )
