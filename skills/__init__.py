"""
Skills - Composable capabilities for the Picture Talk Coach.

Each skill is a directory containing:
- SKILL.md: Metadata with YAML frontmatter + detailed instructions
- skill_name.py: Implementation
"""

import logging
from pathlib import Path

# Skill directories
SKILLS_DIR = Path(__file__).parent

logger = logging.getLogger(__name__)

# Import skills from subdirectories
from .generate_picture.generate_picture import PictureGenerator, PracticePicture
from .guiding_questions.guiding_questions import GuidingQuestions
from .transcribe_audio.transcribe_audio import AudioTranscriber
from .review_answer.review_answer import AnswerReviewer
from .narrate.narrate import Narrator, NarrationCancelled, NarrationResult

# Video export
from .render_caption_video.render_caption_video import (
    CaptionVideoRenderer,
    EncodingError,
    ImageLoadError,
    UnsupportedFormatError,
    VideoExportError,
)

# Verification
from .verify_output import verify_video, VerificationResult

__all__ = [
    "PictureGenerator",
    "PracticePicture",
    "GuidingQuestions",
    "AudioTranscriber",
    "AnswerReviewer",
    "Narrator",
    "NarrationCancelled",
    "NarrationResult",
    # Video export
    "CaptionVideoRenderer",
    "EncodingError",
    "ImageLoadError",
    "UnsupportedFormatError",
    "VideoExportError",
    # Verification
    "verify_video",
    "VerificationResult",
    "SKILLS_DIR",
]


def list_skills() -> list[dict]:
    """
    List all available skills with their metadata.

    Returns list of dicts with name, description, and path.
    """
    import yaml

    skills = []
    for skill_dir in sorted(SKILLS_DIR.iterdir()):
        if skill_dir.is_dir() and not skill_dir.name.startswith("_"):
            skill_md = skill_dir / "SKILL.md"
            if skill_md.exists():
                content = skill_md.read_text(encoding="utf-8")
                # Extract YAML frontmatter
                if content.startswith("---"):
                    end = content.find("---", 3)
                    if end > 0:
                        frontmatter = content[3:end].strip()
                        try:
                            metadata = yaml.safe_load(frontmatter)
                        except yaml.YAMLError as e:
                            logger.warning(f"Bad SKILL.md in {skill_dir.name}: {e}")
                            continue
                        skills.append({
                            "name": metadata.get("name", skill_dir.name),
                            "description": metadata.get("description", ""),
                            "triggers": metadata.get("triggers", []),
                            "keywords": metadata.get("keywords", []),
                            "path": str(skill_dir),
                        })
    return skills


def get_skill_context() -> str:
    """
    Get skill summaries (name + description per skill) as markdown.
    """
    skills = list_skills()
    lines = ["## Available Skills\n"]
    for skill in skills:
        lines.append(f"- **{skill['name']}**: {skill['description']}")
    return "\n".join(lines)
