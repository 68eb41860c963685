"""
Practice session model - one saved attempt at a picture.

A session keeps everything needed to review the attempt later: the picture,
the questions, the recording, and every piece of feedback the student got.
"""

from dataclasses import dataclass, field
from typing import Optional

from .feedback import (
    Difficulty,
    GrammarCorrection,
    PronunciationFeedback,
    SampleAnswerPart,
)


@dataclass
class PracticeSession:
    """A saved practice attempt. `timestamp` is milliseconds since the epoch."""

    # Identity (assigned by SessionStore.save)
    id: str
    timestamp: int

    # Picture
    image_base64: str
    image_mime_type: str
    questions: list[str] = field(default_factory=list)
    difficulty: Difficulty = "Medium"

    # Recording
    audio_base64: Optional[str] = None
    audio_mime_type: Optional[str] = None

    # Feedback
    transcription: Optional[str] = None
    pinyin: Optional[str] = None
    feedback: Optional[str] = None
    grammar_corrections: Optional[list[GrammarCorrection]] = None
    sample_answer: Optional[list[SampleAnswerPart]] = None
    pronunciation_feedback: Optional[PronunciationFeedback] = None

    def to_dict(self) -> dict:
        """Serialize session to dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "imageBase64": self.image_base64,
            "imageMimeType": self.image_mime_type,
            "questions": list(self.questions),
            "difficulty": self.difficulty,
            "audioBase64": self.audio_base64,
            "audioMimeType": self.audio_mime_type,
            "transcription": self.transcription,
            "pinyin": self.pinyin,
            "feedback": self.feedback,
            "grammarFeedback": (
                {"corrections": [c.to_dict() for c in self.grammar_corrections]}
                if self.grammar_corrections is not None else None
            ),
            "sampleAnswer": (
                [p.to_dict() for p in self.sample_answer]
                if self.sample_answer is not None else None
            ),
            "pronunciationFeedback": (
                self.pronunciation_feedback.to_dict()
                if self.pronunciation_feedback is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PracticeSession":
        """Deserialize session from dictionary."""
        grammar = data.get("grammarFeedback")
        sample = data.get("sampleAnswer")
        pronunciation = data.get("pronunciationFeedback")
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            image_base64=data["imageBase64"],
            image_mime_type=data.get("imageMimeType", "image/png"),
            questions=list(data.get("questions", [])),
            difficulty=data.get("difficulty", "Medium"),
            audio_base64=data.get("audioBase64"),
            audio_mime_type=data.get("audioMimeType"),
            transcription=data.get("transcription"),
            pinyin=data.get("pinyin"),
            feedback=data.get("feedback"),
            grammar_corrections=(
                [GrammarCorrection.from_dict(c) for c in grammar.get("corrections", [])]
                if grammar is not None else None
            ),
            sample_answer=[SampleAnswerPart.from_dict(p) for p in sample] if sample is not None else None,
            pronunciation_feedback=(
                PronunciationFeedback.from_dict(pronunciation) if pronunciation is not None else None
            ),
        )

    def summary(self) -> str:
        """Short one-line description for logs."""
        first_question = self.questions[0] if self.questions else "(no questions)"
        return f"[{self.id}] {self.difficulty}: {first_question[:30]}"
