"""
Feedback models - what the coach returns about a student's answer.

Field names in `to_dict` / `from_dict` use the same camelCase keys as the
Gemini response schemas, so a model response can be loaded directly.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

Difficulty = Literal["Easy", "Medium", "Hard"]


@dataclass
class Transcription:
    """What the student said, with tone-marked pinyin."""
    transcription: str
    pinyin: str = ""

    def to_dict(self) -> dict:
        return {"transcription": self.transcription, "pinyin": self.pinyin}

    @classmethod
    def from_dict(cls, data: dict) -> "Transcription":
        return cls(transcription=data.get("transcription", ""), pinyin=data.get("pinyin", "") or "")


@dataclass
class GrammarCorrection:
    """One wrong word (错别字) or grammar mistake (语法错误)."""
    original: str
    corrected: str
    explanation: str

    def to_dict(self) -> dict:
        return {"original": self.original, "corrected": self.corrected, "explanation": self.explanation}

    @classmethod
    def from_dict(cls, data: dict) -> "GrammarCorrection":
        return cls(
            original=data["original"],
            corrected=data["corrected"],
            explanation=data.get("explanation", ""),
        )


@dataclass
class SampleAnswerPart:
    """A segment of a model answer; highlighted parts show good words (好词) or sentences (好句)."""
    text: str
    highlight: bool = False
    explanation: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"text": self.text}
        if self.highlight:
            data["highlight"] = True
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SampleAnswerPart":
        return cls(
            text=data["text"],
            highlight=bool(data.get("highlight", False)),
            explanation=data.get("explanation"),
        )


@dataclass
class PronunciationFeedbackItem:
    """Tip for one word."""
    word: str
    pinyin: str
    feedback: str

    def to_dict(self) -> dict:
        return {"word": self.word, "pinyin": self.pinyin, "feedback": self.feedback}

    @classmethod
    def from_dict(cls, data: dict) -> "PronunciationFeedbackItem":
        return cls(word=data["word"], pinyin=data.get("pinyin", ""), feedback=data.get("feedback", ""))


@dataclass
class PronunciationFeedback:
    """Overall comment plus per-word tips (empty when pronunciation was good)."""
    overall_feedback: str
    items: list[PronunciationFeedbackItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overallFeedback": self.overall_feedback,
            "feedbackItems": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PronunciationFeedback":
        return cls(
            overall_feedback=data.get("overallFeedback", ""),
            items=[PronunciationFeedbackItem.from_dict(i) for i in data.get("feedbackItems", [])],
        )


@dataclass
class VocabularyItem:
    """A useful word for describing the picture."""
    word: str
    pinyin: str
    type: str
    sentence: str

    def to_dict(self) -> dict:
        return {"word": self.word, "pinyin": self.pinyin, "type": self.type, "sentence": self.sentence}

    @classmethod
    def from_dict(cls, data: dict) -> "VocabularyItem":
        return cls(
            word=data["word"],
            pinyin=data.get("pinyin", ""),
            type=data.get("type", ""),
            sentence=data.get("sentence", ""),
        )
