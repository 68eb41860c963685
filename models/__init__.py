"""
Data models for the Picture Talk Coach.

- Feedback (transcription, grammar, sample answers, pronunciation, vocabulary)
- Practice sessions and their on-disk history
"""

from .feedback import (
    Difficulty,
    GrammarCorrection,
    PronunciationFeedback,
    PronunciationFeedbackItem,
    SampleAnswerPart,
    Transcription,
    VocabularyItem,
)
from .session import PracticeSession
from .session_store import SessionStore

__all__ = [
    "Difficulty",
    "GrammarCorrection",
    "PronunciationFeedback",
    "PronunciationFeedbackItem",
    "SampleAnswerPart",
    "Transcription",
    "VocabularyItem",
    "PracticeSession",
    "SessionStore",
]
