"""Teacher-style review of a recorded answer."""
from .review_answer import AnswerReviewer

__all__ = ["AnswerReviewer"]
