"""Guiding questions, key words and vocabulary for a picture."""
from .guiding_questions import GuidingQuestions, parse_questions

__all__ = ["GuidingQuestions", "parse_questions"]
