"""Mandarin transcription with pinyin."""
from .transcribe_audio import AudioTranscriber

__all__ = ["AudioTranscriber"]
