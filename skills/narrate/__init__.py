"""Read-aloud narration with Gemini TTS."""
from .narrate import Narrator, NarrationCancelled, NarrationResult

__all__ = ["Narrator", "NarrationCancelled", "NarrationResult"]
