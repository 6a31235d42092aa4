"""HTTP clients for the two backend dialects."""

from .gemini import GeminiClient
from .openai_compat import OpenAICompatClient

__all__ = ["GeminiClient", "OpenAICompatClient"]
