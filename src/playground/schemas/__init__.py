"""Wire-level request and response models."""

from .chat import ChatCompletionRequest, ChatMessage, SamplingConfig
from .image import GenerateContentResponse, ImageConfig, ImageGenerationRequest

__all__ = [
    "ChatCompletionRequest",
    "ChatMessage",
    "GenerateContentResponse",
    "ImageConfig",
    "ImageGenerationRequest",
    "SamplingConfig",
]
