"""Pydantic models for chat requests and sampling configuration."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SamplingConfig(BaseModel):
    """Sampling parameters forwarded with every chat request."""

    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=2048, ge=1)
    top_p: float = Field(default=1.0, ge=0, le=1)
    frequency_penalty: float = Field(default=0.0, ge=-2, le=2)
    presence_penalty: float = Field(default=0.0, ge=-2, le=2)

    model_config = ConfigDict(validate_assignment=True, extra="forbid")


class ChatMessage(BaseModel):
    """Represents a single transcript entry."""

    role: Literal["system", "user", "assistant"]
    content: Union[str, List[Dict[str, Any]]]

    model_config = ConfigDict(extra="allow")


class ChatCompletionRequest(BaseModel):
    """Outbound chat completion request shared by both dialects."""

    model: str
    messages: List[ChatMessage]

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @classmethod
    def from_sampling(
        cls,
        model: str,
        messages: List[ChatMessage],
        sampling: SamplingConfig,
    ) -> "ChatCompletionRequest":
        return cls(model=model, messages=messages, **sampling.model_dump())

    def to_openai_payload(self) -> Dict[str, Any]:
        """Serialize the request for an OpenAI-compatible endpoint."""

        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["stream"] = True
        return payload


__all__ = ["ChatCompletionRequest", "ChatMessage", "SamplingConfig"]
