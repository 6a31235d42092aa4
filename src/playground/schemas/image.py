"""Pydantic models for one-shot image generation requests and responses."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

AspectRatio = Literal[
    "1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"
]
ResolutionTier = Literal["1K", "2K", "4K"]

ASPECT_RATIOS: tuple[str, ...] = (
    "1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"
)
RESOLUTION_TIERS: tuple[str, ...] = ("1K", "2K", "4K")


class ImageConfig(BaseModel):
    """Output shape options for image generation."""

    aspect_ratio: AspectRatio = "1:1"
    resolution: Optional[ResolutionTier] = None

    model_config = ConfigDict(validate_assignment=True, extra="forbid")


class ImageGenerationRequest(BaseModel):
    """A single independent image prompt; prior turns are never included."""

    model: str
    prompt: str
    image_config: ImageConfig = Field(default_factory=ImageConfig)
    include_resolution: bool = False

    def to_gemini_payload(self) -> Dict[str, Any]:
        image_config: Dict[str, Any] = {"aspectRatio": self.image_config.aspect_ratio}
        if self.include_resolution and self.image_config.resolution:
            image_config["imageSize"] = self.image_config.resolution
        return {
            "contents": [{"role": "user", "parts": [{"text": self.prompt}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": image_config,
            },
        }


class InlineData(BaseModel):
    data: str
    mime_type: str = Field(
        default="image/png",
        validation_alias=AliasChoices("mimeType", "mime_type"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ResponsePart(BaseModel):
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(
        default=None,
        validation_alias=AliasChoices("inlineData", "inline_data", "inlineImage"),
    )
    thought: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ResponseContent(BaseModel):
    role: Optional[str] = None
    parts: List[ResponsePart] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class Candidate(BaseModel):
    content: Optional[ResponseContent] = None
    # Some gateways flatten parts onto the candidate itself
    parts: List[ResponsePart] = Field(default_factory=list)
    finish_reason: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("finishReason", "finish_reason"),
    )

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def iter_parts(self) -> Iterator[ResponsePart]:
        if self.content is not None:
            yield from self.content.parts
        yield from self.parts


class GenerateContentResponse(BaseModel):
    """Subset of the Gemini `generateContent` response the engine reads."""

    candidates: List[Candidate] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    def iter_parts(self) -> Iterator[ResponsePart]:
        for candidate in self.candidates:
            yield from candidate.iter_parts()

    def first_inline_image(self) -> Optional[InlineData]:
        """Return the first non-thought part carrying image bytes."""

        for part in self.iter_parts():
            if part.thought:
                continue
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data
        return None

    def joined_text(self) -> str:
        return "".join(
            part.text
            for part in self.iter_parts()
            if part.text and not part.thought
        )


__all__ = [
    "ASPECT_RATIOS",
    "AspectRatio",
    "Candidate",
    "GenerateContentResponse",
    "ImageConfig",
    "ImageGenerationRequest",
    "InlineData",
    "RESOLUTION_TIERS",
    "ResolutionTier",
    "ResponseContent",
    "ResponsePart",
]
