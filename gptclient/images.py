"""Image generation requests for DALL-E 2, DALL-E 3 and gpt-image-1."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError, ResponseUnusableError


class ImageResponseFormat(str, Enum):
    URL = "url"
    B64_JSON = "b64_json"


class DallE2Size(str, Enum):
    SIZE_256x256 = "256x256"
    SIZE_512x512 = "512x512"
    SIZE_1024x1024 = "1024x1024"


class DallE3Size(str, Enum):
    SIZE_1024x1024 = "1024x1024"
    SIZE_1024x1792 = "1024x1792"
    SIZE_1792x1024 = "1792x1024"


class DallE3Quality(str, Enum):
    STANDARD = "standard"
    HD = "hd"


class DallE3Style(str, Enum):
    VIVID = "vivid"
    NATURAL = "natural"


class GptImageSize(str, Enum):
    SIZE_1024x1024 = "1024x1024"
    SIZE_1536x1024 = "1536x1024"
    SIZE_1024x1536 = "1024x1536"
    AUTO = "auto"


class GptImageQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    AUTO = "auto"


class GptImageOutputFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"


class GptImageBackground(str, Enum):
    TRANSPARENT = "transparent"
    OPAQUE = "opaque"
    AUTO = "auto"


class GptImageModeration(str, Enum):
    AUTO = "auto"
    LOW = "low"


# Prepended when DALL-E 3 should not rewrite the prompt
NO_MORE_DETAIL_PREFIX = (
    "I NEED to test how the tool works with extremely simple prompts. "
    "DO NOT add any detail, just use it AS-IS: "
)


def _require_prompt(prompt: str) -> None:
    if not prompt or not prompt.strip():
        raise ConfigurationError("Prompt must not be empty")


def _coerce(obj: Any, name: str, enum_cls: Any) -> None:
    value = getattr(obj, name)
    if value is not None:
        object.__setattr__(obj, name, enum_cls(value))


@dataclass(frozen=True)
class DallE2Request:
    prompt: str
    size: DallE2Size = DallE2Size.SIZE_512x512
    response_format: ImageResponseFormat = ImageResponseFormat.URL
    n: int = 1

    model = "dall-e-2"
    relative_url = "/images/generations"
    http_method = "POST"

    def __post_init__(self) -> None:
        _require_prompt(self.prompt)
        if not 1 <= self.n <= 10:
            raise ConfigurationError(f"DALL-E 2 can generate 1 to 10 images in one request, but n was: {self.n}")
        _coerce(self, "size", DallE2Size)
        _coerce(self, "response_format", ImageResponseFormat)

    def to_body(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": self.prompt,
            "size": self.size.value,
            "response_format": self.response_format.value,
            "n": self.n,
        }

    def create_response(self, payload: Dict[str, Any]) -> "ImagesResponse":
        return ImagesResponse(payload, self)


@dataclass(frozen=True)
class DallE3Request:
    """DALL-E 3 generates exactly one image per request.

    ``no_more_detail`` asks the model to use the prompt as written instead of
    expanding it.
    """

    prompt: str
    size: DallE3Size = DallE3Size.SIZE_1024x1024
    response_format: ImageResponseFormat = ImageResponseFormat.URL
    quality: Optional[DallE3Quality] = None
    style: Optional[DallE3Style] = None
    no_more_detail: bool = False
    n: int = 1

    model = "dall-e-3"
    relative_url = "/images/generations"
    http_method = "POST"

    def __post_init__(self) -> None:
        _require_prompt(self.prompt)
        if self.n != 1:
            raise ConfigurationError(f"DALL-E 3 can only generate 1 image per request, but n was: {self.n}")
        _coerce(self, "size", DallE3Size)
        _coerce(self, "response_format", ImageResponseFormat)
        _coerce(self, "quality", DallE3Quality)
        _coerce(self, "style", DallE3Style)

    @property
    def effective_prompt(self) -> str:
        return NO_MORE_DETAIL_PREFIX + self.prompt if self.no_more_detail else self.prompt

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "prompt": self.effective_prompt,
            "size": self.size.value,
            "response_format": self.response_format.value,
            "n": self.n,
        }
        if self.quality is not None:
            body["quality"] = self.quality.value
        if self.style is not None:
            body["style"] = self.style.value
        return body

    def create_response(self, payload: Dict[str, Any]) -> "ImagesResponse":
        return ImagesResponse(payload, self)


@dataclass(frozen=True)
class GptImage1Request:
    prompt: str
    n: int = 1
    size: GptImageSize = GptImageSize.AUTO
    quality: GptImageQuality = GptImageQuality.AUTO
    output_format: GptImageOutputFormat = GptImageOutputFormat.PNG
    output_compression: Optional[int] = None
    background: GptImageBackground = GptImageBackground.AUTO
    moderation: GptImageModeration = GptImageModeration.AUTO
    user: Optional[str] = None

    model = "gpt-image-1"
    relative_url = "/images/generations"
    http_method = "POST"
    # gpt-image-1 always answers with base64 data
    response_format = ImageResponseFormat.B64_JSON

    def __post_init__(self) -> None:
        _require_prompt(self.prompt)
        if not 1 <= self.n <= 10:
            raise ConfigurationError(f"gpt-image-1 can generate 1 to 10 images in one request, but n was: {self.n}")
        _coerce(self, "size", GptImageSize)
        _coerce(self, "quality", GptImageQuality)
        _coerce(self, "output_format", GptImageOutputFormat)
        _coerce(self, "background", GptImageBackground)
        _coerce(self, "moderation", GptImageModeration)
        if self.output_compression is not None:
            if not 0 <= self.output_compression <= 100:
                raise ConfigurationError(f"output_compression must be between 0 and 100, but was: {self.output_compression}")
            if self.output_format is GptImageOutputFormat.PNG:
                raise ConfigurationError("output_compression only applies to jpeg and webp output")
        if self.background is GptImageBackground.TRANSPARENT and self.output_format is GptImageOutputFormat.JPEG:
            raise ConfigurationError("A transparent background needs png or webp output")

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt,
            "n": self.n,
            "size": self.size.value,
            "quality": self.quality.value,
            "output_format": self.output_format.value,
            "background": self.background.value,
            "moderation": self.moderation.value,
        }
        if self.output_compression is not None:
            body["output_compression"] = self.output_compression
        if self.user and self.user.strip():
            body["user"] = self.user
        return body

    def create_response(self, payload: Dict[str, Any]) -> "ImagesResponse":
        return ImagesResponse(payload, self)


ImageRequest = Union[DallE2Request, DallE3Request, GptImage1Request]


class ImagesResponse:
    """Generated images, as URLs or base64 strings depending on the request's response format."""

    def __init__(self, payload: Dict[str, Any], request: ImageRequest) -> None:
        self.json = payload
        self.request = request
        data = payload.get("data")
        entries = [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []
        key = request.response_format.value
        self.images: List[str] = []
        for entry in entries:
            value = entry.get(key)
            if not isinstance(value, str):
                raise ResponseUnusableError(f"Image entry has no '{key}' value", body=payload)
            self.images.append(value)

    @property
    def urls(self) -> List[str]:
        return list(self.images) if self.request.response_format is ImageResponseFormat.URL else []

    @property
    def b64_json(self) -> List[str]:
        return list(self.images) if self.request.response_format is ImageResponseFormat.B64_JSON else []

    def decoded(self) -> List[bytes]:
        return [base64.b64decode(image) for image in self.b64_json]

    @property
    def revised_prompts(self) -> List[Optional[str]]:
        data = self.json.get("data") or []
        return [item.get("revised_prompt") for item in data if isinstance(item, dict)]

    def __repr__(self) -> str:
        return f"ImagesResponse(model={self.request.model!r}, images={len(self.images)})"
