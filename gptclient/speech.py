"""Text-to-speech request and binary audio response."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ConfigurationError


class SpeechModel(str, Enum):
    TTS_1 = "tts-1"
    TTS_1_HD = "tts-1-hd"


class SpeechVoice(str, Enum):
    ALLOY = "alloy"
    ASH = "ash"
    CORAL = "coral"
    ECHO = "echo"
    FABLE = "fable"
    ONYX = "onyx"
    NOVA = "nova"
    SAGE = "sage"
    SHIMMER = "shimmer"


class SpeechResponseFormat(str, Enum):
    MP3 = "mp3"
    OPUS = "opus"
    AAC = "aac"
    FLAC = "flac"
    WAV = "wav"
    PCM = "pcm"


@dataclass(frozen=True)
class SpeechRequest:
    input: str
    model: SpeechModel = SpeechModel.TTS_1
    voice: SpeechVoice = SpeechVoice.ALLOY
    response_format: SpeechResponseFormat = SpeechResponseFormat.MP3
    speed: float = 1.0

    relative_url = "/audio/speech"
    http_method = "POST"
    binary_response = True

    def __post_init__(self) -> None:
        if not self.input or not self.input.strip():
            raise ConfigurationError("Speech input text must not be empty")
        object.__setattr__(self, "model", SpeechModel(self.model))
        object.__setattr__(self, "voice", SpeechVoice(self.voice))
        object.__setattr__(self, "response_format", SpeechResponseFormat(self.response_format))
        if not 0.25 <= self.speed <= 4.0:
            raise ConfigurationError(f"speed must be between 0.25 and 4, but was: {self.speed}")

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model.value,
            "input": self.input,
            "voice": self.voice.value,
            "response_format": self.response_format.value,
        }
        if self.speed != 1.0:
            body["speed"] = self.speed
        return body

    def create_response(self, content: bytes) -> "SpeechResponse":
        return SpeechResponse(content, self)


class SpeechResponse:
    """Audio bytes in the requested format.

    A 2xx body that turns out to be a JSON error object yields no audio;
    ``error_json`` exposes it instead.
    """

    def __init__(self, content: bytes, request: SpeechRequest) -> None:
        self.content = content
        self.request = request

    @property
    def error_json(self) -> Optional[Dict[str, Any]]:
        text = self.content.lstrip()
        if not text.startswith(b"{"):
            return None
        try:
            parsed = json.loads(text.decode("utf8"))
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) and "error" in parsed else None

    @property
    def is_error(self) -> bool:
        return self.error_json is not None

    @property
    def audio(self) -> bytes:
        return b"" if self.is_error else self.content

    def write_to(self, path: Any) -> int:
        with open(path, "wb") as fh:
            return fh.write(self.audio)
