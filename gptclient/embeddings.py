"""Embeddings request/response and a cached cosine similarity helper."""
from __future__ import annotations

import base64
import math
import struct
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .config import DEFAULT_EMBEDDING_MODEL
from .errors import ConfigurationError, ResponseUnusableError


class EncodingFormat(str, Enum):
    FLOAT = "float"
    BASE64 = "base64"


@dataclass(frozen=True)
class EmbeddingsRequest:
    input: Tuple[str, ...]
    model: str = DEFAULT_EMBEDDING_MODEL
    dimensions: Optional[int] = None
    encoding_format: Optional[EncodingFormat] = None
    user: Optional[str] = None
    max_execution_seconds: Optional[float] = None
    is_canceled: Optional[Callable[[], bool]] = field(default=None, compare=False, repr=False)

    relative_url = "/embeddings"
    http_method = "POST"

    def __post_init__(self) -> None:
        inputs = (self.input,) if isinstance(self.input, str) else tuple(self.input)
        if not inputs:
            raise ConfigurationError("Embeddings request needs at least one input")
        object.__setattr__(self, "input", inputs)
        if self.encoding_format is not None:
            object.__setattr__(self, "encoding_format", EncodingFormat(self.encoding_format))
        if self.dimensions is not None and self.dimensions < 1:
            raise ConfigurationError("dimensions must be positive")

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "input": self.input[0] if len(self.input) == 1 else list(self.input),
        }
        if self.dimensions is not None:
            body["dimensions"] = self.dimensions
        if self.encoding_format is not None:
            body["encoding_format"] = self.encoding_format.value
        if self.user is not None:
            body["user"] = self.user
        return body

    def create_response(self, payload: Dict[str, Any]) -> "EmbeddingsResponse":
        return EmbeddingsResponse(payload, self)


class EmbeddingsResponse:
    def __init__(self, payload: Dict[str, Any], request: EmbeddingsRequest) -> None:
        self.json = payload
        self.request = request
        data = payload.get("data")
        if not isinstance(data, list):
            raise ResponseUnusableError("Embeddings response has no 'data' array", body=payload)
        self._data = sorted((item for item in data if isinstance(item, dict)), key=lambda item: item.get("index", 0))

    @property
    def model(self) -> Optional[str]:
        return self.json.get("model")

    @property
    def prompt_tokens(self) -> int:
        return (self.json.get("usage") or {}).get("prompt_tokens", 0)

    @property
    def total_tokens(self) -> int:
        return (self.json.get("usage") or {}).get("total_tokens", 0)

    @property
    def embeddings(self) -> List[List[float]]:
        """Vectors in input order; base64 payloads are decoded from little-endian float32."""
        return [_vector(item.get("embedding")) for item in self._data]

    @property
    def embeddings_base64(self) -> List[str]:
        return [item["embedding"] for item in self._data if isinstance(item.get("embedding"), str)]

    def first_embedding(self) -> List[float]:
        vectors = self.embeddings
        if not vectors:
            raise ResponseUnusableError("Embeddings response is empty", body=self.json)
        return vectors[0]


def _vector(raw: Any) -> List[float]:
    if isinstance(raw, list):
        return [float(value) for value in raw]
    if isinstance(raw, str):
        packed = base64.b64decode(raw)
        return list(struct.unpack(f"<{len(packed) // 4}f", packed))
    raise ResponseUnusableError(f"Unsupported embedding payload: {type(raw).__name__}")


def cosine(x: Sequence[float], y: Sequence[float]) -> float:
    if len(x) != len(y):
        raise ValueError("Vector dimensions differ")
    dot = sum(a * b for a, b in zip(x, y))
    nx = math.sqrt(sum(a * a for a in x))
    ny = math.sqrt(sum(b * b for b in y))
    return 0.0 if nx == 0 or ny == 0 else dot / (nx * ny)


class CosineSimilarity:
    """Cosine similarity of two texts; each text is embedded once per instance."""

    def __init__(self, client: Any, model: str = DEFAULT_EMBEDDING_MODEL, use_backoff: bool = True) -> None:
        self.client = client
        self.model = model
        self.use_backoff = use_backoff
        self._cache: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def similarity(self, a: str, b: str) -> float:
        return cosine(self.embedding_for(a), self.embedding_for(b))

    def embedding_for(self, text: str) -> List[float]:
        with self._lock:
            cached = self._cache.get(text)
        if cached is not None:
            return cached
        request = EmbeddingsRequest(input=(text,), model=self.model, encoding_format=EncodingFormat.FLOAT)
        vector = self.client.embeddings(request, use_backoff=self.use_backoff).first_embedding()
        with self._lock:
            return self._cache.setdefault(text, vector)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)
