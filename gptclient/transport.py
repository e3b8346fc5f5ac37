"""Single-attempt HTTP transport."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import requests

from .errors import TransportError


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def data(self) -> bytes:
        """Raw body bytes, for binary endpoints such as speech."""
        return self.content if self.content is not None else self.text.encode("utf8")

    def json(self) -> Any:
        return json.loads(self.text)

    def body(self) -> Any:
        """Parsed JSON body, or the raw text when it is not JSON."""
        try:
            return self.json()
        except ValueError:
            return self.text


class Transport(Protocol):
    def send_once(self, request: HttpRequest) -> RawResponse:
        ...


class RequestsTransport:
    def __init__(self, timeout_ms: Optional[int] = None, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout_ms / 1000.0 if timeout_ms else None
        self.session = session or requests.Session()

    def send_once(self, request: HttpRequest) -> RawResponse:
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body.encode("utf8") if request.body is not None else None,
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            raise TransportError(f"{request.method} {request.url} failed: {err}") from err
        return RawResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            content=response.content,
        )

    def close(self) -> None:
        self.session.close()
