"""HTTP client for the OpenAI REST API."""
from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional, Type

from .chat import ChatCompletionRequest, ChatCompletionResponse
from .config import ClientSettings
from .embeddings import EmbeddingsRequest, EmbeddingsResponse
from .errors import (
    ApiClientError,
    AuthorizationError,
    PermissionDeniedError,
    RateLimitError,
    RequestRejectedError,
    ResponseUnusableError,
    ServerError,
    ServiceUnavailableError,
)
from .executor import RetryingExecutor, RetryPolicy, RunGuard, StatusCodeTable
from .images import ImageRequest, ImagesResponse
from .logger import Logger
from .runner import ChatCompletionRunner
from .speech import SpeechRequest, SpeechResponse
from .transport import HttpRequest, RequestsTransport, Transport


class GptClient:
    """Entry point: builds HTTP calls, maps status codes to errors and runs the tool-call loop.

    Error behaviour:
      - 400, 401, 403 raise immediately
      - 429, 500, 503 are retried with exponential backoff when ``use_backoff`` is set,
        and raise once the attempts are exhausted
      - any other non-2xx status raises ``ApiClientError``
    """

    def __init__(
        self,
        settings: ClientSettings,
        transport: Optional[Transport] = None,
        logger: Optional[Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.logger = logger or Logger(log_json_path=settings.log_json_path)
        self.transport = transport or RequestsTransport(timeout_ms=settings.request_timeout_ms)
        self.status_codes = StatusCodeTable()
        self.register_status_code(400, RequestRejectedError, "The server could not understand the request due to invalid syntax", False)
        self.register_status_code(401, AuthorizationError, "Authentication failed", False)
        self.register_status_code(403, PermissionDeniedError, "The request has been refused (probably due to some policy violation)", False)
        self.register_status_code(429, RateLimitError, "Rate limit or quota exceeded", True)
        self.register_status_code(500, ServerError, "Internal server error", True)
        self.register_status_code(503, ServiceUnavailableError, "Service unavailable", True)
        policy = RetryPolicy(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_ms / 1000.0,
            max_delay=settings.max_delay_ms / 1000.0,
            jitter=settings.jitter,
        )
        self.executor = RetryingExecutor(self.transport, self.status_codes, policy, logger=self.logger, sleep=sleep)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "GptClient":
        return cls(ClientSettings.from_env(), **kwargs)

    def register_status_code(self, status_code: int, error_cls: Type[ApiClientError], message: str, retryable: bool) -> None:
        self.status_codes.register(status_code, error_cls, message, retryable)

    def send(self, request: Any, use_backoff: bool = False, guard: Optional[RunGuard] = None) -> Any:
        """Send one API request and wrap the body in the request's response type.

        JSON endpoints get the decoded object; requests flagged
        ``binary_response`` (speech) get the raw bytes.
        """
        if guard is None:
            guard = RunGuard(getattr(request, "is_canceled", None), getattr(request, "max_execution_seconds", None))
        http_request = HttpRequest(
            method=request.http_method,
            url=f"{self.base_url}{request.relative_url}",
            headers=self._headers(),
            body=json.dumps(request.to_body()),
        )
        if use_backoff:
            raw = self.executor.execute_with_backoff(http_request, guard)
        else:
            raw = self.executor.execute(http_request, guard)
        if getattr(request, "binary_response", False):
            return request.create_response(raw.data)
        try:
            payload = raw.json()
        except ValueError as err:
            raise ResponseUnusableError(f"Response body is not JSON: {err}", body=raw.text) from err
        if not isinstance(payload, dict):
            raise ResponseUnusableError("Response body is not a JSON object", body=payload)
        return request.create_response(payload)

    def chat(
        self,
        request: ChatCompletionRequest,
        use_backoff: bool = False,
        max_tool_workers: int = 1,
    ) -> ChatCompletionResponse:
        runner = ChatCompletionRunner(
            self,
            max_turns=self.settings.max_tool_turns,
            max_tool_workers=max_tool_workers,
            logger=self.logger,
        )
        return runner.submit(request, use_backoff=use_backoff)

    def embeddings(self, request: EmbeddingsRequest, use_backoff: bool = False) -> EmbeddingsResponse:
        return self.send(request, use_backoff=use_backoff)

    def images(self, request: ImageRequest, use_backoff: bool = False) -> ImagesResponse:
        return self.send(request, use_backoff=use_backoff)

    def speech(self, request: SpeechRequest, use_backoff: bool = False) -> SpeechResponse:
        return self.send(request, use_backoff=use_backoff)

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
