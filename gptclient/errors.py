"""Exception taxonomy for API calls and the tool-call loop."""
from __future__ import annotations

from typing import Any, Optional


class GptClientError(Exception):
    """Base class for every error raised by gptclient."""


class ConfigurationError(GptClientError, ValueError):
    """Library misuse detected before any request is sent."""


class TransportError(GptClientError):
    """Network failure before an HTTP status was received."""


class ApiClientError(GptClientError):
    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is None:
            return message
        return f"{message} (HTTP {self.status_code}): {_excerpt(self.body)}"


class RequestRejectedError(ApiClientError):
    pass


class AuthorizationError(ApiClientError):
    pass


class PermissionDeniedError(ApiClientError):
    pass


class RateLimitError(ApiClientError):
    retryable = True


class ServerError(ApiClientError):
    retryable = True


class ServiceUnavailableError(ApiClientError):
    retryable = True


class IterationLimitError(ApiClientError):
    """The tool-call loop did not reach a final answer within the turn cap."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"Exceeded maximum of {max_turns} chat completion turns without a final answer")
        self.max_turns = max_turns


class ResponseUnusableError(GptClientError):
    """The API answered, but the response cannot be acted upon."""

    def __init__(self, message: str, tool_name: Optional[str] = None, body: Any = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name
        self.body = body


class RequestCanceledError(GptClientError):
    pass


class ExecutionTimeoutError(RequestCanceledError):
    def __init__(self, max_execution_seconds: float) -> None:
        super().__init__(f"Run exceeded its budget of {max_execution_seconds:g}s")
        self.max_execution_seconds = max_execution_seconds


def _excerpt(body: Any, limit: int = 500) -> str:
    text = body if isinstance(body, str) else repr(body)
    return text if len(text) <= limit else f"{text[:limit]}..."
