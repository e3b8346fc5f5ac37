"""Chat completion request, builder and response."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config import get_system_role
from .errors import ConfigurationError, ResponseUnusableError
from .schema import Schema
from .tools import ToolDefinition
from .types import Message, ToolCall, UsageStats


class ToolChoice(str, Enum):
    AUTO = "auto"
    REQUIRED = "required"
    NONE = "none"


class ReasoningEffort(str, Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ResponseFormat:
    """``response_format`` payload: Structured Outputs (``json_schema``) or JSON mode (``json_object``)."""

    type: str
    name: Optional[str] = None
    schema: Optional[Schema] = None
    strict: bool = False

    @classmethod
    def json_schema(cls, name: str, schema: Schema, strict: bool = True) -> "ResponseFormat":
        if not name:
            raise ConfigurationError("json_schema response format needs a schema name")
        return cls("json_schema", name, schema, strict)

    @classmethod
    def json_object(cls) -> "ResponseFormat":
        return cls("json_object")

    def to_json(self) -> Dict[str, Any]:
        if self.type != "json_schema":
            return {"type": self.type}
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.name,
                "schema": self.schema.to_json() if self.schema is not None else {},
                "strict": self.strict,
            },
        }


def _check_range(name: str, value: Optional[float], low: float, high: float) -> None:
    if value is not None and not low <= value <= high:
        raise ConfigurationError(f"{name} must be between {low:g} and {high:g}, but was: {value}")


@dataclass(frozen=True)
class ChatCompletionRequest:
    """Immutable chat completion call.

    Everything except ``messages`` is configuration that the tool-call loop
    carries forward unchanged from turn to turn; see ``with_messages``.
    """

    model: str
    messages: Tuple[Message, ...] = ()
    tools: Tuple[ToolDefinition, ...] = ()
    response_format: Optional[ResponseFormat] = None
    tool_choice: Optional[ToolChoice] = None
    forced_tool: Optional[str] = None
    parallel_tool_calls: Optional[bool] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_completion_tokens: Optional[int] = None
    n: Optional[int] = None
    seed: Optional[int] = None
    stop: Tuple[str, ...] = ()
    logprobs: Optional[bool] = None
    top_logprobs: Optional[int] = None
    logit_bias: Optional[Mapping[int, int]] = None
    metadata: Optional[Mapping[str, str]] = None
    reasoning_effort: Optional[ReasoningEffort] = None
    service_tier: Optional[str] = None
    user: Optional[str] = None
    max_execution_seconds: Optional[float] = None
    is_canceled: Optional[Callable[[], bool]] = field(default=None, compare=False, repr=False)

    relative_url = "/chat/completions"
    http_method = "POST"

    # messages and options hold dicts
    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if not self.model:
            raise ConfigurationError("model is required")
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "stop", tuple(self.stop))
        if self.tool_choice is not None:
            object.__setattr__(self, "tool_choice", ToolChoice(self.tool_choice))
        if self.reasoning_effort is not None:
            object.__setattr__(self, "reasoning_effort", ReasoningEffort(self.reasoning_effort))
        if self.tool_choice is not None and self.forced_tool is not None:
            raise ConfigurationError("tool_choice and forced_tool cannot be set at the same time")
        if self.forced_tool is not None and self.forced_tool not in {tool.name for tool in self.tools}:
            raise ConfigurationError(f"forced tool {self.forced_tool!r} is not attached to the request")
        _check_range("temperature", self.temperature, 0.0, 2.0)
        _check_range("top_p", self.top_p, 0.0, 1.0)
        _check_range("frequency_penalty", self.frequency_penalty, -2.0, 2.0)
        _check_range("presence_penalty", self.presence_penalty, -2.0, 2.0)
        _check_range("top_logprobs", self.top_logprobs, 0, 20)
        for token, bias in (self.logit_bias or {}).items():
            if bias is None or not -100 <= bias <= 100:
                raise ConfigurationError(f"logit_bias value for token ID {token} must be between -100 and 100, but was: {bias}")
        if self.n is not None and self.n < 1:
            raise ConfigurationError("n must be at least 1")
        if self.max_execution_seconds is not None and self.max_execution_seconds <= 0:
            raise ConfigurationError("max_execution_seconds must be positive")

    @classmethod
    def builder(cls, model: Optional[str] = None) -> "ChatCompletionRequestBuilder":
        return ChatCompletionRequestBuilder(model)

    def with_messages(self, messages: Iterable[Message]) -> "ChatCompletionRequest":
        return replace(self, messages=tuple(messages))

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model": self.model, "messages": [dict(msg) for msg in self.messages]}
        if self.tools:
            body["tools"] = [tool.to_json() for tool in self.tools]
        if self.response_format is not None:
            body["response_format"] = self.response_format.to_json()
        if self.forced_tool is not None:
            body["tool_choice"] = {"type": "function", "function": {"name": self.forced_tool}}
        elif self.tool_choice is not None:
            body["tool_choice"] = self.tool_choice.value
        if self.logit_bias:
            body["logit_bias"] = {str(token): bias for token, bias in self.logit_bias.items()}
        if self.metadata:
            body["metadata"] = dict(self.metadata)
        if self.reasoning_effort is not None:
            body["reasoning_effort"] = self.reasoning_effort.value
        if self.stop:
            body["stop"] = self.stop[0] if len(self.stop) == 1 else list(self.stop)
        for key in (
            "parallel_tool_calls",
            "temperature",
            "top_p",
            "frequency_penalty",
            "presence_penalty",
            "max_completion_tokens",
            "n",
            "seed",
            "logprobs",
            "top_logprobs",
            "service_tier",
            "user",
        ):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body

    def create_response(self, payload: Dict[str, Any]) -> "ChatCompletionResponse":
        return ChatCompletionResponse(payload, self)


class ChatCompletionRequestBuilder:
    """Fluent construction of a ``ChatCompletionRequest``.

    System messages are emitted with the role the model expects (``developer``
    for reasoning models), resolved when ``build`` is called.
    """

    def __init__(self, model: Optional[str] = None) -> None:
        self._model = model
        self._messages: List[Message] = []
        self._tools: List[ToolDefinition] = []
        self._options: Dict[str, Any] = {}

    def model(self, model: str) -> "ChatCompletionRequestBuilder":
        self._model = model
        return self

    def system(self, content: str) -> "ChatCompletionRequestBuilder":
        self._messages.append({"role": "system", "content": content})
        return self

    def user(self, content: str) -> "ChatCompletionRequestBuilder":
        self._messages.append({"role": "user", "content": content})
        return self

    def assistant(self, content: str) -> "ChatCompletionRequestBuilder":
        self._messages.append({"role": "assistant", "content": content})
        return self

    def messages(self, messages: Iterable[Message]) -> "ChatCompletionRequestBuilder":
        self._messages.extend(messages)
        return self

    def tool(self, tool: ToolDefinition) -> "ChatCompletionRequestBuilder":
        self._tools.append(tool)
        return self

    def tools(self, tools: Iterable[ToolDefinition]) -> "ChatCompletionRequestBuilder":
        self._tools.extend(tools)
        return self

    def response_format(self, response_format: ResponseFormat) -> "ChatCompletionRequestBuilder":
        self._options["response_format"] = response_format
        return self

    def tool_choice(self, choice: Union[ToolChoice, ToolDefinition]) -> "ChatCompletionRequestBuilder":
        key = "forced_tool" if isinstance(choice, ToolDefinition) else "tool_choice"
        other = "tool_choice" if key == "forced_tool" else "forced_tool"
        if self._options.get(other) is not None:
            raise ConfigurationError("You cannot force a tool and set an enum tool choice at the same time")
        self._options[key] = choice.name if isinstance(choice, ToolDefinition) else ToolChoice(choice)
        return self

    def temperature(self, value: float) -> "ChatCompletionRequestBuilder":
        return self.options(temperature=value)

    def max_completion_tokens(self, value: int) -> "ChatCompletionRequestBuilder":
        return self.options(max_completion_tokens=value)

    def stop(self, *sequences: str) -> "ChatCompletionRequestBuilder":
        return self.options(stop=sequences)

    def max_execution_seconds(self, seconds: float) -> "ChatCompletionRequestBuilder":
        return self.options(max_execution_seconds=seconds)

    def cancel_when(self, is_canceled: Callable[[], bool]) -> "ChatCompletionRequestBuilder":
        return self.options(is_canceled=is_canceled)

    def options(self, **options: Any) -> "ChatCompletionRequestBuilder":
        unknown = set(options) - _BUILDER_OPTIONS
        if unknown:
            raise ConfigurationError(f"Unknown chat completion option(s): {', '.join(sorted(unknown))}")
        self._options.update(options)
        return self

    def build(self) -> ChatCompletionRequest:
        if not self._model:
            raise ConfigurationError("model is required")
        system_role = get_system_role(self._model)
        messages = [
            {**msg, "role": system_role} if msg.get("role") == "system" else msg
            for msg in self._messages
        ]
        return ChatCompletionRequest(model=self._model, messages=tuple(messages), tools=tuple(self._tools), **self._options)


_BUILDER_OPTIONS = {
    name
    for name in ChatCompletionRequest.__dataclass_fields__
    if name not in {"model", "messages", "tools"}
}


class ChatCompletionResponse:
    """Parsed chat completion body bound to the request that produced it."""

    def __init__(self, payload: Dict[str, Any], request: ChatCompletionRequest) -> None:
        self.json = payload
        self.request = request

    @property
    def choices(self) -> List[Dict[str, Any]]:
        choices = self.json.get("choices")
        if not isinstance(choices, list):
            return []
        return [choice for choice in choices if isinstance(choice, dict)]

    @property
    def message(self) -> Optional[Message]:
        choices = self.choices
        if not choices:
            return None
        message = choices[0].get("message")
        return message if isinstance(message, dict) else None

    @property
    def finish_reason(self) -> Optional[str]:
        choices = self.choices
        return choices[0].get("finish_reason") if choices else None

    @property
    def content(self) -> Optional[str]:
        message = self.message
        content = message.get("content") if message else None
        return content if isinstance(content, str) else None

    @property
    def refusal(self) -> Optional[str]:
        message = self.message
        refusal = message.get("refusal") if message else None
        return refusal if isinstance(refusal, str) else None

    @property
    def has_refusal(self) -> bool:
        return self.refusal is not None

    @property
    def tool_calls(self) -> List[ToolCall]:
        message = self.message
        calls = message.get("tool_calls") if message else None
        if not isinstance(calls, list):
            return []
        return [call for call in calls if isinstance(call, dict)]

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def parsed(self) -> Any:
        """Assistant content decoded as JSON (Structured Outputs)."""
        if self.content is None:
            raise ResponseUnusableError("Assistant message has no content to parse", body=self.json)
        try:
            return json.loads(self.content)
        except ValueError as err:
            raise ResponseUnusableError(f"Could not parse the assistant message as JSON: {err}", body=self.json) from err

    def throw_on_refusal(self) -> None:
        if self.has_refusal:
            raise ResponseUnusableError(f"The model refused to comply: {self.refusal}", body=self.json)

    def usage(self) -> UsageStats:
        usage = self.json.get("usage") or {}
        prompt_details = usage.get("prompt_tokens_details") or {}
        completion_details = usage.get("completion_tokens_details") or {}
        return {
            "prompt_tokens": usage.get("prompt_tokens", 0),
            "completion_tokens": usage.get("completion_tokens", 0),
            "total_tokens": usage.get("total_tokens", 0),
            "cached_tokens": prompt_details.get("cached_tokens", 0),
            "reasoning_tokens": completion_details.get("reasoning_tokens", 0),
        }

    def __repr__(self) -> str:
        return f"ChatCompletionResponse(finish_reason={self.finish_reason!r}, content={self.content!r})"

