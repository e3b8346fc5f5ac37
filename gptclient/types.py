"""Typed structures used across the gptclient runtime."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, TypedDict, Union

Role = Literal["system", "developer", "user", "assistant", "tool"]


class FunctionCall(TypedDict):
    name: str
    arguments: str


class ToolCall(TypedDict, total=False):
    id: str
    type: str
    function: FunctionCall


class Message(TypedDict, total=False):
    role: Role
    content: Optional[str]
    name: Optional[str]
    refusal: Optional[str]
    tool_call_id: Optional[str]
    tool_calls: Optional[List[ToolCall]]


class ToolResult(TypedDict, total=False):
    output: str
    error: bool


class UsageStats(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cached_tokens: int
    reasoning_tokens: int


@dataclass(frozen=True)
class ToolInvocation:
    """One entry of an assistant message's tool-call list."""

    id: str
    name: Optional[str]
    raw_arguments: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class ToolCallContext:
    arguments: Dict[str, Any]
    tool_call_id: str
    tool_name: str


ToolCallback = Callable[[ToolCallContext], Union[str, ToolResult]]
