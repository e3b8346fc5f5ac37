"""Turn a chat completion body into what the tool-call loop needs to decide its next step."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ResponseUnusableError
from .types import Message, ToolInvocation

TOOL_CALLS_FINISH_REASON = "tool_calls"


@dataclass(frozen=True)
class Classification:
    finish_reason: Optional[str]
    refusal: Optional[str]
    assistant_message: Message
    tool_invocations: List[ToolInvocation] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.refusal is not None or not self.tool_invocations


def classify(payload: Dict[str, Any]) -> Classification:
    """Classify choice 0 of a chat completion body.

    A refusal ends the run whatever else the message carries, so it is reported
    without looking at the tool-call list. Otherwise ``finish_reason ==
    "tool_calls"`` without a ``tool_calls`` array is a malformed response.
    """
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ResponseUnusableError("Response contains no choices", body=payload)
    choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        raise ResponseUnusableError("First choice carries no message object", body=payload)

    finish_reason = choice.get("finish_reason")
    refusal = message.get("refusal")
    if isinstance(refusal, str):
        return Classification(finish_reason, refusal, message)

    raw_calls = message.get("tool_calls")
    if raw_calls is None:
        if finish_reason == TOOL_CALLS_FINISH_REASON:
            raise ResponseUnusableError(
                "finish_reason=tool_calls but no 'tool_calls' array was found in the response", body=payload
            )
        return Classification(finish_reason, None, message)
    if not isinstance(raw_calls, list):
        raise ResponseUnusableError("'tool_calls' is not an array", body=payload)

    return Classification(finish_reason, None, message, [_to_invocation(call) for call in raw_calls])


def _to_invocation(call: Any) -> ToolInvocation:
    if not isinstance(call, dict):
        raise ResponseUnusableError(f"Tool call is not an object: {call!r}", body=call)
    function = call.get("function")
    if not isinstance(function, dict):
        raise ResponseUnusableError(f"Missing or invalid 'function' object in tool call: {call}", body=call)
    call_id = call.get("id")
    if not isinstance(call_id, str) or not call_id:
        raise ResponseUnusableError(f"Tool call has no id: {call}", tool_name=function.get("name"), body=call)
    name = function.get("name")
    arguments = function.get("arguments")
    return ToolInvocation(
        id=call_id,
        name=name if isinstance(name, str) else None,
        raw_arguments=arguments if isinstance(arguments, str) else None,
        raw=call,
    )
