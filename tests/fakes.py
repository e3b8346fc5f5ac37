"""Scripted collaborators for exercising the client without a network."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from gptclient.config import ClientSettings
from gptclient.transport import HttpRequest, RawResponse


class ScriptedTransport:
    """Replays canned responses in order; the last one repeats once the script runs out."""

    def __init__(self, *responses: Union[RawResponse, Exception]) -> None:
        self.responses = list(responses)
        self.requests: List[HttpRequest] = []

    def send_once(self, request: HttpRequest) -> RawResponse:
        self.requests.append(request)
        item = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def calls(self) -> int:
        return len(self.requests)

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.body) for request in self.requests]


def raw(status: int, payload: Any = None) -> RawResponse:
    return RawResponse(status_code=status, text=json.dumps(payload) if payload is not None else "")


def ok(payload: Any) -> RawResponse:
    return raw(200, payload)


def tool_call(call_id: str, name: str, arguments: Any = None) -> Dict[str, Any]:
    args = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": args}}


def chat_payload(
    content: Optional[str] = None,
    tool_calls: Optional[List[Dict[str, Any]]] = None,
    finish_reason: Optional[str] = None,
    refusal: Optional[str] = None,
) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    if refusal is not None:
        message["refusal"] = refusal
    if finish_reason is None:
        finish_reason = "tool_calls" if tool_calls else "stop"
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def make_settings(**overrides: Any) -> ClientSettings:
    values: Dict[str, Any] = {"api_key": "sk-test", "base_url": "https://api.test/v1", "base_delay_ms": 100}
    values.update(overrides)
    return ClientSettings(**values)
