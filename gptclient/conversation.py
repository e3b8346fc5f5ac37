"""Append-only conversation history and token accounting."""
from __future__ import annotations

import copy
import math
from functools import lru_cache
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import tiktoken

from .types import Message

DEFAULT_ENCODING = "o200k_base"
AVG_CHARS_PER_TOKEN = 3.6  # slightly conservative
MESSAGE_OVERHEAD_TOKENS = 4
REPLY_PRIMER_TOKENS = 3


class _EstimatingEncoding:
    def encode(self, text: str) -> List[int]:
        if not text:
            return []
        return [0] * math.ceil(len(text) / AVG_CHARS_PER_TOKEN)


@lru_cache(maxsize=None)
def get_encoding(name: str = DEFAULT_ENCODING) -> Any:
    """Load a tiktoken encoding, or an estimator when the BPE file is unavailable (e.g. offline)."""
    try:
        return tiktoken.get_encoding(name)
    except (ValueError, OSError):
        return _EstimatingEncoding()


def count_text_tokens(text: Optional[str], encoding: Any = None) -> int:
    if not text:
        return 0
    encoding = encoding or get_encoding()
    return len(encoding.encode(text))


def count_message_tokens(message: Message, encoding: Any = None) -> int:
    encoding = encoding or get_encoding()
    tokens = MESSAGE_OVERHEAD_TOKENS
    tokens += count_text_tokens(message.get("content"), encoding)
    for call in message.get("tool_calls") or []:
        function = call.get("function") or {}
        tokens += count_text_tokens(call.get("id"), encoding)
        tokens += count_text_tokens(function.get("name"), encoding)
        tokens += count_text_tokens(function.get("arguments"), encoding)
    tokens += count_text_tokens(message.get("tool_call_id"), encoding)
    return tokens


class Conversation:
    """Ordered message history owned by a single run.

    Messages are copied on the way in, so later changes to the caller's dicts
    (or to a parsed API response) never leak into the history.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: List[Message] = []
        for message in messages:
            self.append(message)

    def append(self, message: Message) -> None:
        if not message.get("role"):
            raise ValueError("Message needs a role")
        self._messages.append(copy.deepcopy(message))

    def append_tool_result(self, tool_call_id: str, content: str) -> None:
        self.append({"role": "tool", "tool_call_id": tool_call_id, "content": content})

    def snapshot(self) -> Tuple[Message, ...]:
        return tuple(copy.deepcopy(self._messages))

    def tool_messages(self) -> List[Message]:
        return [copy.deepcopy(msg) for msg in self._messages if msg.get("role") == "tool"]

    def token_count(self, encoding: Any = None) -> int:
        encoding = encoding or get_encoding()
        return sum(count_message_tokens(msg, encoding) for msg in self._messages) + REPLY_PRIMER_TOKENS

    def stats(self) -> dict:
        roles = [msg.get("role") for msg in self._messages]
        return {
            "message_count": len(roles),
            "user_messages": roles.count("user"),
            "assistant_messages": roles.count("assistant"),
            "tool_messages": roles.count("tool"),
        }

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())
