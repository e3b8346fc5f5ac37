"""Name-indexed lookup of the tools attached to one request."""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional

from ..errors import ConfigurationError
from .definition import ToolDefinition


class ToolRegistry:
    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ConfigurationError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def lookup(self, name: Optional[str]) -> Optional[ToolDefinition]:
        if name is None:
            return None
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
