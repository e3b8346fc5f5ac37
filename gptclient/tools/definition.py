"""Tool definitions exposed to the model."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from ..schema import ObjectSchema
from ..types import ToolCallback, ToolCallContext, ToolResult


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    callback: ToolCallback = field(compare=False, repr=False)
    parameters: ObjectSchema = field(default_factory=ObjectSchema)
    strict: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must be a non-empty string")

    def to_json(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.to_json(),
                "strict": self.strict,
            },
        }

    def invoke(self, context: ToolCallContext) -> str:
        """Run the callback and reduce its result to the text sent back to the model."""
        result = self.callback(context)
        return result_text(result)


def result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        output: ToolResult = result  # type: ignore[assignment]
        text = str(output.get("output") or "")
        return f"error: {text}" if output.get("error") is True else text
    if result is None:
        return ""
    return str(result)
