"""Tool definitions and the per-request tool registry."""
from .definition import ToolDefinition, result_text
from .registry import ToolRegistry

__all__ = ["ToolDefinition", "ToolRegistry", "result_text"]
