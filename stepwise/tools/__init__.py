"""Tool interface and dispatch."""

from .base import FunctionTool, ToolHandler, ToolInvocation, ToolOutput
from .registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "ToolHandler",
    "ToolInvocation",
    "ToolOutput",
    "ToolRegistry",
]
