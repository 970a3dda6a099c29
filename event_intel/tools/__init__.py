"""Tool surface exposed to agents."""

from event_intel.tools.dispatch import TOOLS, ToolDispatcher, ToolSpec, UnknownToolError, text_result

__all__ = ["TOOLS", "ToolDispatcher", "ToolSpec", "UnknownToolError", "text_result"]
