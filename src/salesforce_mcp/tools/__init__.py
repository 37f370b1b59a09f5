from .base import Tool, ToolRegistry, default_tools

__all__ = ["Tool", "ToolRegistry", "default_tools"]
