"""
Tool invocation exceptions.
"""

from autobrowse.exceptions.base import AutobrowseError


class ToolError(AutobrowseError):
    """Base exception for tool-surface errors."""
    
    def __init__(self, message: str, tool_name: str | None = None, details: dict | None = None):
        super().__init__(message, {"tool": tool_name, **(details or {})})
        self.tool_name = tool_name


class UnknownToolError(ToolError):
    """No tool is registered under the requested name."""
    
    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}", tool_name)


class ToolInputError(ToolError):
    """
    Tool parameters are missing or malformed.
    
    Attributes:
        parameter: The offending parameter name
    """
    
    def __init__(self, message: str, tool_name: str | None = None, parameter: str | None = None):
        super().__init__(message, tool_name, {"parameter": parameter})
        self.parameter = parameter
