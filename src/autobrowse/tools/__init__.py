"""
Tools Module - Tool-style web surface for the orchestration layer.
"""

from autobrowse.tools.web_tools import WebToolRuntime

__all__ = ["WebToolRuntime"]
