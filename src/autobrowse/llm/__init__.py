"""
LLM Providers - Optional model backing for the navigation judge and task planner.

Available providers:
- OpenAIProvider: OpenAI-compatible chat completions over HTTP
"""

from autobrowse.llm.json_output import non_empty_string, parse_json_response, string_list
from autobrowse.llm.openai_provider import OpenAIProvider

__all__ = [
    "OpenAIProvider",
    "parse_json_response",
    "string_list",
    "non_empty_string",
]
