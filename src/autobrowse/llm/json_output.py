"""
Parse JSON objects out of free-form LLM replies.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_json_response(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the JSON object in an LLM reply.

    Handles markdown code fences and prose around the object.

    Returns:
        The parsed object, or None when no JSON object could be read
    """
    content = str(text or "").strip()
    if not content:
        return None

    # Handle markdown code blocks
    if "```json" in content:
        start = content.index("```json") + 7
        end = content.find("```", start)
        content = content[start:end if end >= 0 else None]
    elif "```" in content:
        start = content.index("```") + 3
        end = content.find("```", start)
        content = content[start:end if end >= 0 else None]
    content = content.strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = OBJECT_RE.search(content)
        if not match:
            logger.debug(f"No JSON object in LLM reply: {content[:200]}")
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to parse LLM reply: {e}")
            return None

    return data if isinstance(data, dict) else None


def string_list(value: Any) -> List[str]:
    """Non-empty stripped strings from a JSON array (anything else -> [])."""
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
