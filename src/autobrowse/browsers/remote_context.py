"""
Remote context store - Remember remote browser contexts per profile.

Remote backends persist cookies/storage in a "context" that can be reused
by later sessions of the same profile. Stored as JSON; a missing or
corrupt file reads as empty and failed writes are logged.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from autobrowse.utils.urls import sanitize_id

logger = logging.getLogger(__name__)


def _empty() -> Dict[str, Any]:
    return {"version": 1, "profiles": {}, "profileSessionContexts": {}, "sessions": {}}


class RemoteContextStore:
    """
    Profile -> remote context id, and session -> context assignments.
    
    Example:
        >>> store = RemoteContextStore("/tmp/autobrowse")
        >>> store.set_profile_context("work", "ctx_123")
        >>> store.get_profile_context("work")
        'ctx_123'
    """
    
    FILE_NAME = "remote-context-assignments.json"
    
    def __init__(self, root_dir: str):
        self.root_dir = Path(root_dir)
        self.file_path = self.root_dir / self.FILE_NAME
    
    @staticmethod
    def normalize(value: Optional[str]) -> str:
        return sanitize_id(value or "", fallback="", max_length=120)
    
    def get_profile_context(self, profile_id: str) -> Optional[str]:
        key = self.normalize(profile_id)
        if not key:
            return None
        value = self._read()["profiles"].get(key)
        return (self.normalize(value) or None) if value else None
    
    def set_profile_context(self, profile_id: str, context_id: str) -> None:
        key = self.normalize(profile_id)
        value = self.normalize(context_id)
        if not key or not value:
            return
        data = self._read()
        if data["profiles"].get(key) == value:
            return
        data["profiles"][key] = value
        self._write(data)
    
    def get_profile_session_context(self, profile_id: str) -> Optional[Dict[str, Any]]:
        """Opaque browser state blob saved at the end of a profile's last session."""
        key = self.normalize(profile_id)
        if not key:
            return None
        value = self._read()["profileSessionContexts"].get(key)
        return value if isinstance(value, dict) else None
    
    def set_profile_session_context(self, profile_id: str, session_context: Dict[str, Any]) -> None:
        key = self.normalize(profile_id)
        if not key or not isinstance(session_context, dict):
            return
        data = self._read()
        data["profileSessionContexts"][key] = session_context
        self._write(data)
    
    def get_session_context(self, session_id: str) -> Optional[Dict[str, Any]]:
        key = self.normalize(session_id)
        if not key:
            return None
        return self._read()["sessions"].get(key)
    
    def set_session_context(self, session_id: str, context_id: str, remote_session_id: Optional[str] = None) -> None:
        key = self.normalize(session_id)
        context = self.normalize(context_id)
        if not key or not context:
            return
        data = self._read()
        data["sessions"][key] = {
            "contextId": context,
            "remoteSessionId": self.normalize(remote_session_id) or None,
            "updatedAt": int(time.time() * 1000),
        }
        self._write(data)
    
    def clear_session_context(self, session_id: str) -> None:
        key = self.normalize(session_id)
        data = self._read()
        if not key or key not in data["sessions"]:
            return
        del data["sessions"][key]
        self._write(data)
    
    def _read(self) -> Dict[str, Any]:
        if not self.file_path.exists():
            return _empty()
        try:
            parsed = json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return _empty()
        if not isinstance(parsed, dict):
            return _empty()
        data = _empty()
        for section in ("profiles", "profileSessionContexts", "sessions"):
            value = parsed.get(section)
            if isinstance(value, dict):
                data[section] = value
        return data
    
    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            self.file_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Remote context assignment write skipped: {e}")
