"""
Telemetry - Per-session event recording.

Events are kept in memory (bounded per session) and, when a directory is
configured, appended to ``<dir>/<session>.jsonl``. Sink failures are
logged and never raised.
"""

import json
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from autobrowse.interfaces.web import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class TelemetryEvent:
    """
    A single telemetry event.
    
    Attributes:
        session_id: Session the event belongs to
        type: Event type (e.g. 'action', 'backend_switch', 'search')
        timestamp: ISO-8601 creation time
        payload: Event data
    """
    session_id: str
    type: str
    timestamp: str = field(default_factory=utc_now_iso)
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sessionId": self.session_id,
            "type": self.type,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }


class Telemetry:
    """
    Recorder for session events.
    
    Example:
        >>> telemetry = Telemetry()
        >>> telemetry.record("conv-1", "backend_switch", {"from": "steel", "to": "local"})
        >>> [e.type for e in telemetry.events("conv-1")]
        ['backend_switch']
    """
    
    def __init__(self, sink_dir: Optional[str] = None, max_events_per_session: int = 500):
        """
        Initialize the recorder.
        
        Args:
            sink_dir: Optional directory for JSONL files
            max_events_per_session: In-memory cap per session
        """
        self._sink_dir = Path(sink_dir) if sink_dir else None
        self._max_events = max_events_per_session
        self._events: Dict[str, Deque[TelemetryEvent]] = {}
    
    def record(
        self,
        session_id: str,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> TelemetryEvent:
        """Record an event and return it."""
        event = TelemetryEvent(session_id=session_id, type=event_type, payload=dict(payload or {}))
        bucket = self._events.setdefault(session_id, deque(maxlen=self._max_events))
        bucket.append(event)
        logger.debug(f"[{session_id}] {event_type}: {event.payload}")
        
        if self._sink_dir is not None:
            self._write(event)
        return event
    
    def events(self, session_id: str, event_type: Optional[str] = None) -> List[TelemetryEvent]:
        """Events recorded for a session, optionally filtered by type."""
        bucket = self._events.get(session_id, ())
        return [event for event in bucket if event_type is None or event.type == event_type]
    
    def clear(self, session_id: str) -> None:
        """Forget a session's in-memory events."""
        self._events.pop(session_id, None)
    
    def _file_path(self, session_id: str) -> Path:
        safe = re.sub(r"[^a-zA-Z0-9._-]", "-", str(session_id or "default"))
        return self._sink_dir / f"{safe}.jsonl"  # type: ignore[operator]
    
    def _write(self, event: TelemetryEvent) -> None:
        try:
            self._sink_dir.mkdir(parents=True, exist_ok=True)  # type: ignore[union-attr]
            with open(self._file_path(event.session_id), "a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")
        except OSError as e:
            logger.warning(f"Telemetry write skipped: {e}")
