"""
World Model - Per-session log of observations, actions and notes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from autobrowse.interfaces.web import Action, Observation, utc_now_iso

MAX_OBSERVATIONS = 30
MAX_ACTIONS = 50
MAX_NOTES = 40


@dataclass
class ActionLogEntry:
    """An action the session executed (or tried to)."""
    action: Action
    success: bool
    timestamp: str = field(default_factory=utc_now_iso)


class WorldModel:
    """
    Bounded, append-only memory of one session.
    
    Observations keep wall-clock capture order; the oldest entries are
    dropped once a cap is reached.
    """
    
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.goal = ""
        self.observations: List[Observation] = []
        self.actions: List[ActionLogEntry] = []
        self.notes: List[str] = []
    
    def set_goal(self, goal: str) -> None:
        self.goal = str(goal or "").strip()
    
    def add_observation(self, observation: Observation) -> None:
        self.observations.append(observation)
        if len(self.observations) > MAX_OBSERVATIONS:
            self.observations = self.observations[-MAX_OBSERVATIONS:]
    
    def add_action(self, action: Action, success: bool) -> None:
        self.actions.append(ActionLogEntry(action=action, success=success))
        if len(self.actions) > MAX_ACTIONS:
            self.actions = self.actions[-MAX_ACTIONS:]
    
    def add_note(self, note: str) -> None:
        trimmed = str(note or "").strip()
        if not trimmed:
            return
        self.notes.append(trimmed)
        if len(self.notes) > MAX_NOTES:
            self.notes = self.notes[-MAX_NOTES:]
    
    def latest_observation(self) -> Optional[Observation]:
        return self.observations[-1] if self.observations else None
    
    def summary(self) -> Dict[str, Any]:
        latest = self.latest_observation()
        return {
            "sessionId": self.session_id,
            "goal": self.goal,
            "observations": len(self.observations),
            "actions": len(self.actions),
            "notes": self.notes[-5:],
            "latestUrl": latest.url if latest else None,
        }


class WorldModelStore:
    """Keyed map of world models, one per session."""
    
    def __init__(self) -> None:
        self._models: Dict[str, WorldModel] = {}
    
    def for_session(self, session_id: str) -> WorldModel:
        model = self._models.get(session_id)
        if model is None:
            model = WorldModel(session_id)
            self._models[session_id] = model
        return model
    
    def get(self, session_id: str) -> Optional[WorldModel]:
        return self._models.get(session_id)
    
    def delete(self, session_id: str) -> None:
        self._models.pop(session_id, None)
