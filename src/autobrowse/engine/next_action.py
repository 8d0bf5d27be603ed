"""
Next Action - Heuristic choice of the next browser action for a goal.

Without an observation the goal decides between opening an explicit URL
and searching. Once a page has been observed, interaction verbs in the
goal (click, fill, scroll) pick the action; otherwise the page is
extracted for answer synthesis.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from autobrowse.control.policies.policy_engine import PolicyEngine
from autobrowse.core.world_model import WorldModel
from autobrowse.interfaces.web import (
    Action,
    ActionTarget,
    ActionType,
    Observation,
    ObservationMode,
    RiskLevel,
)
from autobrowse.utils.urls import extract_explicit_urls

SEARCH_LIMIT = 8
SCROLL_DELTA_Y = 1200
SCROLL_TEXT_LIMIT = 4000
DEFAULT_CLICK_TARGET = "continue"

CLICK_RE = re.compile(r"\b(click|press|tap)\b", re.IGNORECASE)
FILL_RE = re.compile(r"\b(fill|type)\b", re.IGNORECASE)
SCROLL_RE = re.compile(r"\bscroll\b", re.IGNORECASE)
QUOTED_RE = re.compile(r"[\"']([^\"']+)[\"']")


@dataclass
class ActionDecision:
    """A proposed action with its classified risk."""
    action: Action
    reason: str
    risk: RiskLevel
    needs_confirmation: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "reason": self.reason,
            "risk": self.risk.value,
            "needsConfirmation": self.needs_confirmation,
        }


def quoted_target(goal: str) -> Optional[str]:
    """First quoted phrase in the goal."""
    match = QUOTED_RE.search(goal)
    if not match or not match.group(1).strip():
        return None
    return match.group(1).strip()


def decide_next_action(
    goal: str,
    world: WorldModel,
    policy: PolicyEngine,
    observation: Optional[Observation] = None,
    mode: ObservationMode = ObservationMode.DOM_VISION,
) -> ActionDecision:
    """
    Propose the next action for a goal.

    Args:
        goal: What the user wants done
        world: Session world model; its goal is replaced
        policy: Engine classifying the proposed action
        observation: Latest page observation, if any
        mode: Observation mode for the default extract

    Raises:
        PolicyDeniedError: If a rule denies the proposed action
    """
    goal = str(goal or "").strip()
    world.set_goal(goal)

    if observation is None:
        urls = extract_explicit_urls(goal)
        if urls:
            action = Action(type=ActionType.NAVIGATE, url=urls[0])
            reason = "Goal names a URL; open it first."
        else:
            action = Action(type=ActionType.SEARCH, value=goal, options={"limit": SEARCH_LIMIT})
            reason = "No URL given; search the web first."
    elif CLICK_RE.search(goal):
        action = Action(
            type=ActionType.CLICK,
            target=ActionTarget(text=quoted_target(goal) or DEFAULT_CLICK_TARGET),
        )
        reason = "Goal asks for an interaction; click the named target."
    elif FILL_RE.search(goal):
        action = Action(
            type=ActionType.FILL,
            target=ActionTarget(role="textbox"),
            value=quoted_target(goal) or "",
        )
        reason = "Goal asks for form input; fill the likely textbox."
    elif SCROLL_RE.search(goal) and len(observation.visible_text) < SCROLL_TEXT_LIMIT:
        action = Action(type=ActionType.SCROLL, options={"deltaY": SCROLL_DELTA_Y})
        reason = "Little visible content; scroll for more."
    else:
        action = Action(type=ActionType.EXTRACT, options={"mode": mode.value})
        reason = "Extract the page for answer synthesis."

    decision = policy.evaluate(action)
    return ActionDecision(
        action=action,
        reason=reason,
        risk=decision.risk,
        needs_confirmation=decision.needs_confirmation,
    )
