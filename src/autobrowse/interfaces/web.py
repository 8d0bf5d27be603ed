"""
Web Interfaces - Data contracts shared by sessions, perception, policy and tools.

All contracts are plain dataclasses. ``to_dict()`` produces the camelCase
wire shape returned by the tool surface.

Example:
    >>> action = Action.from_dict({"type": "navigate", "url": "https://example.com"})
    >>> action.type
    <ActionType.NAVIGATE: 'navigate'>
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from autobrowse.exceptions import ActionValidationError


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


class BackendType(Enum):
    """Browser-hosting backends."""
    LOCAL = "local"
    BROWSERBASE = "browserbase"
    STEEL = "steel"


class BackendPreference(Enum):
    """Backend requested by the caller."""
    AUTO = "auto"
    LOCAL = "local"
    BROWSERBASE = "browserbase"
    STEEL = "steel"


class SessionStatus(Enum):
    """Lifecycle state of a browser session."""
    STARTING = "starting"
    READY = "ready"
    ENDED = "ended"
    FAILED = "failed"


class ObservationMode(Enum):
    """What an observation captures."""
    DOM = "dom"
    DOM_VISION = "dom+vision"


class RiskLevel(Enum):
    """Risk of an action, as classified by the policy engine."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActionType(Enum):
    """Supported browser actions."""
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    SUBMIT = "submit"
    SCROLL = "scroll"
    WAIT = "wait"
    EXTRACT = "extract"
    SEARCH = "search"


@dataclass(frozen=True)
class Viewport:
    """Browser viewport size in pixels."""
    width: int = 1280
    height: int = 800
    
    def to_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass
class SessionConfig:
    """
    Parameters for starting a browser session.
    
    Attributes:
        profile_id: Browser profile (empty = pinned profile or settings default)
        headless: Run without a visible window
        viewport: Viewport size
        locale: Browser locale
        timezone: IANA timezone id
        start_url: Optional URL opened right after start
        backend_preference: Requested backend (None = settings)
        fallback_on_error: Fall back to local on recoverable remote failures (None = settings)
    """
    profile_id: str = ""
    headless: bool = True
    viewport: Viewport = field(default_factory=Viewport)
    locale: str = "en-US"
    timezone: str = "UTC"
    start_url: Optional[str] = None
    backend_preference: Optional[BackendPreference] = None
    fallback_on_error: Optional[bool] = None


@dataclass
class SessionSnapshot:
    """Serializable view of a live session."""
    session_id: str
    profile_id: str
    backend: BackendType
    status: SessionStatus
    url: str
    headless: bool
    viewport: Viewport
    locale: str
    timezone: str
    created_at: str
    last_used_at: str
    title: Optional[str] = None
    live_view_url: Optional[str] = None
    remote_session_id: Optional[str] = None
    remote_context_id: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "sessionId": self.session_id,
            "profileId": self.profile_id,
            "backend": self.backend.value,
            "status": self.status.value,
            "url": self.url,
            "title": self.title,
            "headless": self.headless,
            "viewport": self.viewport.to_dict(),
            "locale": self.locale,
            "timezone": self.timezone,
            "createdAt": self.created_at,
            "lastUsedAt": self.last_used_at,
            "liveViewUrl": self.live_view_url,
            "remoteSessionId": self.remote_session_id,
            "remoteContextId": self.remote_context_id,
        })


@dataclass(frozen=True)
class ObservationElement:
    """An actionable element seen on the page."""
    id: str
    role: str
    text: str
    css_path: str
    
    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "role": self.role, "text": self.text, "cssPath": self.css_path}


@dataclass(frozen=True)
class Observation:
    """
    Immutable snapshot of perceivable page state.
    
    Attributes:
        url: Page URL at capture time
        title: Document title
        dom_summary: Short count summary of the DOM
        visible_text: Visible body text (capped)
        elements: Actionable elements (capped)
        screenshot_path: Screenshot file, when one was taken
        timestamp: Capture time (ISO-8601)
    """
    url: str
    title: str
    dom_summary: str
    visible_text: str
    elements: tuple = ()
    screenshot_path: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)
    
    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "url": self.url,
            "title": self.title,
            "domSummary": self.dom_summary,
            "visibleText": self.visible_text,
            "elements": [element.to_dict() for element in self.elements],
            "screenshotPath": self.screenshot_path,
            "timestamp": self.timestamp,
        })


@dataclass(frozen=True)
class BoundingBox:
    """Viewport rectangle."""
    x: float
    y: float
    w: float
    h: float
    
    @property
    def center(self) -> tuple:
        return (self.x + self.w / 2, self.y + self.h / 2)
    
    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(frozen=True)
class ActionTarget:
    """What an action acts on."""
    css: Optional[str] = None
    text: Optional[str] = None
    role: Optional[str] = None
    bbox: Optional[BoundingBox] = None
    
    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ActionTarget"]:
        if not data:
            return None
        bbox = data.get("bbox")
        return cls(
            css=data.get("css") or None,
            text=data.get("text") or None,
            role=data.get("role") or None,
            bbox=BoundingBox(
                x=float(bbox["x"]), y=float(bbox["y"]),
                w=float(bbox["w"]), h=float(bbox["h"]),
            ) if bbox else None,
        )
    
    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "css": self.css,
            "text": self.text,
            "role": self.role,
            "bbox": self.bbox.to_dict() if self.bbox else None,
        })


@dataclass(frozen=True)
class Action:
    """
    A browser action. Never mutated after construction.
    
    Attributes:
        type: The action type
        target: Element target for click/fill/submit
        value: Fill text, or search query
        url: Navigation URL
        options: Free-form per-action options
    """
    type: ActionType
    target: Optional[ActionTarget] = None
    value: Optional[str] = None
    url: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        """
        Build an action from its wire shape.
        
        Raises:
            ActionValidationError: If the type is missing or unknown
        """
        raw_type = str((data or {}).get("type") or "").strip().lower()
        try:
            action_type = ActionType(raw_type)
        except ValueError:
            raise ActionValidationError(
                f"Unsupported action type: '{raw_type}'",
                action_type=raw_type,
                invalid_params={"type": raw_type},
            ) from None
        value = data.get("value")
        options = data.get("options")
        return cls(
            type=action_type,
            target=ActionTarget.from_dict(data.get("target")),
            value=None if value is None else str(value),
            url=data.get("url") or None,
            options=dict(options) if isinstance(options, dict) else {},
        )
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.target:
            data["target"] = self.target.to_dict()
        if self.value is not None:
            data["value"] = self.value
        if self.url:
            data["url"] = self.url
        if self.options:
            data["options"] = dict(self.options)
        return data
    
    def with_url(self, url: str) -> "Action":
        """Copy of this action pointing at another URL."""
        return Action(type=self.type, target=self.target, value=self.value, url=url, options=dict(self.options))


@dataclass(frozen=True)
class ConfirmationDetails:
    """What a caller needs to request sign-off for one action."""
    action_digest: str
    session_id: str
    command_hint: str
    
    def to_dict(self) -> Dict[str, str]:
        return {
            "actionDigest": self.action_digest,
            "sessionId": self.session_id,
            "commandHint": self.command_hint,
        }


@dataclass
class ActionExecutionResult:
    """Outcome of one executed (or gated) action."""
    success: bool
    action: Action
    risk: RiskLevel
    needs_confirmation: bool = False
    confirmation_required: Optional[ConfirmationDetails] = None
    data: Optional[Dict[str, Any]] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "success": self.success,
            "action": self.action.to_dict(),
            "risk": self.risk.value,
            "needsConfirmation": self.needs_confirmation,
            "confirmationRequired": (
                self.confirmation_required.to_dict() if self.confirmation_required else None
            ),
            "data": self.data,
        })


@dataclass
class SearchResult:
    """A ranked web search hit. ``url`` is canonical."""
    title: str
    url: str
    snippet: str
    rank: int
    engine: str
    retrieved_at: str
    score: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            snippet=str(data.get("snippet") or ""),
            rank=int(data.get("rank") or 0),
            engine=str(data.get("engine") or ""),
            retrieved_at=str(data.get("retrievedAt") or ""),
            score=float(data.get("score") or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "rank": self.rank,
            "engine": self.engine,
            "retrievedAt": self.retrieved_at,
            "score": self.score,
        }


@dataclass(frozen=True)
class PageLink:
    """A link found during extraction."""
    text: str
    url: str
    
    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "url": self.url}


@dataclass
class StructuredExtraction:
    """Main content of a page."""
    url: str
    title: str
    main_text: str
    headings: List[str] = field(default_factory=list)
    links: List[PageLink] = field(default_factory=list)
    byline: Optional[str] = None
    published_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredExtraction":
        """Rebuild from the wire shape."""
        return cls(
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            main_text=str(data.get("mainText") or ""),
            headings=[str(h) for h in data.get("headings") or []],
            links=[
                PageLink(text=str(link.get("text") or ""), url=str(link.get("url") or ""))
                for link in data.get("links") or []
            ],
            byline=data.get("byline") or None,
            published_at=data.get("publishedAt") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "url": self.url,
            "title": self.title,
            "byline": self.byline,
            "publishedAt": self.published_at,
            "mainText": self.main_text,
            "headings": list(self.headings),
            "links": [link.to_dict() for link in self.links],
        })


class TaskRelation(Enum):
    """How a message relates to the previous turn's task."""
    NEW_TASK = "new_task"
    CONTINUE = "continue"
    CORRECTION = "correction"
    ACKNOWLEDGE = "acknowledge"


@dataclass
class TaskFrame:
    """
    Task state for one conversational turn.
    
    Superseded each turn; entity_status maps entity -> "resolved" | "unresolved".
    """
    session_id: str
    turn_id: str
    relation: TaskRelation
    intent_type: str
    user_objective: str
    entities: List[str] = field(default_factory=list)
    domain_hints: List[str] = field(default_factory=list)
    required_output: str = ""
    missing_inputs: List[str] = field(default_factory=list)
    skill_plan: List[str] = field(default_factory=list)
    entity_status: Dict[str, str] = field(default_factory=dict)
    updated_at: str = field(default_factory=utc_now_iso)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "turnId": self.turn_id,
            "relation": self.relation.value,
            "intentType": self.intent_type,
            "userObjective": self.user_objective,
            "entities": list(self.entities),
            "domainHints": list(self.domain_hints),
            "requiredOutput": self.required_output,
            "missingInputs": list(self.missing_inputs),
            "skillPlan": list(self.skill_plan),
            "entityStatus": dict(self.entity_status),
            "updatedAt": self.updated_at,
        }
