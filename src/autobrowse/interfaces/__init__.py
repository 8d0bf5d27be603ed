"""
Interfaces module - Data contracts and abstract base classes.

This module defines the data model shared by every component and the
contracts that browser backends and LLM providers must implement.
"""

from autobrowse.interfaces.web import (
    Action,
    ActionExecutionResult,
    ActionTarget,
    ActionType,
    BackendPreference,
    BackendType,
    BoundingBox,
    ConfirmationDetails,
    Observation,
    ObservationElement,
    ObservationMode,
    PageLink,
    RiskLevel,
    SearchResult,
    SessionConfig,
    SessionSnapshot,
    SessionStatus,
    StructuredExtraction,
    TaskFrame,
    TaskRelation,
    Viewport,
    utc_now_iso,
)
from autobrowse.interfaces.provider import IBrowserProvider
from autobrowse.interfaces.llm import (
    ILLMProvider,
    Message,
    MessageRole,
    LLMResponse,
    Usage,
)

__all__ = [
    # Web data model
    "Action",
    "ActionExecutionResult",
    "ActionTarget",
    "ActionType",
    "BackendPreference",
    "BackendType",
    "BoundingBox",
    "ConfirmationDetails",
    "Observation",
    "ObservationElement",
    "ObservationMode",
    "PageLink",
    "RiskLevel",
    "SearchResult",
    "SessionConfig",
    "SessionSnapshot",
    "SessionStatus",
    "StructuredExtraction",
    "TaskFrame",
    "TaskRelation",
    "Viewport",
    "utc_now_iso",
    # Backend interface
    "IBrowserProvider",
    # LLM interface
    "ILLMProvider",
    "Message",
    "MessageRole",
    "LLMResponse",
    "Usage",
]
