"""
Core module - Sessions, task state and the per-turn navigation loop.

This module contains the SessionManager that owns live browser sessions,
the per-session world model, task frames and the NavigationPlanner that
browses for one conversational turn.
"""

from autobrowse.core.session_manager import SessionManager
from autobrowse.core.world_model import WorldModel, WorldModelStore
from autobrowse.core.task_frame import TaskFrameArena, TaskFrameBuilder, finalize_task_frame
from autobrowse.core.judge import DeterministicJudge, LLMJudge, NavigationDecision
from autobrowse.core.navigation import NavigationPlanner, StopReason, TurnResult

__all__ = [
    "SessionManager",
    "WorldModel",
    "WorldModelStore",
    "TaskFrameArena",
    "TaskFrameBuilder",
    "finalize_task_frame",
    "DeterministicJudge",
    "LLMJudge",
    "NavigationDecision",
    "NavigationPlanner",
    "StopReason",
    "TurnResult",
]
