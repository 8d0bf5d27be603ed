"""
Action outcomes.

``ActionExecutor.execute`` returns exactly one of:

- ``Ok``: the action ran; ``data`` carries its result
- ``NeedsConfirmation``: the policy gated the action; nothing ran
- ``Err``: the action was attempted (or rejected) and failed

Each converts to the ``ActionExecutionResult`` wire shape with ``to_result()``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union

from autobrowse.interfaces.web import (
    Action,
    ActionExecutionResult,
    ConfirmationDetails,
    RiskLevel,
)


@dataclass
class Ok:
    """Successful execution."""
    action: Action
    risk: RiskLevel
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return True

    def to_result(self) -> ActionExecutionResult:
        return ActionExecutionResult(
            success=True,
            action=self.action,
            risk=self.risk,
            needs_confirmation=False,
            data=self.data,
        )


@dataclass
class NeedsConfirmation:
    """High-risk action held back until a valid confirmation token is supplied."""
    action: Action
    risk: RiskLevel
    details: ConfirmationDetails

    @property
    def success(self) -> bool:
        return False

    def to_result(self) -> ActionExecutionResult:
        return ActionExecutionResult(
            success=False,
            action=self.action,
            risk=self.risk,
            needs_confirmation=True,
            confirmation_required=self.details,
        )


@dataclass
class Err:
    """Failed execution. ``error`` is the exception that stopped the action."""
    action: Action
    risk: RiskLevel
    error: Exception

    @property
    def success(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)

    def raise_error(self) -> None:
        """Re-raise the underlying exception."""
        raise self.error

    def to_result(self) -> ActionExecutionResult:
        return ActionExecutionResult(
            success=False,
            action=self.action,
            risk=self.risk,
            needs_confirmation=False,
            data={"error": self.message, "errorType": type(self.error).__name__},
        )


ActionOutcome = Union[Ok, NeedsConfirmation, Err]
