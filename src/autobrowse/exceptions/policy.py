"""
Policy-related exceptions.
"""

from typing import Any, Dict

from autobrowse.exceptions.base import AutobrowseError


class PolicyError(AutobrowseError):
    """Base exception for policy errors."""
    pass


class ConfirmationRequired(PolicyError):
    """
    A high-risk action was attempted without a valid confirmation token.
    
    This is an internal signal: ActionExecutor converts it into a
    NeedsConfirmation outcome instead of letting it cross the tool boundary.
    
    Attributes:
        session_id: Session the action was bound to
        action_digest: Stable digest of the action
        command_hint: Hint for issuing the approval out of band
    """
    
    def __init__(self, session_id: str, action_digest: str, command_hint: str, risk: str = "high"):
        super().__init__(
            "High-risk action requires human confirmation token",
            {"session_id": session_id, "action_digest": action_digest},
        )
        self.session_id = session_id
        self.action_digest = action_digest
        self.command_hint = command_hint
        self.risk = risk
    
    def to_dict(self) -> Dict[str, Any]:
        """Wire shape of the confirmation request."""
        return {
            "actionDigest": self.action_digest,
            "sessionId": self.session_id,
            "commandHint": self.command_hint,
        }


class PolicyDeniedError(PolicyError):
    """
    An action matched a DENY policy rule.
    """
    
    def __init__(self, message: str, policy_name: str):
        super().__init__(message, {"policy": policy_name})
        self.policy_name = policy_name
