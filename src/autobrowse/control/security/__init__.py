"""
Security submodule - Confirmation tokens for high-risk actions.
"""

from autobrowse.control.security.approval import (
    compute_action_digest,
    sign_approval_token,
    verify_approval_token,
)

__all__ = [
    "compute_action_digest",
    "sign_approval_token",
    "verify_approval_token",
]
