"""
Control Module - Action policy and approval.

This module classifies action risk and gates high-risk actions behind
signed confirmation tokens.
"""

from autobrowse.control.policies.policy_engine import PolicyEngine, Policy, PolicyDecision
from autobrowse.control.security.approval import (
    compute_action_digest,
    sign_approval_token,
    verify_approval_token,
)

__all__ = [
    "PolicyEngine",
    "Policy",
    "PolicyDecision",
    "compute_action_digest",
    "sign_approval_token",
    "verify_approval_token",
]
