"""
Policies submodule - Risk classification and rule enforcement.
"""

from autobrowse.control.policies.policy_engine import (
    PolicyEngine,
    Policy,
    PolicyAction,
    PolicyDecision,
    PolicyType,
)

__all__ = [
    "PolicyEngine",
    "Policy",
    "PolicyAction",
    "PolicyDecision",
    "PolicyType",
]
