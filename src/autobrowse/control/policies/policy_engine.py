"""
Policy Engine - Classify action risk and gate high-risk actions.

Risk comes from a static table keyed by action type, refined by target
keywords (click) and destination (navigate). Configurable rules can deny
an action outright or escalate it to require confirmation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
import re
import logging

from autobrowse.control.security.approval import (
    DEFAULT_CONFIRM_SECRET,
    compute_action_digest,
    verify_approval_token,
)
from autobrowse.exceptions import ConfirmationRequired, PolicyDeniedError
from autobrowse.interfaces.web import Action, ActionType, RiskLevel
from autobrowse.utils.urls import url_host

logger = logging.getLogger(__name__)

DEFAULT_HIGH_RISK_KEYWORDS = (
    "buy", "purchase", "order", "confirm", "delete", "remove",
    "send", "publish", "transfer", "save", "submit", "pay", "checkout",
)

SENSITIVE_PATH_RE = re.compile(
    r"(^|/)(checkout|payments?|pay|login|log-in|signin|sign-in|oauth2?|password|billing/update|account/delete)(/|$|\.)",
    re.IGNORECASE,
)

LOW_RISK_TYPES = {ActionType.SEARCH, ActionType.EXTRACT, ActionType.SCROLL, ActionType.WAIT}


class PolicyType(Enum):
    """Types of policy rules."""
    DOMAIN = "domain"
    ACTION = "action"


class PolicyAction(Enum):
    """Actions to take when a rule matches."""
    ALLOW = "allow"
    DENY = "deny"
    CONFIRM = "confirm"  # Require a confirmation token


@dataclass
class Policy:
    """
    A policy rule.
    
    Attributes:
        name: Rule name
        policy_type: DOMAIN rules match the navigation URL, ACTION rules the action type
        pattern: Regex matched at the start of the value
        action: What to do when matched
        priority: Higher priority rules are evaluated first
        enabled: Whether the rule is active
    """
    name: str
    policy_type: PolicyType
    pattern: str
    action: PolicyAction
    priority: int = 0
    enabled: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    
    def matches(self, value: str) -> bool:
        """Check if value matches the rule pattern."""
        try:
            return bool(re.match(self.pattern, value))
        except re.error:
            return self.pattern in value


@dataclass
class PolicyDecision:
    """
    Result of evaluating one action.
    
    Attributes:
        risk: Classified risk
        needs_confirmation: True for high-risk actions
        reason: Human-readable reason
        action_digest: Stable digest the confirmation token must bind
        policy: Rule that matched, if any
    """
    risk: RiskLevel
    needs_confirmation: bool
    reason: str
    action_digest: str
    policy: Optional[Policy] = None


class PolicyEngine:
    """
    Classify and gate browser actions.
    
    Example:
        >>> engine = PolicyEngine(secret="s3cret")
        >>> action = Action.from_dict({"type": "click", "target": {"text": "Buy now"}})
        >>> engine.evaluate(action).risk
        <RiskLevel.HIGH: 'high'>
        >>> engine.assert_allowed(action, "conv-1")  # raises ConfirmationRequired
    """
    
    def __init__(
        self,
        secret: str = DEFAULT_CONFIRM_SECRET,
        allowed_domains: Optional[Iterable[str]] = None,
        high_risk_keywords: Optional[Iterable[str]] = None,
        cli_name: str = "autobrowse",
    ):
        """
        Initialize the policy engine.
        
        Args:
            secret: HMAC secret for confirmation tokens
            allowed_domains: On-profile hosts; navigation elsewhere is high risk
            high_risk_keywords: Click target keywords escalating risk to high
            cli_name: Command name used in approval hints
        """
        self._secret = secret
        self._allowed_domains = [d.strip().lower() for d in (allowed_domains or []) if d.strip()]
        self._keywords = [k.strip().lower() for k in (high_risk_keywords or DEFAULT_HIGH_RISK_KEYWORDS) if k.strip()]
        # Whole words only: "pay" must not match "Display" or "Payload"
        self._keyword_re = re.compile(
            r"\b(?:" + "|".join(re.escape(k) for k in self._keywords) + r")\b"
        ) if self._keywords else None
        self._cli_name = cli_name
        self._policies: List[Policy] = []
    
    @classmethod
    def from_settings(cls, settings: Any) -> "PolicyEngine":
        """Build from a Settings instance."""
        policy = settings.policy
        return cls(
            secret=policy.confirm_secret.get_secret_value(),
            allowed_domains=policy.allowed_domains,
            high_risk_keywords=policy.high_risk_keywords,
            cli_name=policy.cli_name,
        )
    
    # ==================== Rules ====================
    
    def add_policy(self, policy: Policy) -> None:
        """Add a rule; rules are kept sorted by priority (higher first)."""
        self._policies.append(policy)
        self._policies.sort(key=lambda p: p.priority, reverse=True)
    
    def remove_policy(self, name: str) -> bool:
        """Remove a rule by name. Returns True if one was removed."""
        initial_count = len(self._policies)
        self._policies = [p for p in self._policies if p.name != name]
        return len(self._policies) < initial_count
    
    def get_policies(self, policy_type: Optional[PolicyType] = None) -> List[Policy]:
        """Rules, optionally filtered by type."""
        if policy_type is None:
            return self._policies.copy()
        return [p for p in self._policies if p.policy_type == policy_type]
    
    def _match_rule(self, action: Action) -> Optional[Policy]:
        for policy in self._policies:
            if not policy.enabled:
                continue
            if policy.policy_type == PolicyType.ACTION and policy.matches(action.type.value):
                return policy
            if (
                policy.policy_type == PolicyType.DOMAIN
                and action.type == ActionType.NAVIGATE
                and action.url
                and policy.matches(action.url)
            ):
                return policy
        return None
    
    # ==================== Classification ====================
    
    def is_off_profile(self, url: str) -> bool:
        """True when allowed domains are configured and url's host is outside them."""
        if not self._allowed_domains:
            return False
        host = url_host(url)
        return not any(host == d or host.endswith(f".{d}") for d in self._allowed_domains)
    
    def classify_risk(self, action: Action) -> RiskLevel:
        """Static risk table."""
        if action.type == ActionType.SUBMIT:
            return RiskLevel.HIGH
        
        if action.type == ActionType.CLICK:
            target = action.target
            target_text = f"{(target.text if target else '') or ''} {(target.css if target else '') or ''}".lower()
            if self._keyword_re is not None and self._keyword_re.search(target_text):
                return RiskLevel.HIGH
            return RiskLevel.MEDIUM
        
        if action.type == ActionType.FILL:
            return RiskLevel.MEDIUM
        
        if action.type == ActionType.NAVIGATE:
            url = action.url or ""
            if url and (self.is_off_profile(url) or self._is_sensitive_path(url)):
                return RiskLevel.HIGH
            return RiskLevel.LOW
        
        if action.type in LOW_RISK_TYPES:
            return RiskLevel.LOW
        
        return RiskLevel.MEDIUM
    
    @staticmethod
    def _is_sensitive_path(url: str) -> bool:
        match = re.match(r"^[a-z][a-z0-9+.-]*://[^/?#]*([^?#]*)", url.strip(), re.IGNORECASE)
        path = match.group(1) if match else url
        return bool(SENSITIVE_PATH_RE.search(path))
    
    def evaluate(self, action: Action) -> PolicyDecision:
        """
        Classify an action without checking tokens.
        
        Raises:
            PolicyDeniedError: If a DENY rule matches
        """
        risk = self.classify_risk(action)
        rule = self._match_rule(action)
        
        if rule is not None and rule.action == PolicyAction.DENY:
            logger.warning(f"Action {action.type.value} denied by policy '{rule.name}'")
            raise PolicyDeniedError(
                f"Action '{action.type.value}' denied by policy '{rule.name}'",
                policy_name=rule.name,
            )
        if rule is not None and rule.action == PolicyAction.CONFIRM:
            risk = RiskLevel.HIGH
        
        needs_confirmation = risk == RiskLevel.HIGH
        return PolicyDecision(
            risk=risk,
            needs_confirmation=needs_confirmation,
            reason=(
                "High-risk action requires human confirmation token"
                if needs_confirmation else "Action allowed"
            ),
            action_digest=compute_action_digest(action),
            policy=rule,
        )
    
    def command_hint(self, session_id: str, action_digest: str) -> str:
        """Out-of-band approval command for a gated action."""
        return f"{self._cli_name} approve {session_id} {action_digest}"
    
    def assert_allowed(
        self,
        action: Action,
        session_id: str,
        token: Optional[str] = None,
    ) -> PolicyDecision:
        """
        Evaluate an action and check its confirmation token.
        
        Args:
            action: Action about to run
            session_id: Session the token must be bound to
            token: Confirmation token, if the caller has one
            
        Returns:
            The decision for an allowed action
            
        Raises:
            ConfirmationRequired: High-risk action without a valid token
            PolicyDeniedError: A DENY rule matched
        """
        decision = self.evaluate(action)
        if not decision.needs_confirmation:
            return decision
        
        if not token or not verify_approval_token(session_id, decision.action_digest, token, self._secret):
            raise ConfirmationRequired(
                session_id=session_id,
                action_digest=decision.action_digest,
                command_hint=self.command_hint(session_id, decision.action_digest),
                risk=decision.risk.value,
            )
        
        logger.info(f"Confirmed high-risk {action.type.value} for session {session_id}")
        return decision
