"""
Approval tokens - Stateless HMAC sign-off for high-risk actions.

A token binds one session to one action digest. Validity is re-derived
by recomputing the signature; nothing is stored.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Union

from autobrowse.interfaces.web import Action

DEFAULT_CONFIRM_SECRET = "autobrowse-local-confirm-secret"


def stable_json(value: Any) -> str:
    """Compact JSON with sorted keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_action_digest(action: Union[Action, dict]) -> str:
    """
    SHA-256 hex digest of an action's semantic fields.
    
    Example:
        >>> a = Action.from_dict({"type": "click", "target": {"text": "Buy"}})
        >>> compute_action_digest(a) == compute_action_digest(a.to_dict())
        True
    """
    payload = action.to_dict() if isinstance(action, Action) else action
    return hashlib.sha256(stable_json(payload).encode("utf-8")).hexdigest()


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def sign_approval_token(session_id: str, action_digest: str, secret: str = DEFAULT_CONFIRM_SECRET) -> str:
    """URL-safe base64 HMAC-SHA256 over ``session_id:action_digest``, no padding."""
    mac = hmac.new(secret.encode("utf-8"), f"{session_id}:{action_digest}".encode("utf-8"), hashlib.sha256)
    return _b64url(mac.digest())


def verify_approval_token(
    session_id: str,
    action_digest: str,
    token: str,
    secret: str = DEFAULT_CONFIRM_SECRET,
) -> bool:
    """Constant-time check of a token against the recomputed signature."""
    if not token:
        return False
    expected = sign_approval_token(session_id, action_digest, secret)
    return hmac.compare_digest(expected.encode("ascii"), str(token).strip().encode("utf-8", "replace"))
