"""
Browser and session lifecycle exceptions.
"""

from autobrowse.exceptions.base import AutobrowseError


class BrowserError(AutobrowseError):
    """Base exception for browser-related errors."""
    pass


class BrowserLaunchError(BrowserError):
    """
    Error launching the browser.
    
    Raised when the in-process browser fails to start, which could be due to:
    - Missing browser binaries
    - A profile directory locked by another process
    - Resource constraints
    """
    pass


class BrowserProviderError(BrowserError):
    """
    A browser backend failed to start or serve a session.
    
    Attributes:
        recoverable: Whether falling back to another backend may succeed
        quota_limited: Whether the backend rejected us for quota/billing reasons
        status_code: HTTP status code returned by a remote backend, if any
        backend: Name of the backend that failed
    """
    
    def __init__(
        self,
        message: str,
        recoverable: bool = True,
        quota_limited: bool = False,
        status_code: int | None = None,
        backend: str | None = None,
    ):
        super().__init__(message, {"backend": backend, "status_code": status_code})
        self.recoverable = recoverable
        self.quota_limited = quota_limited
        self.status_code = status_code
        self.backend = backend


class NoActiveSessionError(BrowserError):
    """
    No live browser session exists for a session id.
    
    Recoverable by restarting the session at the orchestration boundary.
    """
    
    def __init__(self, session_id: str, hint: str = "Start one with web_session_start."):
        super().__init__(
            f"No active web session for '{session_id}'. {hint}".strip(),
            {"session_id": session_id},
        )
        self.session_id = session_id


class NavigationError(BrowserError):
    """
    Error during page navigation.
    
    Raised when navigation fails, such as:
    - Network error
    - Navigation timeout
    """
    
    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message, {"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


RECOVERABLE_MESSAGE_HINTS = (
    "timeout",
    "temporarily unavailable",
    "connection",
    "network",
    "rate limit",
    "429",
)


def is_recoverable_provider_error(error: BaseException) -> bool:
    """
    Decide whether a backend failure may succeed on another backend.
    
    Args:
        error: The exception raised by a provider
        
    Returns:
        True if a fallback is worth attempting
    """
    if isinstance(error, BrowserProviderError):
        return error.recoverable
    message = str(error).lower()
    return any(hint in message for hint in RECOVERABLE_MESSAGE_HINTS)
