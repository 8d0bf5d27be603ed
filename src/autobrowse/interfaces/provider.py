"""
Browser Provider Interface - Contract for browser-hosting backends.

A provider owns the live browser resources of the sessions it started.
SessionManager picks a provider per session and delegates to it.

Example:
    >>> provider = LocalPlaywrightProvider(settings)
    >>> snapshot = await provider.start_session("conv-1", SessionConfig())
    >>> page = await provider.get_page("conv-1")
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from autobrowse.interfaces.web import BackendType, SessionConfig, SessionSnapshot


class IBrowserProvider(ABC):
    """
    Abstract interface for a browser backend.
    
    Implementations must raise BrowserProviderError (or BrowserLaunchError)
    when a session cannot be started, with ``recoverable`` set when another
    backend may succeed.
    """

    @property
    @abstractmethod
    def backend(self) -> BackendType:
        """Backend this provider hosts sessions on."""
        ...

    def is_configured(self) -> bool:
        """Whether credentials/config needed to start sessions are present."""
        return True

    @abstractmethod
    async def start_session(self, session_id: str, config: SessionConfig) -> SessionSnapshot:
        """
        Start a browser session.
        
        Args:
            session_id: Logical conversation id
            config: Session parameters
            
        Returns:
            Snapshot of the ready session
        """
        ...

    @abstractmethod
    async def get_page(self, session_id: str) -> Optional[Any]:
        """Live Playwright page of a session, or None when it is gone."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[SessionSnapshot]:
        """Snapshot of a session, or None."""
        ...

    @abstractmethod
    async def end_session(self, session_id: str) -> bool:
        """Close a session. Returns True if one was closed."""
        ...

    @abstractmethod
    def touch(self, session_id: str) -> None:
        """Mark a session as used now."""
        ...

    @abstractmethod
    async def cleanup_idle_sessions(self, idle_ms: int) -> int:
        """Close sessions idle for longer than idle_ms. Returns the count closed."""
        ...

    @abstractmethod
    async def close_all(self) -> None:
        """Close every session and release the browser runtime."""
        ...
