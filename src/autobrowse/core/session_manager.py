"""
Session Manager - One live browser session per conversation.

Owns the keyed map from session id to the backend hosting it, chooses a
backend on start (with fallback to the local browser), and hands out the
live page to collaborators for the duration of one action.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from autobrowse.browsers.profiles import ProfileAssignmentStore
from autobrowse.exceptions import (
    BrowserProviderError,
    NoActiveSessionError,
    is_recoverable_provider_error,
)
from autobrowse.interfaces.provider import IBrowserProvider
from autobrowse.interfaces.web import (
    BackendPreference,
    BackendType,
    SessionConfig,
    SessionSnapshot,
    Viewport,
)
from autobrowse.registry import get_backend
from autobrowse.reporting.telemetry import Telemetry
from autobrowse.utils.urls import sanitize_id

logger = logging.getLogger(__name__)

DEFAULT_IDLE_MS = 10 * 60 * 1000
REMOTE_PRIORITY = (BackendType.STEEL, BackendType.BROWSERBASE)


@dataclass
class _Route:
    backend: BackendType
    config: SessionConfig


class SessionManager:
    """
    Start, look up and end browser sessions across backends.
    
    Backend choice: the call's preference, else the configured one, else
    ``auto``. ``auto`` tries each configured remote backend (Steel first, for
    its live view), then the local browser. A remote failure moves on only
    when fallback is enabled and the error is recoverable; an explicitly
    requested remote backend never falls back.
    
    Example:
        >>> manager = SessionManager.from_settings(settings)
        >>> snapshot = await manager.start_session("conv-1", SessionConfig())
        >>> page = await manager.get_page("conv-1")
        >>> await manager.end_session("conv-1")
        {'closed': True}
    """
    
    def __init__(
        self,
        settings: Any,
        providers: Dict[BackendType, IBrowserProvider],
        telemetry: Optional[Telemetry] = None,
        assignments: Optional[ProfileAssignmentStore] = None,
    ):
        if BackendType.LOCAL not in providers:
            raise ValueError("A local provider is required")
        self._settings = settings
        self._providers = providers
        self._telemetry = telemetry or Telemetry()
        self._assignments = assignments
        self._routes: Dict[str, _Route] = {}
    
    @classmethod
    def from_settings(cls, settings: Any, telemetry: Optional[Telemetry] = None) -> "SessionManager":
        """Assemble every registered backend from settings."""
        import autobrowse.browsers  # noqa: F401  registers backends
        
        telemetry = telemetry or Telemetry(settings.logging.telemetry_dir)
        providers = {
            backend: get_backend(backend.value)(settings, telemetry)
            for backend in (BackendType.LOCAL, BackendType.STEEL, BackendType.BROWSERBASE)
        }
        return cls(
            settings,
            providers,
            telemetry=telemetry,
            assignments=ProfileAssignmentStore(settings.browser.data_dir),
        )
    
    @property
    def telemetry(self) -> Telemetry:
        return self._telemetry
    
    def default_config(self) -> SessionConfig:
        """Session config built from settings alone."""
        browser = self._settings.browser
        return SessionConfig(
            headless=browser.headless,
            viewport=Viewport(browser.viewport_width, browser.viewport_height),
            locale=browser.locale,
            timezone=browser.timezone,
        )
    
    def resolve_profile_id(self, session_id: str, requested: Optional[str]) -> str:
        """Call parameter > pinned assignment > configured default."""
        if requested:
            return sanitize_id(requested)
        pinned = self._assignments.get(session_id) if self._assignments else None
        return sanitize_id(pinned or self._settings.browser.profile_id)
    
    def _resolve_preference(self, config: SessionConfig) -> BackendPreference:
        if config.backend_preference is not None:
            return config.backend_preference
        return BackendPreference(self._settings.backend.preference)
    
    def _candidates(self, preference: BackendPreference) -> List[BackendType]:
        if preference != BackendPreference.AUTO:
            return [BackendType(preference.value)]
        candidates = [
            backend for backend in REMOTE_PRIORITY
            if backend in self._providers and self._providers[backend].is_configured()
        ]
        candidates.append(BackendType.LOCAL)
        return candidates
    
    # ==================== Lifecycle ====================
    
    async def start_session(self, session_id: str, config: Optional[SessionConfig] = None) -> SessionSnapshot:
        """
        Start (or reuse) the session for a conversation.
        
        Args:
            session_id: Logical conversation id
            config: Session parameters; settings defaults when None
            
        Returns:
            Snapshot of the ready session
            
        Raises:
            BrowserProviderError: Remote failure that may not fall back
            BrowserLaunchError: Local browser failed to start
        """
        config = config or self.default_config()
        config = replace(config, profile_id=self.resolve_profile_id(session_id, config.profile_id))
        
        existing = await self._reuse_existing(session_id, config)
        if existing is not None:
            return existing
        
        preference = self._resolve_preference(config)
        fallback_enabled = (
            config.fallback_on_error
            if config.fallback_on_error is not None
            else self._settings.backend.fallback_on_error
        )
        explicit = preference != BackendPreference.AUTO
        candidates = self._candidates(preference)
        
        for index, backend in enumerate(candidates):
            provider = self._providers.get(backend)
            if provider is None:
                raise BrowserProviderError(
                    f"Backend '{backend.value}' is not available",
                    recoverable=False,
                    backend=backend.value,
                )
            try:
                snapshot = await provider.start_session(session_id, config)
            except Exception as e:
                if backend == BackendType.LOCAL:
                    raise
                recoverable = is_recoverable_provider_error(e)
                has_next = index < len(candidates) - 1
                can_fall_back = fallback_enabled and recoverable and not explicit and has_next
                next_backend = candidates[index + 1].value if can_fall_back else "none"
                self._telemetry.record(session_id, "backend_switch", {
                    "from": backend.value,
                    "to": next_backend,
                    "reason": str(e),
                    "recoverable": recoverable,
                    "quotaLimited": getattr(e, "quota_limited", False),
                })
                if not can_fall_back:
                    raise
                logger.warning(f"Backend {backend.value} failed for {session_id}, trying {next_backend}: {e}")
                continue
            
            self._routes[session_id] = _Route(backend=backend, config=config)
            if self._assignments is not None:
                self._assignments.set(session_id, snapshot.profile_id)
            return snapshot
        
        raise BrowserProviderError("No browser backend available", recoverable=False)
    
    async def _reuse_existing(self, session_id: str, config: SessionConfig) -> Optional[SessionSnapshot]:
        route = self._routes.get(session_id)
        if route is None:
            return None
        provider = self._providers[route.backend]
        snapshot = provider.get_session(session_id)
        if snapshot is not None and snapshot.profile_id == config.profile_id:
            provider.touch(session_id)
            return provider.get_session(session_id) or snapshot
        
        if snapshot is None:
            logger.info(f"Session {session_id} went stale on {route.backend.value}; restarting")
        else:
            logger.info(f"Session {session_id} profile changed ({snapshot.profile_id} -> {config.profile_id}); replacing")
            self._telemetry.record(session_id, "session_replace", {
                "fromProfile": snapshot.profile_id,
                "toProfile": config.profile_id,
            })
        await provider.end_session(session_id)
        self._routes.pop(session_id, None)
        return None
    
    async def get_page(self, session_id: str) -> Any:
        """
        Live page of a session.
        
        Raises:
            NoActiveSessionError: If the session is missing or its page closed
        """
        route = self._routes.get(session_id)
        if route is None:
            raise NoActiveSessionError(session_id)
        page = await self._providers[route.backend].get_page(session_id)
        if page is None:
            raise NoActiveSessionError(session_id)
        return page
    
    def get_session(self, session_id: str) -> SessionSnapshot:
        """
        Snapshot of a session.
        
        Raises:
            NoActiveSessionError: If the session is missing
        """
        route = self._routes.get(session_id)
        snapshot = self._providers[route.backend].get_session(session_id) if route else None
        if snapshot is None:
            raise NoActiveSessionError(session_id, hint="")
        return snapshot
    
    def has_session(self, session_id: str) -> bool:
        route = self._routes.get(session_id)
        return route is not None and self._providers[route.backend].get_session(session_id) is not None
    
    def session_config(self, session_id: str) -> Optional[SessionConfig]:
        """Config a live route was started with."""
        route = self._routes.get(session_id)
        return route.config if route else None
    
    async def end_session(self, session_id: str) -> Dict[str, bool]:
        route = self._routes.pop(session_id, None)
        if route is None:
            return {"closed": False}
        closed = await self._providers[route.backend].end_session(session_id)
        return {"closed": bool(closed)}
    
    def touch(self, session_id: str) -> None:
        route = self._routes.get(session_id)
        if route is not None:
            self._providers[route.backend].touch(session_id)
    
    async def cleanup_idle_sessions(self, idle_ms: int = DEFAULT_IDLE_MS) -> int:
        closed = 0
        for provider in self._providers.values():
            closed += await provider.cleanup_idle_sessions(idle_ms)
        for session_id, route in list(self._routes.items()):
            if self._providers[route.backend].get_session(session_id) is None:
                self._routes.pop(session_id, None)
        return closed
    
    async def close_all(self) -> None:
        for session_id in list(self._routes.keys()):
            await self.end_session(session_id)
        for provider in self._providers.values():
            try:
                await provider.close_all()
            except Exception as e:
                logger.warning(f"Provider {provider.backend.value} shutdown failed: {e}")
