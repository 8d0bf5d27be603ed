"""
Playwright session base - Bookkeeping shared by every backend.

Keeps the keyed map of live sessions, follows newly opened tabs, and
produces snapshots. Concrete providers only differ in how they obtain a
browser context.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from autobrowse.interfaces.provider import IBrowserProvider
from autobrowse.interfaces.web import SessionConfig, SessionSnapshot, SessionStatus
from autobrowse.reporting.telemetry import Telemetry
from autobrowse.utils.retry import now_ms

logger = logging.getLogger(__name__)

DEFAULT_PAGE_TIMEOUT_MS = 60_000


def ms_to_iso(value: int) -> str:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ManagedSession:
    """
    Live browser resources of one session.
    
    Attributes:
        session_id: Logical conversation id
        profile_id: Profile the session runs with
        config: Config the session was started with
        context: Playwright BrowserContext
        page: Active page (follows new tabs)
        browser: Playwright Browser for CDP-connected sessions
        lease: Local profile lease, if any
    """
    session_id: str
    profile_id: str
    config: SessionConfig
    context: Any
    page: Any
    browser: Any = None
    lease: Any = None
    remote_session_id: Optional[str] = None
    remote_context_id: Optional[str] = None
    live_view_url: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    last_used_at: int = field(default_factory=now_ms)


class PlaywrightSessionProvider(IBrowserProvider):
    """
    Base class for Playwright-backed providers.
    
    Subclasses implement start_session and end_session; everything else
    works off the session map.
    """
    
    def __init__(self, telemetry: Optional[Telemetry] = None, page_timeout_ms: int = DEFAULT_PAGE_TIMEOUT_MS):
        self._telemetry = telemetry or Telemetry()
        self._page_timeout_ms = page_timeout_ms
        self._sessions: Dict[str, ManagedSession] = {}
        self._playwright: Any = None
        self._tab_ids: Dict[int, str] = {}
        self._tab_counter = 0
    
    async def _ensure_playwright(self) -> Any:
        """Start the Playwright driver on first use."""
        if self._playwright is None:
            from playwright.async_api import async_playwright
            
            self._playwright = await async_playwright().start()
        return self._playwright
    
    def _live_session(self, session_id: str) -> Optional[ManagedSession]:
        session = self._sessions.get(session_id)
        if session is None or session.page.is_closed():
            return None
        return session
    
    async def get_page(self, session_id: str) -> Optional[Any]:
        session = self._live_session(session_id)
        if session is None:
            return None
        self.touch(session_id)
        return session.page
    
    def get_session(self, session_id: str) -> Optional[SessionSnapshot]:
        session = self._live_session(session_id)
        return self._snapshot(session) if session else None
    
    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_used_at = now_ms()
    
    def session_ids(self) -> List[str]:
        return list(self._sessions.keys())
    
    async def cleanup_idle_sessions(self, idle_ms: int) -> int:
        now = now_ms()
        closed = 0
        for session_id, session in list(self._sessions.items()):
            if now - session.last_used_at < idle_ms:
                continue
            await self.end_session(session_id)
            closed += 1
        return closed
    
    async def close_all(self) -> None:
        for session_id in list(self._sessions.keys()):
            await self.end_session(session_id)
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
    
    def _snapshot(self, session: ManagedSession) -> SessionSnapshot:
        config = session.config
        return SessionSnapshot(
            session_id=session.session_id,
            profile_id=session.profile_id,
            backend=self.backend,
            status=SessionStatus.READY,
            url=session.page.url,
            headless=config.headless,
            viewport=config.viewport,
            locale=config.locale,
            timezone=config.timezone,
            created_at=ms_to_iso(session.created_at),
            last_used_at=ms_to_iso(session.last_used_at),
            live_view_url=session.live_view_url,
            remote_session_id=session.remote_session_id,
            remote_context_id=session.remote_context_id,
        )
    
    async def _prepare_page(self, session_id: str, context: Any, config: SessionConfig) -> Any:
        """Pick the first page, attach tab tracking and open start_url."""
        pages = context.pages
        page = pages[0] if pages else await context.new_page()
        page.set_default_timeout(self._page_timeout_ms)
        page.set_default_navigation_timeout(self._page_timeout_ms)
        
        context.on("page", lambda new_page: self._on_new_page(session_id, new_page))
        for existing in context.pages:
            self._attach_page_events(session_id, existing)
        
        if config.start_url:
            await page.goto(config.start_url, wait_until="load")
        return page
    
    def _tab_id(self, session_id: str, page: Any) -> str:
        key = id(page)
        if key not in self._tab_ids:
            self._tab_counter += 1
            self._tab_ids[key] = f"{session_id}-tab-{self._tab_counter}"
        return self._tab_ids[key]
    
    def _on_new_page(self, session_id: str, page: Any) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.page = page
        self._attach_page_events(session_id, page)
    
    def _attach_page_events(self, session_id: str, page: Any) -> None:
        if id(page) in self._tab_ids:
            return
        tab_id = self._tab_id(session_id, page)
        backend = self.backend.value
        self._telemetry.record(session_id, "tab_open", {"tabId": tab_id, "url": page.url, "backend": backend})
        
        def on_navigated(frame: Any) -> None:
            if frame != page.main_frame:
                return
            self._telemetry.record(session_id, "tab_navigate", {"tabId": tab_id, "url": frame.url, "backend": backend})
        
        def on_close(closed_page: Any) -> None:
            self._telemetry.record(session_id, "tab_close", {"tabId": tab_id, "backend": backend})
            self._tab_ids.pop(id(page), None)
            session = self._sessions.get(session_id)
            if session is None or session.page is not page:
                return
            for candidate in session.context.pages:
                if not candidate.is_closed():
                    session.page = candidate
                    break
        
        page.on("framenavigated", on_navigated)
        page.on("close", on_close)
