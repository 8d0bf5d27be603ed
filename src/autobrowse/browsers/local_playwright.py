"""
Local Playwright backend - In-process Chromium with persistent profiles.
"""

import logging
from typing import Any, Optional

from autobrowse.browsers.base import ManagedSession, PlaywrightSessionProvider
from autobrowse.browsers.profiles import ProfileStore
from autobrowse.exceptions import BrowserLaunchError
from autobrowse.interfaces.web import BackendType, SessionConfig, SessionSnapshot
from autobrowse.registry import register_backend
from autobrowse.reporting.telemetry import Telemetry

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled"]


@register_backend("local")
class LocalPlaywrightProvider(PlaywrightSessionProvider):
    """
    Sessions on a locally launched Chromium.
    
    Each session uses ``launch_persistent_context`` on its profile directory,
    guarded by a ProfileStore lease that is renewed on every use.
    
    Example:
        >>> provider = LocalPlaywrightProvider(settings)
        >>> snapshot = await provider.start_session("conv-1", SessionConfig(headless=True))
        >>> snapshot.backend
        <BackendType.LOCAL: 'local'>
    """
    
    def __init__(
        self,
        settings: Any,
        telemetry: Optional[Telemetry] = None,
        profile_store: Optional[ProfileStore] = None,
    ):
        super().__init__(telemetry, page_timeout_ms=settings.browser.default_timeout_ms)
        self._profile_store = profile_store or ProfileStore(
            settings.browser.profiles_dir,
            lease_ms=settings.browser.profile_lease_ms,
        )
    
    @property
    def backend(self) -> BackendType:
        return BackendType.LOCAL
    
    async def start_session(self, session_id: str, config: SessionConfig) -> SessionSnapshot:
        existing = self._live_session(session_id)
        if existing is not None:
            self.touch(session_id)
            return self._snapshot(existing)
        
        lease = self._profile_store.acquire(config.profile_id or session_id)
        context = None
        try:
            playwright = await self._ensure_playwright()
            context = await playwright.chromium.launch_persistent_context(
                str(lease.profile_path),
                headless=config.headless,
                viewport=config.viewport.to_dict(),
                locale=config.locale,
                timezone_id=config.timezone,
                ignore_https_errors=True,
                args=LAUNCH_ARGS,
            )
            page = await self._prepare_page(session_id, context, config)
        except Exception as e:
            self._profile_store.release(lease)
            if context is not None:
                await self._close_quietly(context)
            raise BrowserLaunchError(
                f"Failed to launch local browser: {e}",
                {"profile_id": lease.profile_id},
            ) from e
        
        session = ManagedSession(
            session_id=session_id,
            profile_id=lease.profile_id,
            config=config,
            context=context,
            page=page,
            lease=lease,
        )
        self._sessions[session_id] = session
        self._telemetry.record(session_id, "session_start", {
            "profileId": session.profile_id,
            "url": page.url,
            "headless": config.headless,
            "backend": self.backend.value,
        })
        logger.info(f"Started local session {session_id} (profile={lease.profile_id}, headless={config.headless})")
        return self._snapshot(session)
    
    def touch(self, session_id: str) -> None:
        super().touch(session_id)
        session = self._sessions.get(session_id)
        if session is not None and session.lease is not None:
            self._profile_store.renew(session.lease)
    
    async def end_session(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        try:
            await self._close_quietly(session.context)
        finally:
            if session.lease is not None:
                self._profile_store.release(session.lease)
            self._telemetry.record(session_id, "session_end", {
                "profileId": session.profile_id,
                "backend": self.backend.value,
            })
        return True
    
    @staticmethod
    async def _close_quietly(context: Any) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"Context close failed: {e}")
