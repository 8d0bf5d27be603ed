"""
Remote CDP backend base - Managed browsers reached over the DevTools protocol.

A remote session is created with an HTTP call to the vendor API and then
attached with ``chromium.connect_over_cdp``. Transient failures are retried
with backoff; concurrency is bounded per provider.
"""

import logging
import re
from abc import abstractmethod
from typing import Any, Dict, Optional

import httpx

from autobrowse.browsers.base import ManagedSession, PlaywrightSessionProvider
from autobrowse.browsers.remote_context import RemoteContextStore
from autobrowse.exceptions import BrowserProviderError, is_recoverable_provider_error
from autobrowse.interfaces.web import SessionConfig, SessionSnapshot
from autobrowse.reporting.telemetry import Telemetry
from autobrowse.utils.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)

QUOTA_RE = re.compile(r"quota|credits|billing|limit exceeded", re.IGNORECASE)


def extract_error_message(body: Optional[Dict[str, Any]]) -> Optional[str]:
    """First non-empty error field of a JSON error body."""
    if not body:
        return None
    details = body.get("details")
    candidates = [
        body.get("error"),
        body.get("message"),
        body.get("description"),
        details.get("message") if isinstance(details, dict) else None,
    ]
    for candidate in candidates:
        value = str(candidate or "").strip()
        if value:
            return value
    return None


def first_http_url(data: Dict[str, Any], *keys: str) -> Optional[str]:
    """First value among keys that is an http(s) URL."""
    for key in keys:
        value = str(data.get(key) or "").strip()
        if re.match(r"^https?://", value, re.IGNORECASE):
            return value
    return None


def safe_json(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class RemoteCDPProvider(PlaywrightSessionProvider):
    """
    Base class for remote managed-browser backends.
    
    Subclasses supply credentials, auth headers, the create payload and
    live-view lookup.
    """
    
    label = "Remote"
    
    def __init__(
        self,
        settings: Any,
        telemetry: Optional[Telemetry] = None,
        context_store: Optional[RemoteContextStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(telemetry, page_timeout_ms=settings.browser.default_timeout_ms)
        backend = settings.backend
        self._settings = backend
        self._context_store = context_store or RemoteContextStore(settings.browser.data_dir)
        self._max_concurrency = backend.max_concurrency
        self._start_retries = backend.start_retries
        self._enable_live_view = backend.enable_live_view
        self._client = http_client or httpx.AsyncClient(timeout=backend.request_timeout_ms / 1000)
        self._owns_client = http_client is None
    
    # ==================== Vendor hooks ====================
    
    @property
    @abstractmethod
    def api_base_url(self) -> str:
        ...
    
    @abstractmethod
    def _credentials(self) -> Dict[str, str]:
        """Credentials needed for API calls. Raises BrowserProviderError when missing."""
        ...
    
    @abstractmethod
    def _auth_headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        ...
    
    @abstractmethod
    def _create_payload(self, credentials: Dict[str, str], config: SessionConfig) -> Dict[str, Any]:
        ...
    
    @abstractmethod
    def _default_connect_url(self, credentials: Dict[str, str], remote_session_id: str) -> str:
        ...
    
    @abstractmethod
    async def _live_view_url(self, credentials: Dict[str, str], remote_session_id: str, created: Dict[str, Any]) -> Optional[str]:
        ...
    
    def _remember_context(self, session_id: str, config: SessionConfig, remote_session_id: str, created: Dict[str, Any]) -> Optional[str]:
        """Store context assignments; returns the remote context id."""
        context_id = str(created.get("contextId") or "").strip() or None
        if context_id:
            self._context_store.set_profile_context(config.profile_id, context_id)
        self._context_store.set_session_context(
            session_id,
            context_id or f"{self.backend.value}-{remote_session_id}",
            remote_session_id,
        )
        return context_id
    
    async def _before_release(self, credentials: Dict[str, str], session: ManagedSession) -> None:
        """Hook run before a session's remote resources are released."""
        return None
    
    async def _release_remote_session(self, credentials: Dict[str, str], remote_session_id: str) -> None:
        return None

    async def _abandon_remote_session(
        self,
        session_id: str,
        credentials: Dict[str, str],
        remote_session_id: str,
        browser: Optional[Any] = None,
    ) -> None:
        """Release a remote session that never became usable."""
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug(f"{self.label} close failed: {e}")
        try:
            await self._release_remote_session(credentials, remote_session_id)
        except Exception as e:
            logger.warning(f"{self.label} release of {remote_session_id} failed: {e}")
        finally:
            self._context_store.clear_session_context(session_id)
        self._telemetry.record(session_id, "session_abandoned", {
            "backend": self.backend.value,
            "remoteSessionId": remote_session_id,
        })
    
    # ==================== Lifecycle ====================
    
    async def start_session(self, session_id: str, config: SessionConfig) -> SessionSnapshot:
        existing = self._live_session(session_id)
        if existing is not None:
            self.touch(session_id)
            return self._snapshot(existing)
        
        if len(self._sessions) >= self._max_concurrency:
            raise BrowserProviderError(
                f"{self.label} concurrency limit reached ({self._max_concurrency})",
                recoverable=True,
                backend=self.backend.value,
            )
        
        credentials = self._credentials()
        created = await self._with_retries(
            session_id, "create remote session",
            self._create_remote_session, credentials, config,
        )
        remote_session_id = str(created.get("id") or created.get("sessionId") or "").strip()
        if not remote_session_id:
            raise BrowserProviderError(
                f"{self.label} session creation returned no session id",
                recoverable=True,
                backend=self.backend.value,
            )
        
        browser = None
        try:
            remote_context_id = self._remember_context(session_id, config, remote_session_id, created)
            
            connect_url = (
                str(created.get("connectUrl") or created.get("websocketUrl") or created.get("wsEndpoint") or "").strip()
                or self._default_connect_url(credentials, remote_session_id)
            )
            playwright = await self._ensure_playwright()
            browser = await self._with_retries(
                session_id, "connect CDP",
                self._connect, playwright, connect_url,
            )
            try:
                contexts = browser.contexts
                context = contexts[0] if contexts else await browser.new_context()
                page = await self._prepare_page(session_id, context, config)
                try:
                    await page.set_viewport_size(config.viewport.to_dict())
                except Exception as e:
                    logger.debug(f"Viewport resize skipped: {e}")
            except Exception as e:
                raise BrowserProviderError(
                    f"{self.label} page setup failed: {e}",
                    recoverable=True,
                    backend=self.backend.value,
                ) from e
            
            live_view_url = None
            if self._enable_live_view:
                live_view_url = await self._live_view_url(credentials, remote_session_id, created)
        except Exception:
            await self._abandon_remote_session(session_id, credentials, remote_session_id, browser)
            raise
        
        session = ManagedSession(
            session_id=session_id,
            profile_id=config.profile_id,
            config=config,
            context=context,
            page=page,
            browser=browser,
            remote_session_id=remote_session_id,
            remote_context_id=remote_context_id,
            live_view_url=live_view_url,
        )
        self._sessions[session_id] = session
        self._telemetry.record(session_id, "session_start", {
            "profileId": session.profile_id,
            "backend": self.backend.value,
            "url": page.url,
            "remoteSessionId": remote_session_id,
            "remoteContextId": remote_context_id,
            "liveViewUrl": live_view_url,
            "headless": config.headless,
        })
        logger.info(f"Started {self.label} session {session_id} (remote={remote_session_id})")
        return self._snapshot(session)
    
    async def end_session(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        
        credentials: Optional[Dict[str, str]] = None
        try:
            credentials = self._credentials()
        except BrowserProviderError:
            credentials = None
        
        try:
            if credentials:
                await self._before_release(credentials, session)
            for resource in (session.context, session.browser):
                try:
                    if resource is not None:
                        await resource.close()
                except Exception as e:
                    logger.debug(f"{self.label} close failed: {e}")
            if credentials and session.remote_session_id:
                await self._release_remote_session(credentials, session.remote_session_id)
        finally:
            self._context_store.clear_session_context(session_id)
            self._sessions.pop(session_id, None)
            self._telemetry.record(session_id, "session_end", {
                "profileId": session.profile_id,
                "backend": self.backend.value,
                "remoteSessionId": session.remote_session_id,
                "remoteContextId": session.remote_context_id,
            })
        return True
    
    async def close_all(self) -> None:
        await super().close_all()
        if self._owns_client:
            await self._client.aclose()
    
    # ==================== HTTP ====================
    
    async def _create_remote_session(self, credentials: Dict[str, str], config: SessionConfig) -> Dict[str, Any]:
        payload = self._create_payload(credentials, config)
        try:
            response = await self._client.post(
                f"{self.api_base_url}/sessions",
                json=payload,
                headers={"content-type": "application/json", **self._auth_headers(credentials)},
                timeout=20.0,
            )
        except httpx.HTTPError as e:
            raise BrowserProviderError(
                f"{self.label} session create request failed: {e}",
                recoverable=True,
                backend=self.backend.value,
            ) from e
        
        body = safe_json(response)
        if not response.is_success:
            message = extract_error_message(body) or response.reason_phrase or "unknown error"
            status = response.status_code
            raise BrowserProviderError(
                f"{self.label} session create failed: {message}",
                recoverable=status >= 500 or status in (408, 429),
                quota_limited=status == 429 or bool(QUOTA_RE.search(message)),
                status_code=status,
                backend=self.backend.value,
            )
        return body or {}
    
    async def _get_json(self, credentials: Dict[str, str], path: str, timeout: float = 10.0) -> Optional[Dict[str, Any]]:
        """Best-effort GET returning None on any failure."""
        try:
            response = await self._client.get(
                f"{self.api_base_url}{path}",
                headers=self._auth_headers(credentials),
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{self.label} GET {path} failed: {e}")
            return None
        if not response.is_success:
            return None
        return safe_json(response)
    
    async def _connect(self, playwright: Any, connect_url: str) -> Any:
        try:
            return await playwright.chromium.connect_over_cdp(
                connect_url,
                timeout=self._connect_timeout_ms(),
            )
        except Exception as e:
            raise BrowserProviderError(
                f"{self.label} CDP connection failed: {e}",
                recoverable=True,
                backend=self.backend.value,
            ) from e
    
    def _connect_timeout_ms(self) -> int:
        return self._settings.request_timeout_ms
    
    async def _with_retries(self, session_id: str, action: str, func: Any, *args: Any) -> Any:
        def on_retry(attempt: int, error: BaseException) -> None:
            self._telemetry.record(session_id, "retry", {
                "backend": self.backend.value,
                "action": action,
                "attempt": attempt,
                "reason": str(error),
            })
        
        config = RetryConfig(
            max_attempts=self._start_retries,
            initial_delay_ms=250,
            max_delay_ms=2000,
            should_retry=is_recoverable_provider_error,
            on_retry=on_retry,
        )
        return await retry_async(func, config, *args)
