"""
Steel backend - Remote sessions on steel.dev.
"""

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

from autobrowse.browsers.base import ManagedSession
from autobrowse.browsers.remote import RemoteCDPProvider, first_http_url
from autobrowse.exceptions import BrowserProviderError
from autobrowse.interfaces.web import BackendType, SessionConfig
from autobrowse.registry import register_backend

logger = logging.getLogger(__name__)

LIVE_VIEW_KEYS = ("sessionViewerUrl", "session_viewer_url", "liveViewUrl", "debugUrl", "debug_url", "url")


@register_backend("steel")
class SteelProvider(RemoteCDPProvider):
    """
    Steel sessions, with live-view support.
    
    The profile's browser state is saved from ``/sessions/{id}/context`` when
    a session ends and handed back to the next session of that profile.
    """
    
    label = "Steel"
    
    @property
    def backend(self) -> BackendType:
        return BackendType.STEEL
    
    @property
    def api_base_url(self) -> str:
        return self._settings.steel_api_url.rstrip("/")
    
    def api_key(self) -> Optional[str]:
        secret = self._settings.steel_api_key
        value = secret.get_secret_value() if secret else os.environ.get("STEEL_API_KEY", "")
        return value.strip() or None
    
    def is_configured(self) -> bool:
        return self.api_key() is not None
    
    def _credentials(self) -> Dict[str, str]:
        api_key = self.api_key()
        if not api_key:
            raise BrowserProviderError(
                "Steel credentials missing. Set STEEL_API_KEY.",
                recoverable=True,
                backend=self.backend.value,
            )
        return {"api_key": api_key}
    
    def _auth_headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"steel-api-key": credentials["api_key"]}
    
    def _create_payload(self, credentials: Dict[str, str], config: SessionConfig) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"timeout": self._settings.steel_session_timeout_ms}
        session_context = self._context_store.get_profile_session_context(config.profile_id)
        if session_context:
            payload["sessionContext"] = session_context
        return payload
    
    def _default_connect_url(self, credentials: Dict[str, str], remote_session_id: str) -> str:
        base = self._settings.steel_connect_url.rstrip("/")
        return f"{base}?apiKey={quote(credentials['api_key'], safe='')}&sessionId={quote(remote_session_id, safe='')}"
    
    def _connect_timeout_ms(self) -> int:
        return self._settings.steel_session_timeout_ms
    
    async def _live_view_url(self, credentials: Dict[str, str], remote_session_id: str, created: Dict[str, Any]) -> Optional[str]:
        from_create = first_http_url(created, *LIVE_VIEW_KEYS)
        if from_create:
            return from_create
        data = await self._get_json(credentials, f"/sessions/{remote_session_id}")
        return first_http_url(data, *LIVE_VIEW_KEYS) if data else None
    
    async def _before_release(self, credentials: Dict[str, str], session: ManagedSession) -> None:
        if not session.remote_session_id:
            return
        data = await self._get_json(credentials, f"/sessions/{session.remote_session_id}/context", timeout=12.0)
        if not data:
            return
        nested = data.get("sessionContext")
        self._context_store.set_profile_session_context(
            session.profile_id,
            nested if isinstance(nested, dict) else data,
        )
    
    async def _release_remote_session(self, credentials: Dict[str, str], remote_session_id: str) -> None:
        attempts = (
            ("POST", f"{self.api_base_url}/sessions/{remote_session_id}/release"),
            ("DELETE", f"{self.api_base_url}/sessions/{remote_session_id}"),
        )
        for method, url in attempts:
            try:
                response = await self._client.request(
                    method, url, headers=self._auth_headers(credentials), timeout=8.0,
                )
            except Exception as e:
                logger.debug(f"Steel release via {method} failed: {e}")
                continue
            if response.is_success:
                return
