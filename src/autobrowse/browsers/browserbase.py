"""
Browserbase backend - Remote sessions on browserbase.com.
"""

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

from autobrowse.browsers.remote import RemoteCDPProvider, first_http_url
from autobrowse.exceptions import BrowserProviderError
from autobrowse.interfaces.web import BackendType, SessionConfig
from autobrowse.registry import register_backend

logger = logging.getLogger(__name__)

CONNECT_BASE_URL = "wss://connect.browserbase.com"
LIVE_VIEW_KEYS = ("fullscreenUrl", "debuggerFullscreenUrl", "debuggerUrl", "liveViewUrl", "url")


@register_backend("browserbase")
class BrowserbaseProvider(RemoteCDPProvider):
    """
    Browserbase sessions.
    
    Sessions are created with ``keepAlive`` and reuse the profile's remote
    context id when one is known.
    """
    
    label = "Browserbase"
    
    @property
    def backend(self) -> BackendType:
        return BackendType.BROWSERBASE
    
    @property
    def api_base_url(self) -> str:
        return self._settings.browserbase_api_url.rstrip("/")
    
    def _keys(self) -> Dict[str, str]:
        secret = self._settings.browserbase_api_key
        api_key = secret.get_secret_value() if secret else os.environ.get("BROWSERBASE_API_KEY", "")
        project_id = self._settings.browserbase_project_id or os.environ.get("BROWSERBASE_PROJECT_ID", "")
        return {"api_key": api_key.strip(), "project_id": project_id.strip()}
    
    def is_configured(self) -> bool:
        keys = self._keys()
        return bool(keys["api_key"] and keys["project_id"])
    
    def _credentials(self) -> Dict[str, str]:
        keys = self._keys()
        if not keys["api_key"] or not keys["project_id"]:
            raise BrowserProviderError(
                "Browserbase credentials missing. Set BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID.",
                recoverable=True,
                backend=self.backend.value,
            )
        return keys
    
    def _auth_headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"x-bb-api-key": credentials["api_key"]}
    
    def _create_payload(self, credentials: Dict[str, str], config: SessionConfig) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"projectId": credentials["project_id"], "keepAlive": True}
        context_id = self._context_store.get_profile_context(config.profile_id)
        if context_id:
            payload["contextId"] = context_id
        return payload
    
    def _remember_context(self, session_id: str, config: SessionConfig, remote_session_id: str, created: Dict[str, Any]) -> Optional[str]:
        context_id = (
            str(created.get("contextId") or "").strip()
            or self._context_store.get_profile_context(config.profile_id)
        )
        if context_id:
            self._context_store.set_profile_context(config.profile_id, context_id)
        self._context_store.set_session_context(session_id, context_id or "unknown", remote_session_id)
        return context_id or None
    
    def _default_connect_url(self, credentials: Dict[str, str], remote_session_id: str) -> str:
        return f"{CONNECT_BASE_URL}?apiKey={quote(credentials['api_key'], safe='')}&sessionId={quote(remote_session_id, safe='')}"
    
    async def _live_view_url(self, credentials: Dict[str, str], remote_session_id: str, created: Dict[str, Any]) -> Optional[str]:
        fallback = f"https://www.browserbase.com/sessions/{quote(remote_session_id, safe='')}"
        data = await self._get_json(credentials, f"/sessions/{remote_session_id}/debug")
        if not data:
            return fallback
        return first_http_url(data, *LIVE_VIEW_KEYS) or fallback
    
    async def _release_remote_session(self, credentials: Dict[str, str], remote_session_id: str) -> None:
        try:
            await self._client.post(
                f"{self.api_base_url}/sessions/{remote_session_id}",
                json={"projectId": credentials["project_id"], "status": "REQUEST_RELEASE"},
                headers=self._auth_headers(credentials),
                timeout=8.0,
            )
        except Exception as e:
            logger.debug(f"Browserbase release failed: {e}")
