"""
Web Tools - The tool-style surface the orchestration layer calls.

Tools:
- web_session_start: Start (or reuse) the session's browser
- web_observe: Snapshot the current page
- web_decide_next: Propose (never run) the next action for a goal
- web_act: Run one policy-gated action
- web_extract_structured: Main content of the current (or given) page
- web_search: Aggregate web search
- web_session_end: Close the session's browser

Every ``web_*`` tool runs in the browser pool (1 worker by default);
any other registered tool runs in the general pool (4 workers). Calls for
one session are serialized, and every call is bounded by the tool timeout.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from autobrowse.core.session_manager import SessionManager
from autobrowse.engine.action_executor import ActionExecutor
from autobrowse.engine.results import Err
from autobrowse.exceptions import NoActiveSessionError, ToolInputError, UnknownToolError
from autobrowse.interfaces.web import (
    Action,
    BackendPreference,
    ObservationMode,
    SessionConfig,
    Viewport,
)
from autobrowse.reporting.telemetry import Telemetry
from autobrowse.search.service import SearchService
from autobrowse.utils.retry import with_timeout

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any], str], Awaitable[Dict[str, Any]]]

BROWSER_TOOL_PREFIX = "web_"
SESSION_START_TOOL = "web_session_start"
SEARCH_BUDGET_MARGIN_MS = 5000


def _optional_bool(params: Dict[str, Any], key: str, tool_name: str) -> Optional[bool]:
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ToolInputError(f"'{key}' must be a boolean", tool_name, key)
    return value


def _optional_int(params: Dict[str, Any], key: str, tool_name: str) -> Optional[int]:
    value = params.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ToolInputError(f"'{key}' must be a number", tool_name, key) from None


def _observation_mode(value: Any, default: ObservationMode, tool_name: str) -> ObservationMode:
    if value is None:
        return default
    try:
        return ObservationMode(str(value))
    except ValueError:
        raise ToolInputError(f"Unknown observation mode: {value}", tool_name, "mode") from None


class WebToolRuntime:
    """
    Execute web tools for conversation sessions.

    Parameter precedence: call parameter > settings (env/YAML) > default.

    Example:
        >>> runtime = WebToolRuntime.from_settings(get_settings())
        >>> await runtime.invoke("web_session_start", {"startUrl": "https://example.com"}, "conv-1")
        >>> result = await runtime.invoke("web_extract_structured", {}, "conv-1")
        >>> result["title"]
        'Example Domain'
    """

    def __init__(
        self,
        settings: Any,
        session_manager: SessionManager,
        executor: ActionExecutor,
        search_service: Optional[SearchService] = None,
        telemetry: Optional[Telemetry] = None,
    ):
        self._settings = settings
        self._sessions = session_manager
        self._executor = executor
        self._search = search_service
        self._telemetry = telemetry or session_manager.telemetry

        self._browser_pool = asyncio.Semaphore(settings.tools.browser_workers)
        self._general_pool = asyncio.Semaphore(settings.tools.general_workers)
        self._session_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._start_params: Dict[str, Dict[str, Any]] = {}

        self._tools: Dict[str, ToolHandler] = {
            "web_session_start": self._session_start,
            "web_observe": self._observe,
            "web_decide_next": self._decide_next,
            "web_act": self._act,
            "web_extract_structured": self._extract_structured,
            "web_search": self._web_search,
            "web_session_end": self._session_end,
        }

    @classmethod
    def from_settings(cls, settings: Any) -> "WebToolRuntime":
        """Wire sessions, search and the action executor from settings."""
        telemetry = Telemetry(settings.logging.telemetry_dir)
        sessions = SessionManager.from_settings(settings, telemetry=telemetry)
        search = SearchService.from_settings(settings)
        executor = ActionExecutor.from_settings(settings, sessions, search_service=search)
        return cls(settings, sessions, executor, search_service=search, telemetry=telemetry)

    @property
    def session_manager(self) -> SessionManager:
        return self._sessions

    @property
    def executor(self) -> ActionExecutor:
        return self._executor

    @property
    def telemetry(self) -> Telemetry:
        return self._telemetry

    def register_tool(self, name: str, handler: ToolHandler) -> None:
        """
        Register an extra tool.

        Names starting with ``web_`` run in the browser pool, others in the
        general pool.
        """
        self._tools[name] = handler

    def list_tools(self) -> list:
        return list(self._tools)

    def _pool_for(self, tool_name: str) -> asyncio.Semaphore:
        if tool_name.startswith(BROWSER_TOOL_PREFIX):
            return self._browser_pool
        return self._general_pool

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        return lock

    def _release_lock(self, session_id: str) -> None:
        """Drop an ended session's lock once no call holds or awaits it."""
        users = self._lock_users.get(session_id, 0) - 1
        if users > 0:
            self._lock_users[session_id] = users
            return
        self._lock_users.pop(session_id, None)
        if not self._sessions.has_session(session_id):
            self._session_locks.pop(session_id, None)

    def _timeout_ms(self, tool_name: str, params: Dict[str, Any]) -> int:
        budget = self._settings.navigation.tool_timeout_ms
        if tool_name == "web_search":
            search_ms = _optional_int(params, "timeoutMs", tool_name) or self._settings.search.timeout_ms
            budget = max(budget, search_ms + SEARCH_BUDGET_MARGIN_MS)
        return budget

    # ==================== Entry points ====================

    async def execute(
        self,
        tool_name: str,
        params: Optional[Dict[str, Any]],
        session_id: str,
    ) -> Dict[str, Any]:
        """
        Run one tool call.

        Args:
            tool_name: Registered tool name
            params: Tool parameters (camelCase keys)
            session_id: Conversation/session id

        Returns:
            The tool's JSON-ready result

        Raises:
            UnknownToolError: If no tool has that name
            asyncio.TimeoutError: If the call exceeds the tool timeout
        """
        handler = self._tools.get(tool_name)
        if handler is None:
            raise UnknownToolError(tool_name)
        params = dict(params or {})
        timeout_ms = self._timeout_ms(tool_name, params)
        started = time.monotonic()

        lock = self._lock_for(session_id)
        try:
            async with lock:
                async with self._pool_for(tool_name):
                    try:
                        result = await with_timeout(
                            handler(params, session_id),
                            timeout_ms / 1000,
                            f"Tool '{tool_name}' timed out after {timeout_ms}ms",
                        )
                    except Exception as e:
                        self._telemetry.record(session_id, "tool_error", {
                            "tool": tool_name,
                            "error": str(e),
                            "errorType": type(e).__name__,
                            "durationMs": int((time.monotonic() - started) * 1000),
                        })
                        raise
        finally:
            self._release_lock(session_id)

        self._telemetry.record(session_id, "tool_call", {
            "tool": tool_name,
            "durationMs": int((time.monotonic() - started) * 1000),
        })
        return result

    async def invoke(
        self,
        tool_name: str,
        params: Optional[Dict[str, Any]],
        session_id: str,
    ) -> Dict[str, Any]:
        """
        Run a tool call, restarting a lost session once.

        A missing session during any ``web_*`` tool other than
        web_session_start restarts the session with its last start
        parameters and retries the call once; a second failure propagates.
        """
        try:
            return await self.execute(tool_name, params, session_id)
        except NoActiveSessionError:
            if not tool_name.startswith(BROWSER_TOOL_PREFIX) or tool_name == SESSION_START_TOOL:
                raise
            logger.info(f"Session '{session_id}' missing during {tool_name}; restarting once")
            self._telemetry.record(session_id, "session_restart", {"tool": tool_name})
            await self.execute(SESSION_START_TOOL, self._start_params.get(session_id, {}), session_id)
            return await self.execute(tool_name, params, session_id)

    async def close(self) -> None:
        """End every session and release network clients."""
        await self._sessions.close_all()
        if self._search is not None:
            await self._search.close()
        self._session_locks.clear()
        self._lock_users.clear()

    # ==================== Tools ====================

    def _session_config(self, params: Dict[str, Any]) -> SessionConfig:
        tool = SESSION_START_TOOL
        config = self._sessions.default_config()

        headless = _optional_bool(params, "headless", tool)
        if headless is not None:
            config.headless = headless
        fallback = _optional_bool(params, "fallbackOnError", tool)
        if fallback is not None:
            config.fallback_on_error = fallback

        viewport = params.get("viewport")
        if viewport is not None:
            if not isinstance(viewport, dict):
                raise ToolInputError("'viewport' must be an object", tool, "viewport")
            config.viewport = Viewport(
                width=_optional_int(viewport, "width", tool) or config.viewport.width,
                height=_optional_int(viewport, "height", tool) or config.viewport.height,
            )

        backend = params.get("backend")
        if backend:
            try:
                config.backend_preference = BackendPreference(str(backend).lower())
            except ValueError:
                raise ToolInputError(f"Unknown backend: {backend}", tool, "backend") from None

        for key, attr in (("profileId", "profile_id"), ("locale", "locale"),
                          ("timezone", "timezone"), ("startUrl", "start_url")):
            value = params.get(key)
            if value:
                setattr(config, attr, str(value))
        return config

    async def _session_start(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        config = self._session_config(params)
        snapshot = await self._sessions.start_session(session_id, config)
        self._start_params[session_id] = dict(params)
        return {"success": True, "session": snapshot.to_dict()}

    async def _observe(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        mode = _observation_mode(params.get("mode"), ObservationMode.DOM, "web_observe")
        observation = await self._executor.observe(
            session_id,
            mode=mode,
            include_screenshot=bool(params.get("includeScreenshot", False)),
        )
        return {"sessionId": session_id, "observation": observation.to_dict()}

    async def _decide_next(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        goal = str(params.get("goal") or "").strip()
        if not goal:
            raise ToolInputError("'goal' is required", "web_decide_next", "goal")
        mode = _observation_mode(params.get("mode"), ObservationMode.DOM_VISION, "web_decide_next")
        return self._executor.decide_next(session_id, goal, mode=mode).to_dict()

    async def _act(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        raw_action = params.get("action")
        if not isinstance(raw_action, dict):
            raise ToolInputError("'action' must be an object", "web_act", "action")
        action = Action.from_dict(raw_action)
        mode = _observation_mode(params.get("mode"), ObservationMode.DOM_VISION, "web_act")

        outcome = await self._executor.execute(
            session_id,
            action,
            confirmation_token=params.get("confirmationToken") or None,
            mode=mode,
        )
        if isinstance(outcome, Err) and isinstance(outcome.error, NoActiveSessionError):
            outcome.raise_error()
        return outcome.to_result().to_dict()

    async def _extract_structured(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        url = params.get("url")
        extracted = await self._executor.extract_structured(session_id, url=str(url) if url else None)
        return extracted.to_dict()

    async def _web_search(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        query = str(params.get("query") or "").strip()
        if not query:
            raise ToolInputError("'query' is required", "web_search", "query")
        limit = _optional_int(params, "limit", "web_search") or self._settings.search.default_limit
        timeout_ms = _optional_int(params, "timeoutMs", "web_search") or self._settings.search.timeout_ms
        results = await self._executor.search(session_id, query, limit=limit, timeout_ms=timeout_ms)
        return {"query": query, "results": [result.to_dict() for result in results]}

    async def _session_end(self, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        result = await self._sessions.end_session(session_id)
        self._executor.world_models.delete(session_id)
        self._start_params.pop(session_id, None)
        return result
