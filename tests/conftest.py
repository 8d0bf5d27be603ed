"""
Pytest configuration and fixtures.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from autobrowse.interfaces.llm import ILLMProvider, LLMResponse, Message, Usage
from autobrowse.interfaces.provider import IBrowserProvider
from autobrowse.interfaces.web import (
    BackendType,
    SearchResult,
    SessionConfig,
    SessionSnapshot,
    SessionStatus,
)


# =============================================================================
# FAKE PLAYWRIGHT PAGE
# =============================================================================

class FakeLocator:
    """Locator stand-in recording clicks and fills on its page."""

    def __init__(self, page: "FakePage", kind: str, key: Any, count: int):
        self._page = page
        self.kind = kind
        self.key = key
        self._count = count

    async def count(self) -> int:
        return self._count

    @property
    def first(self) -> "FakeLocator":
        return self

    async def click(self, timeout: Optional[int] = None) -> None:
        self._page.calls.append(("click", self.kind, self.key))

    async def fill(self, value: str, timeout: Optional[int] = None) -> None:
        self._page.calls.append(("fill", self.kind, self.key, value))


class FakeMouse:
    def __init__(self, page: "FakePage"):
        self._page = page

    async def wheel(self, delta_x: float, delta_y: float) -> None:
        self._page.calls.append(("wheel", delta_x, delta_y))

    async def click(self, x: float, y: float) -> None:
        self._page.calls.append(("mouse_click", x, y))


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self._page = page

    async def press(self, key: str) -> None:
        self._page.calls.append(("press", key))


class FakePage:
    """
    Minimal async Playwright page.

    ``evaluate`` answers the observe / extract / rank scripts by looking at
    the argument keys they are called with.
    """

    def __init__(
        self,
        url: str = "about:blank",
        title: str = "Fake Page",
        observation: Optional[Dict[str, Any]] = None,
        extraction: Optional[Dict[str, Any]] = None,
        ranked: Optional[Dict[str, Any]] = None,
        css: Optional[Dict[str, int]] = None,
        roles: Optional[Dict[Tuple[str, str], int]] = None,
        texts: Optional[Dict[str, int]] = None,
        redirects: Optional[Dict[str, str]] = None,
        fail_goto: bool = False,
    ):
        self.url = url
        self._title = title
        self.observation = observation or {}
        self.extraction = extraction or {}
        self.ranked = ranked
        self.css = css or {}
        self.roles = roles or {}
        self.texts = texts or {}
        self.redirects = redirects or {}
        self.fail_goto = fail_goto
        self.calls: List[tuple] = []
        self.mouse = FakeMouse(self)
        self.keyboard = FakeKeyboard(self)
        self.closed = False

    def is_closed(self) -> bool:
        return self.closed

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None) -> None:
        self.calls.append(("goto", url, wait_until, timeout))
        if self.fail_goto:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = self.redirects.get(url, url)

    async def title(self) -> str:
        return self._title

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        self.calls.append(("wait_for_load_state", state))

    async def wait_for_function(self, expression: str, timeout: Optional[int] = None) -> None:
        self.calls.append(("wait_for_function", expression))

    async def wait_for_timeout(self, ms: int) -> None:
        self.calls.append(("wait_for_timeout", ms))

    async def evaluate(self, script: str, arg: Optional[Dict[str, Any]] = None) -> Any:
        arg = arg or {}
        if "maxElements" in arg:
            return dict(self.observation)
        if "contentSelectors" in arg:
            return dict(self.extraction)
        if "penalty" in arg:
            return self.ranked
        return None

    async def screenshot(self, path: str, full_page: bool = False) -> bytes:
        self.calls.append(("screenshot", path, full_page))
        with open(path, "wb") as f:
            f.write(b"\x89PNG")
        return b"\x89PNG"

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, "css", selector, self.css.get(selector, 0))

    def get_by_role(self, role: str, name: Optional[str] = None) -> FakeLocator:
        return FakeLocator(self, "role", (role, name), self.roles.get((role, name), 0))

    def get_by_text(self, text: str, exact: bool = False) -> FakeLocator:
        return FakeLocator(self, "text", text, self.texts.get(text, 0))


# =============================================================================
# FAKE BACKEND
# =============================================================================

def make_snapshot(session_id: str, backend: BackendType, config: SessionConfig, url: str) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=session_id,
        profile_id=config.profile_id,
        backend=backend,
        status=SessionStatus.READY,
        url=url,
        headless=config.headless,
        viewport=config.viewport,
        locale=config.locale,
        timezone=config.timezone,
        created_at="2026-01-01T00:00:00.000Z",
        last_used_at="2026-01-01T00:00:00.000Z",
    )


class FakeProvider(IBrowserProvider):
    """In-memory backend handing out FakePage instances."""

    def __init__(
        self,
        backend: BackendType = BackendType.LOCAL,
        configured: bool = True,
        error: Optional[Exception] = None,
        page_factory: Any = FakePage,
    ):
        self._backend = backend
        self.configured = configured
        self.error = error
        self.page_factory = page_factory
        self.pages: Dict[str, FakePage] = {}
        self.configs: Dict[str, SessionConfig] = {}
        self.started: List[str] = []
        self.ended: List[str] = []
        self.touched: List[str] = []

    @property
    def backend(self) -> BackendType:
        return self._backend

    def is_configured(self) -> bool:
        return self.configured

    async def start_session(self, session_id: str, config: SessionConfig) -> SessionSnapshot:
        self.started.append(session_id)
        if self.error is not None:
            raise self.error
        page = self.pages.get(session_id)
        if page is None or page.is_closed():
            page = self.page_factory()
            self.pages[session_id] = page
        if config.start_url:
            await page.goto(config.start_url)
        self.configs[session_id] = config
        return make_snapshot(session_id, self._backend, config, page.url)

    async def get_page(self, session_id: str) -> Optional[FakePage]:
        page = self.pages.get(session_id)
        if page is None or page.is_closed():
            return None
        return page

    def get_session(self, session_id: str) -> Optional[SessionSnapshot]:
        page = self.pages.get(session_id)
        if page is None or page.is_closed():
            return None
        return make_snapshot(session_id, self._backend, self.configs[session_id], page.url)

    async def end_session(self, session_id: str) -> bool:
        self.ended.append(session_id)
        self.configs.pop(session_id, None)
        return self.pages.pop(session_id, None) is not None

    def touch(self, session_id: str) -> None:
        self.touched.append(session_id)

    async def cleanup_idle_sessions(self, idle_ms: int) -> int:
        return 0

    async def close_all(self) -> None:
        self.pages.clear()


class FakeSearchService:
    """SearchService stand-in returning canned results."""

    def __init__(self, results: Optional[List[SearchResult]] = None):
        self.results = results or []
        self.queries: List[Tuple[str, int, int]] = []
        self.closed = False

    async def search(self, query: str, limit: Optional[int] = None, timeout_ms: Optional[int] = None) -> List[SearchResult]:
        self.queries.append((query, limit, timeout_ms))
        return self.results[: limit or len(self.results)]

    async def close(self) -> None:
        self.closed = True


def make_result(url: str, title: str = "", snippet: str = "", rank: int = 1, score: float = 1.0) -> SearchResult:
    return SearchResult(
        title=title or url,
        url=url,
        snippet=snippet,
        rank=rank,
        engine="duckduckgo",
        retrieved_at="2026-01-01T00:00:00.000Z",
        score=score,
    )


# =============================================================================
# FAKE LLM
# =============================================================================

class ScriptedLLM(ILLMProvider):
    """LLM stand-in replying with queued strings (or raising queued errors)."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.prompts: List[List[Message]] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def default_model(self) -> str:
        return "scripted-1"

    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        self.prompts.append(list(messages))
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=self.default_model, usage=Usage())


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Provide test settings writing only under tmp_path."""
    from autobrowse.config import (
        Settings,
        BrowserSettings,
        NavigationSettings,
        PerceptionSettings,
        LoggingSettings,
    )

    return Settings(
        browser=BrowserSettings(
            headless=True,
            profiles_dir=str(tmp_path / "profiles"),
            data_dir=str(tmp_path / "data"),
        ),
        navigation=NavigationSettings(settle_ms=0),
        perception=PerceptionSettings(screenshot_dir=str(tmp_path / "shots")),
        logging=LoggingSettings(telemetry_dir=None),
    )


@pytest.fixture
def make_page():
    """Factory for fake pages."""
    return FakePage


@pytest.fixture
def fake_provider_class():
    return FakeProvider


@pytest.fixture
def local_provider():
    return FakeProvider(BackendType.LOCAL)


@pytest.fixture
def session_manager(settings, local_provider, tmp_path):
    """SessionManager over an in-memory local backend."""
    from autobrowse.browsers.profiles import ProfileAssignmentStore
    from autobrowse.core.session_manager import SessionManager
    from autobrowse.reporting.telemetry import Telemetry

    return SessionManager(
        settings,
        {BackendType.LOCAL: local_provider},
        telemetry=Telemetry(),
        assignments=ProfileAssignmentStore(str(tmp_path / "data")),
    )


@pytest.fixture
def search_service():
    return FakeSearchService([
        make_result("https://docs.python.org/3/whatsnew/3.13.html", "What's New In Python 3.13", rank=1, score=3.2),
        make_result("https://www.python.org/downloads/release/python-3130", "Python 3.13.0", rank=2, score=2.1),
    ])


@pytest.fixture
def make_search_result():
    return make_result


@pytest.fixture
def executor(settings, session_manager, search_service):
    """ActionExecutor over the in-memory backend."""
    from autobrowse.engine.action_executor import ActionExecutor

    return ActionExecutor.from_settings(settings, session_manager, search_service=search_service)


@pytest.fixture
def runtime(settings, session_manager, executor, search_service):
    """WebToolRuntime wired to fakes."""
    from autobrowse.tools.web_tools import WebToolRuntime

    return WebToolRuntime(settings, session_manager, executor, search_service=search_service)


@pytest.fixture
def approval_secret(settings) -> str:
    return settings.policy.confirm_secret.get_secret_value()


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM
