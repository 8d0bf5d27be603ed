"""
Tests for the navigation planner turn loop.
"""

from typing import Any, Dict, List, Optional

import pytest

from autobrowse.core.judge import NavigationDecision
from autobrowse.interfaces.web import TaskFrame, TaskRelation
from autobrowse.utils.urls import canonicalize_url


class ScriptedTools:
    """Tool runtime stand-in serving pages from a dict."""

    def __init__(
        self,
        pages: Optional[Dict[str, Dict[str, Any]]] = None,
        search_results: Optional[List[Dict[str, Any]]] = None,
        redirects: Optional[Dict[str, str]] = None,
        fail_start: bool = False,
    ):
        self.pages = {canonicalize_url(url): page for url, page in (pages or {}).items()}
        self.search_results = list(search_results or [])
        self.redirects = {canonicalize_url(k): canonicalize_url(v) for k, v in (redirects or {}).items()}
        self.fail_start = fail_start
        self.current: Optional[str] = None
        self.calls: List[tuple] = []

    def tool_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def invoke(self, tool_name: str, params: Dict[str, Any], session_id: str) -> Dict[str, Any]:
        self.calls.append((tool_name, params))
        if tool_name == "web_session_start":
            if self.fail_start:
                raise RuntimeError("no backend available")
            return {"session": {"sessionId": session_id, "backend": "local", "liveViewUrl": None}}
        if tool_name == "web_search":
            return {"results": list(self.search_results)}
        if tool_name == "web_act":
            url = canonicalize_url(params["action"]["url"])
            target = self.redirects.get(url, url)
            if target not in self.pages:
                return {"success": False, "data": {"error": f"net::ERR_NAME_NOT_RESOLVED {url}"}}
            self.current = target
            return {"success": True, "data": {"url": target}}
        if tool_name == "web_observe":
            return {"observation": {"url": self.current}}
        if tool_name == "web_extract_structured":
            page = dict(self.pages[self.current])
            page.setdefault("url", self.current)
            return page
        raise AssertionError(f"unexpected tool {tool_name}")


class ScriptedJudge:
    """Judge returning decisions from a callable of (doc, remaining, call index)."""

    def __init__(self, decide_fn=None):
        self.decide_fn = decide_fn
        self.seen: List[str] = []

    async def decide(self, frame, message, doc, remaining_urls):
        self.seen.append(doc.url)
        if self.decide_fn is not None:
            return self.decide_fn(doc, remaining_urls, len(self.seen))
        return _keep_going(len(self.seen))


def _keep_going(n, next_url=None):
    return NavigationDecision(
        should_continue=True,
        reason="need more",
        next_best_url=next_url,
        matched_tokens=[f"token{n}"],
    )


def _page(title, text="", links=None):
    return {"title": title, "mainText": text, "links": links or []}


def _result(url, title="Result"):
    return {
        "title": title,
        "url": url,
        "snippet": "",
        "rank": 1,
        "engine": "duckduckgo",
        "retrievedAt": "2026-01-01T00:00:00.000Z",
        "score": 1.0,
    }


ACME_PAGES = {
    "https://acme.io": _page(
        "Acme", "Acme builds tools.", [{"text": "Pricing", "url": "https://acme.io/pricing"}],
    ),
    "https://acme.io/pricing": _page("Acme Pricing", "Team plan is $12 per seat."),
}


def _planner(tools, judge=None):
    from autobrowse.core.navigation import NavigationPlanner
    return NavigationPlanner(tools, judge=judge or ScriptedJudge())


class TestShortCircuits:
    """Test turns that end before browsing."""

    @pytest.mark.asyncio
    async def test_acknowledgement(self):
        """Test a thank-you turn makes no tool calls."""
        from autobrowse.core.navigation import StopReason
        tools = ScriptedTools()
        planner = _planner(tools)
        planner.arena.put(TaskFrame(
            session_id="conv-1",
            turn_id="turn-1",
            relation=TaskRelation.NEW_TASK,
            intent_type="web_assist_task",
            user_objective="Acme pricing",
            entities=["Acme"],
        ))
        result = await planner.run_turn("conv-1", "thanks!")
        assert result.stop_reason == StopReason.FINALIZED_BY_MODEL
        assert result.task_frame.relation == TaskRelation.ACKNOWLEDGE
        assert result.task_frame.user_objective == "Acme pricing"
        assert tools.calls == []

    @pytest.mark.asyncio
    async def test_missing_website(self):
        """Test a site request without a domain asks instead of browsing."""
        from autobrowse.core.navigation import StopReason
        from autobrowse.core.task_frame import OFFICIAL_WEBSITE_URL
        tools = ScriptedTools()
        result = await _planner(tools).run_turn("conv-1", "What is the pricing on their website?")
        assert result.stop_reason == StopReason.FINALIZED_BY_MODEL
        assert OFFICIAL_WEBSITE_URL in result.task_frame.missing_inputs
        assert tools.calls == []

    @pytest.mark.asyncio
    async def test_session_start_failure(self):
        """Test a failed session start ends the turn with a tool error."""
        from autobrowse.core.navigation import StopReason
        tools = ScriptedTools(fail_start=True)
        result = await _planner(tools).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.TOOL_ERROR
        assert result.errors[0].startswith("web_session_start")
        assert tools.tool_names() == ["web_session_start"]


class TestSiteTurn:
    """Test turns with a known website."""

    @pytest.mark.asyncio
    async def test_enough_info_on_site(self):
        """Test discovery finds the pricing page and the judge stops there."""
        from autobrowse.core.navigation import StopReason

        def decide(doc, remaining, n):
            if doc.url.endswith("/pricing"):
                return NavigationDecision(False, "Team plan price found.", matched_tokens=["pricing"])
            return _keep_going(n)

        tools = ScriptedTools(pages=ACME_PAGES)
        result = await _planner(tools, ScriptedJudge(decide)).run_turn("conv-1", "Check acme.io pricing")

        assert result.stop_reason == StopReason.ENOUGH_INFO
        assert result.visited_urls == ["https://acme.io", "https://acme.io/pricing"]
        assert [source["url"] for source in result.sources] == result.visited_urls
        assert len(result.documents) == 2
        assert "web_search" not in tools.tool_names()
        assert result.task_frame.domain_hints == ["https://acme.io"]

    @pytest.mark.asyncio
    async def test_first_page_requests_screenshot(self):
        """Test only the first page visit asks for a screenshot."""
        tools = ScriptedTools(pages=ACME_PAGES)
        await _planner(tools).run_turn("conv-1", "Check acme.io pricing")
        observes = [params for name, params in tools.calls if name == "web_observe"]
        assert observes[0]["includeScreenshot"] is True
        assert all(params["includeScreenshot"] is False for params in observes[1:])

    @pytest.mark.asyncio
    async def test_continue_turn_keeps_site(self):
        """Test a follow-up browses the same site without searching."""
        tools = ScriptedTools(pages=ACME_PAGES)
        planner = _planner(tools)
        await planner.run_turn("conv-1", "Check acme.io pricing")
        tools.calls.clear()
        result = await planner.run_turn("conv-1", "and the enterprise tier?")
        assert result.task_frame.relation == TaskRelation.CONTINUE
        assert result.task_frame.domain_hints == ["https://acme.io"]
        assert "web_search" not in tools.tool_names()
        assert "web_act" in tools.tool_names()


class TestSearchTurn:
    """Test turns that start from web search."""

    @pytest.mark.asyncio
    async def test_queue_exhausted(self):
        """Test every search hit is visited when the judge never stops."""
        from autobrowse.core.navigation import StopReason
        tools = ScriptedTools(
            pages={
                "https://docs.python.org/3/whatsnew": _page("What's New", "Python 3.13 released."),
                "https://blog.example/python": _page("Blog", ""),
            },
            search_results=[
                _result("https://docs.python.org/3/whatsnew", "What's New In Python"),
                _result("https://blog.example/python", "Python blog"),
            ],
        )
        result = await _planner(tools).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.FINALIZED_BY_MODEL
        assert result.iterations == 2
        assert len(result.search_results) == 2
        assert len(result.documents) == 1
        search_call = next(params for name, params in tools.calls if name == "web_search")
        assert search_call["limit"] == 8

    @pytest.mark.asyncio
    async def test_all_pages_fail(self):
        """Test a turn where no page loads ends with a tool error."""
        from autobrowse.core.navigation import StopReason
        tools = ScriptedTools(search_results=[_result("https://a.invalid"), _result("https://b.invalid")])
        result = await _planner(tools).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.TOOL_ERROR
        assert result.iterations == 2
        assert len(result.errors) == 2
        assert result.visited_urls == []

    @pytest.mark.asyncio
    async def test_stagnation(self):
        """Test consecutive pages without new signal stop the turn."""
        from autobrowse.core.navigation import StopReason
        urls = [f"https://a.example/{i}" for i in range(3)]
        tools = ScriptedTools(
            pages={url: _page(url, "text") for url in urls},
            search_results=[_result(url) for url in urls],
        )
        judge = ScriptedJudge(lambda doc, remaining, n: NavigationDecision(True, "nothing new"))
        result = await _planner(tools, judge).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.STAGNATION
        assert result.iterations == 3

    @pytest.mark.asyncio
    async def test_repeat_guard(self):
        """Test a next URL re-proposed past the limit stops the turn."""
        from autobrowse.core.navigation import StopReason
        tools = ScriptedTools(
            pages={
                "https://a.example/start": _page("Start", "text"),
                "https://a.example/moved": _page("Moved", "text"),
            },
            search_results=[_result("https://a.example/start")],
            redirects={"https://a.example/next": "https://a.example/moved"},
        )
        judge = ScriptedJudge(lambda doc, remaining, n: _keep_going(n, "https://a.example/next"))
        result = await _planner(tools, judge).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.REPEAT_GUARD
        assert result.iterations == 3
        assert result.visited_urls == ["https://a.example/start", "https://a.example/moved"]

    @pytest.mark.asyncio
    async def test_queued_next_url_visited_next(self):
        """Test a proposed URL already in the queue jumps to the front."""
        urls = ["https://x.example/blog", "https://x.example/about", "https://x.example/pricing"]
        tools = ScriptedTools(
            pages={url: _page(url, "text") for url in urls},
            search_results=[_result(url) for url in urls],
        )

        def decide(doc, remaining, n):
            wanted = next((url for url in remaining if url.endswith("/pricing")), None)
            return _keep_going(n, wanted)

        judge = ScriptedJudge(decide)
        result = await _planner(tools, judge).run_turn("conv-1", "latest python release notes")
        assert judge.seen == [
            "https://x.example/blog",
            "https://x.example/pricing",
            "https://x.example/about",
        ]
        assert result.iterations == 3

    @pytest.mark.asyncio
    async def test_deterministic_judge_reorders_queue(self):
        """Test the default judge's best next URL is visited before earlier queue entries."""
        from autobrowse.core.judge import DeterministicJudge
        urls = ["https://x.example/blog", "https://x.example/team", "https://x.example/notes", "https://x.example/misc"]
        tools = ScriptedTools(
            pages={url: _page("Page", "short") for url in urls},
            search_results=[_result(url) for url in urls],
        )
        visited = []
        judge = DeterministicJudge()
        original = judge.decide

        async def recording(frame, message, doc, remaining_urls):
            visited.append(doc.url)
            return await original(frame, message, doc, remaining_urls)

        judge.decide = recording
        await _planner(tools, judge).run_turn("conv-1", "latest python release notes")
        assert visited[:2] == ["https://x.example/blog", "https://x.example/notes"]

    @pytest.mark.asyncio
    async def test_max_actions(self):
        """Test the iteration budget caps a judge that keeps proposing pages."""
        from autobrowse.core.navigation import StopReason
        pages = {f"https://a.example/p{i}": _page(f"P{i}", "text") for i in range(10)}
        tools = ScriptedTools(pages=pages, search_results=[_result("https://a.example/p0")])
        judge = ScriptedJudge(lambda doc, remaining, n: _keep_going(n, f"https://a.example/p{n}"))
        result = await _planner(tools, judge).run_turn("conv-1", "latest python release notes")
        assert result.stop_reason == StopReason.MAX_ACTIONS
        assert result.iterations == 6
        assert judge.seen[-1] == "https://a.example/p5"

    @pytest.mark.asyncio
    async def test_finalized_frame_stored(self):
        """Test the finalized frame replaces the turn frame in the arena."""
        tools = ScriptedTools(
            pages={"https://news.example/globex": _page("Globex news", "Globex raised prices.")},
            search_results=[_result("https://news.example/globex", "Globex news")],
        )
        planner = _planner(tools)
        result = await planner.run_turn("conv-1", "What did Globex announce")
        assert result.task_frame.entity_status["Globex"] == "resolved"
        assert planner.arena.get("conv-1").entity_status["Globex"] == "resolved"
        data = result.to_dict()
        assert data["stopReason"] == "finalized_by_model"
        assert data["taskFrame"]["sessionId"] == "conv-1"


class TestFromSettings:
    """Test planner construction from settings."""

    def test_llm_judge_when_provider_given(self, settings, scripted_llm):
        """Test a provider switches the judge to the LLM judge."""
        from autobrowse.core.judge import DeterministicJudge, LLMJudge
        from autobrowse.core.navigation import NavigationPlanner
        tools = ScriptedTools()
        assert isinstance(NavigationPlanner.from_settings(settings, tools, scripted_llm([]))._judge, LLMJudge)
        assert isinstance(NavigationPlanner.from_settings(settings, tools)._judge, DeterministicJudge)
