"""
Navigation Planner - Run one conversational turn of web browsing.

Flow:
1. Build the turn's TaskFrame (relation to the previous turn, entities, hints)
2. Short-circuit acknowledgements and site requests without a website
3. Start the session, then collect candidate URLs
   (explicit URLs > site-discovered pages > search results)
4. Visit candidates one by one: navigate, observe, extract, judge
5. Stop on enough information, the iteration budget, stagnation,
   repeated proposals, or an exhausted queue

Everything goes through the tool runtime, so sessions lost mid-turn are
restarted the same way they are for any other caller.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from autobrowse.core.discovery import (
    build_direct_path_hints,
    build_search_query,
    collect_discovery_links,
    has_objective_candidate,
    prioritize_structural_endpoints,
    rank_search_results_for_task,
    rank_site_urls,
)
from autobrowse.core.judge import DeterministicJudge, LLMJudge, NavigationDecision
from autobrowse.core.task_frame import (
    OFFICIAL_WEBSITE_URL,
    TaskFrameArena,
    TaskFrameBuilder,
    finalize_task_frame,
    should_ask_for_website_url,
)
from autobrowse.exceptions import ActionExecutionError
from autobrowse.interfaces.llm import ILLMProvider
from autobrowse.interfaces.web import (
    SearchResult,
    StructuredExtraction,
    TaskFrame,
    TaskRelation,
)
from autobrowse.utils.retry import now_ms
from autobrowse.utils.urls import (
    canonicalize_url,
    dedupe_canonical_urls,
    extract_domain_hint_urls,
    extract_explicit_urls,
    site_root,
)

if TYPE_CHECKING:
    from autobrowse.tools.web_tools import WebToolRuntime

logger = logging.getLogger(__name__)

PAGE_NAV_OPTIONS = {"timeoutMs": 35000, "waitUntil": "load", "settleMs": 1200}
DISCOVERY_NAV_OPTIONS = {"timeoutMs": 25000, "waitUntil": "load", "settleMs": 900}
MAX_STRUCTURAL_FETCHES = 1
MIN_DISCOVERED = 8


class StopReason(Enum):
    """Why a turn stopped browsing."""
    ENOUGH_INFO = "enough_info"
    MAX_ACTIONS = "max_actions"
    STAGNATION = "stagnation"
    REPEAT_GUARD = "repeat_guard"
    TOOL_ERROR = "tool_error"
    FINALIZED_BY_MODEL = "finalized_by_model"


@dataclass
class TurnResult:
    """
    Everything one turn gathered.

    Documents and search results are kept even when the turn ends on an
    error, so callers can answer from partial progress.
    """
    task_frame: TaskFrame
    stop_reason: StopReason
    documents: List[StructuredExtraction] = field(default_factory=list)
    search_results: List[SearchResult] = field(default_factory=list)
    visited_urls: List[str] = field(default_factory=list)
    sources: List[Dict[str, str]] = field(default_factory=list)
    iterations: int = 0
    errors: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskFrame": self.task_frame.to_dict(),
            "stopReason": self.stop_reason.value,
            "documents": [doc.to_dict() for doc in self.documents],
            "searchResults": [result.to_dict() for result in self.search_results],
            "visitedUrls": list(self.visited_urls),
            "sources": list(self.sources),
            "iterations": self.iterations,
            "errors": list(self.errors),
            "events": list(self.events),
        }


@dataclass
class _TurnState:
    """Mutable bookkeeping for one run of the page loop."""
    documents: List[StructuredExtraction] = field(default_factory=list)
    search_results: List[SearchResult] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    sources: List[Dict[str, str]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    iterations: int = 0
    successful_steps: int = 0

    def event(self, event_type: str, **details: Any) -> None:
        self.events.append({"type": event_type, "timestamp": now_ms(), "details": details})

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.event("error", message=message)

    def add_source(self, doc: StructuredExtraction) -> None:
        canonical = canonicalize_url(doc.url)
        if any(canonicalize_url(source["url"]) == canonical for source in self.sources):
            return
        self.sources.append({
            "title": doc.title or doc.url,
            "url": doc.url,
            "whyRelevant": "Captured from a page visited during this turn.",
        })


class NavigationPlanner:
    """
    Drive a bounded browse for one user message.

    Example:
        >>> runtime = WebToolRuntime.from_settings(settings)
        >>> planner = NavigationPlanner.from_settings(settings, runtime)
        >>> result = await planner.run_turn("conv-1", "What does acme.io charge for the pro plan?")
        >>> result.stop_reason
        <StopReason.ENOUGH_INFO: 'enough_info'>
    """

    def __init__(
        self,
        tools: "WebToolRuntime",
        judge: Optional[Any] = None,
        settings: Optional[Any] = None,
        frame_builder: Optional[TaskFrameBuilder] = None,
        arena: Optional[TaskFrameArena] = None,
    ):
        self._tools = tools
        self._judge = judge or DeterministicJudge()
        self._frame_builder = frame_builder or TaskFrameBuilder()
        self._arena = arena or TaskFrameArena()

        navigation = settings.navigation if settings is not None else None
        self._max_iterations = navigation.max_iterations if navigation else 6
        self._max_pages = navigation.max_pages_per_turn if navigation else 3
        self._max_search_results = navigation.max_search_results if navigation else 8
        self._stagnation_limit = navigation.stagnation_limit if navigation else 3
        self._repeat_limit = navigation.repeat_limit if navigation else 2

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        tools: "WebToolRuntime",
        llm: Optional[ILLMProvider] = None,
    ) -> "NavigationPlanner":
        """Planner with the LLM judge and planner when a provider is given."""
        max_tokens = settings.llm.max_tokens
        judge = LLMJudge(llm, max_tokens=max_tokens) if llm is not None else DeterministicJudge()
        return cls(
            tools,
            judge=judge,
            settings=settings,
            frame_builder=TaskFrameBuilder(llm, max_tokens=max_tokens),
        )

    @property
    def arena(self) -> TaskFrameArena:
        return self._arena

    # ==================== Turn ====================

    async def run_turn(self, session_id: str, message: str, turn_id: Optional[str] = None) -> TurnResult:
        """
        Browse for one user message.

        Args:
            session_id: Conversation/session id (one live browser per id)
            message: The user's message
            turn_id: Optional id for this turn

        Returns:
            TurnResult with the gathered documents and the stop reason
        """
        turn_id = turn_id or f"turn-{uuid.uuid4().hex[:12]}"
        state = _TurnState()
        previous = self._arena.get(session_id)

        provided_urls = dedupe_canonical_urls(
            extract_explicit_urls(message) + extract_domain_hint_urls(message)
        )
        frame = await self._frame_builder.build(session_id, turn_id, message, previous, provided_urls)
        self._arena.put(frame)
        state.event("task_frame", relation=frame.relation.value, entities=list(frame.entities))

        if frame.relation == TaskRelation.ACKNOWLEDGE:
            logger.info(f"[{session_id}] acknowledgement turn, no browsing")
            return self._finish(frame, state, StopReason.FINALIZED_BY_MODEL)

        if (
            not provided_urls
            and OFFICIAL_WEBSITE_URL in frame.missing_inputs
            and should_ask_for_website_url(message, frame)
        ):
            logger.info(f"[{session_id}] website-specific request without a URL, asking for one")
            return self._finish(frame, state, StopReason.FINALIZED_BY_MODEL)

        try:
            started = await self._tools.invoke("web_session_start", {}, session_id)
            session = started.get("session") or {}
            state.event("session_started", backend=session.get("backend"), liveViewUrl=session.get("liveViewUrl"))
        except Exception as e:
            logger.error(f"[{session_id}] session start failed: {e}")
            state.error(f"web_session_start: {e}")
            return self._finish(frame, state, StopReason.TOOL_ERROR)

        targets = await self._collect_targets(session_id, frame, message, provided_urls, state)
        stop_reason = await self._visit(session_id, frame, message, targets, state)
        return self._finish(frame, state, stop_reason)

    def _finish(self, frame: TaskFrame, state: _TurnState, stop_reason: StopReason) -> TurnResult:
        final_frame = finalize_task_frame(frame, state.documents, state.search_results)
        self._arena.put(final_frame)
        state.event("finalized", stopReason=stop_reason.value, iterations=state.iterations)
        return TurnResult(
            task_frame=final_frame,
            stop_reason=stop_reason,
            documents=state.documents,
            search_results=state.search_results,
            visited_urls=state.visited,
            sources=state.sources,
            iterations=state.iterations,
            errors=state.errors,
            events=state.events,
        )

    # ==================== Candidates ====================

    async def _collect_targets(
        self,
        session_id: str,
        frame: TaskFrame,
        message: str,
        provided_urls: List[str],
        state: _TurnState,
    ) -> List[str]:
        targets: List[str] = list(provided_urls)
        hints = provided_urls or frame.domain_hints
        root = site_root(hints[0]) if hints else None

        if root:
            discovered = await self._discover_site(session_id, root, frame.user_objective or message, state)
            state.event("discovery", root=root, candidates=len(discovered))
            targets.extend(discovered)
        elif not provided_urls:
            targets.extend(await self._search_targets(session_id, frame, message, state))

        limit = max(self._max_pages * 3, MIN_DISCOVERED)
        return dedupe_canonical_urls(targets)[:limit]

    async def _search_targets(
        self,
        session_id: str,
        frame: TaskFrame,
        message: str,
        state: _TurnState,
    ) -> List[str]:
        query = build_search_query(frame, message)
        try:
            payload = await self._tools.invoke(
                "web_search",
                {"query": query, "limit": self._max_search_results},
                session_id,
            )
        except Exception as e:
            logger.warning(f"[{session_id}] search failed: {e}")
            state.error(f"web_search: {e}")
            return []

        results = [SearchResult.from_dict(item) for item in payload.get("results") or []]
        ranked = rank_search_results_for_task(results, frame, query)
        state.search_results = ranked
        state.event("search", query=query, results=len(ranked))
        return [result.url for result in ranked[:self._max_pages]]

    async def _harvest(self, session_id: str, url: str, root: str, candidates: List[str]) -> bool:
        try:
            await self._navigate(session_id, url, DISCOVERY_NAV_OPTIONS)
            extracted = StructuredExtraction.from_dict(
                await self._tools.invoke("web_extract_structured", {}, session_id)
            )
        except Exception as e:
            logger.debug(f"[{session_id}] discovery fetch of {url} failed: {e}")
            return False
        candidates.extend(collect_discovery_links(extracted, root))
        return True

    async def _discover_site(self, session_id: str, root: str, objective: str, state: _TurnState) -> List[str]:
        """
        Site-direct candidates: root, guessed paths and links harvested from the root.

        A structural endpoint (sitemap / llms.txt) is fetched only when
        nothing yet looks like the page the task wants.
        """
        candidates: List[str] = [root] + build_direct_path_hints(root, objective)
        await self._harvest(session_id, root, root, candidates)
        ranked = rank_site_urls(candidates, objective, root)

        if not has_objective_candidate(ranked, objective):
            fetched = 0
            for endpoint in prioritize_structural_endpoints(root, objective):
                if fetched >= MAX_STRUCTURAL_FETCHES:
                    break
                if await self._harvest(session_id, endpoint, root, candidates):
                    fetched += 1
                    state.event("structural_fetch", url=endpoint)
                    ranked = rank_site_urls(candidates, objective, root)
                    if has_objective_candidate(ranked, objective):
                        break

        return ranked[:max(self._max_pages, MIN_DISCOVERED)]

    # ==================== Page loop ====================

    async def _navigate(self, session_id: str, url: str, options: Dict[str, Any]) -> None:
        result = await self._tools.invoke(
            "web_act",
            {"action": {"type": "navigate", "url": url, "options": dict(options)}},
            session_id,
        )
        if result.get("needsConfirmation"):
            raise ActionExecutionError(f"Navigation to {url} needs confirmation", action_type="navigate")
        if not result.get("success"):
            error = (result.get("data") or {}).get("error") or "navigation failed"
            raise ActionExecutionError(str(error), action_type="navigate")

    async def _visit(
        self,
        session_id: str,
        frame: TaskFrame,
        message: str,
        targets: List[str],
        state: _TurnState,
    ) -> StopReason:
        pending: List[str] = list(targets)
        visited: Set[str] = set()
        proposals: Counter = Counter()
        seen_tokens: Set[str] = set()
        stale_pages = 0

        while pending and state.iterations < self._max_iterations:
            url = pending.pop(0)
            canonical = canonicalize_url(url)
            if canonical in visited:
                continue

            state.iterations += 1
            step = state.iterations
            try:
                decision = await self._visit_page(session_id, frame, message, url, step, pending, visited, state)
            except Exception as e:
                logger.warning(f"[{session_id}] step {step} failed for {url}: {e}")
                state.error(f"{url}: {e}")
                continue
            state.successful_steps += 1

            if not decision.should_continue:
                logger.info(f"[{session_id}] enough info after {url}: {decision.reason}")
                return StopReason.ENOUGH_INFO

            new_tokens = set(decision.matched_tokens) - seen_tokens
            seen_tokens.update(decision.matched_tokens)
            stale_pages = 0 if new_tokens else stale_pages + 1
            if stale_pages >= self._stagnation_limit:
                logger.info(f"[{session_id}] {stale_pages} pages without new signal, stopping")
                return StopReason.STAGNATION

            if decision.next_best_url:
                next_key = canonicalize_url(decision.next_best_url)
                queued = [item for item in pending if canonicalize_url(item) == next_key]
                if queued and next_key not in visited:
                    # Already queued: visit it next
                    pending[:] = [item for item in pending if canonicalize_url(item) != next_key]
                    pending.insert(0, queued[0])
                elif next_key not in visited:
                    proposals[next_key] += 1
                    if proposals[next_key] > self._repeat_limit:
                        if not pending:
                            logger.info(f"[{session_id}] {next_key} re-proposed {proposals[next_key]} times, stopping")
                            return StopReason.REPEAT_GUARD
                    else:
                        pending.insert(0, decision.next_best_url)

        if state.iterations > 0 and state.successful_steps == 0:
            return StopReason.TOOL_ERROR
        if state.iterations >= self._max_iterations:
            return StopReason.MAX_ACTIONS
        return StopReason.FINALIZED_BY_MODEL

    async def _visit_page(
        self,
        session_id: str,
        frame: TaskFrame,
        message: str,
        url: str,
        step: int,
        pending: List[str],
        visited: Set[str],
        state: _TurnState,
    ) -> NavigationDecision:
        await self._navigate(session_id, url, PAGE_NAV_OPTIONS)
        await self._tools.invoke(
            "web_observe",
            {"mode": "dom+vision", "includeScreenshot": step == 1},
            session_id,
        )
        doc = StructuredExtraction.from_dict(
            await self._tools.invoke("web_extract_structured", {}, session_id)
        )

        landed = canonicalize_url(doc.url) or canonicalize_url(url)
        visited.add(landed)
        if landed not in state.visited:
            state.visited.append(landed)
        if doc.url:
            state.add_source(doc)
        if doc.main_text:
            state.documents.append(doc)

        decision = await self._judge.decide(frame, message, doc, list(pending))
        state.event(
            "page",
            step=step,
            url=doc.url or url,
            shouldContinue=decision.should_continue,
            reason=decision.reason,
            nextBestUrl=decision.next_best_url,
        )
        return decision
