"""
Action Executor - Run one policy-gated browser action against a live session.

Flow for every action:
1. Policy check (high risk without a valid token -> NeedsConfirmation, nothing runs)
2. Look up the session's live page
3. Dispatch on action type
4. Append to the session's world model and record telemetry
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autobrowse.control.policies.policy_engine import PolicyEngine
from autobrowse.core.session_manager import SessionManager
from autobrowse.core.world_model import WorldModelStore
from autobrowse.engine.perception import PerceptionEngine
from autobrowse.engine.next_action import ActionDecision, decide_next_action
from autobrowse.engine.results import ActionOutcome, Err, NeedsConfirmation, Ok
from autobrowse.engine.target_resolver import TargetResolver
from autobrowse.engine.vision_resolver import VisionResolver
from autobrowse.exceptions import (
    ActionTimeoutError,
    ActionValidationError,
    ConfirmationRequired,
    NavigationError,
    PolicyDeniedError,
    TargetResolutionError,
)
from autobrowse.interfaces.web import (
    Action,
    ActionType,
    ConfirmationDetails,
    Observation,
    ObservationMode,
    RiskLevel,
    SearchResult,
    StructuredExtraction,
)
from autobrowse.reporting.telemetry import Telemetry
from autobrowse.utils.retry import clamp
from autobrowse.utils.urls import canonicalize_url, is_http_url

logger = logging.getLogger(__name__)

DEFAULT_NAV_TIMEOUT_MS = 30000
MIN_NAV_TIMEOUT_MS = 5000
MAX_NAV_TIMEOUT_MS = 120000
DEFAULT_SETTLE_MS = 1200
MAX_SETTLE_MS = 5000
ELEMENT_TIMEOUT_MS = 10000
DEFAULT_SCROLL_DELTA = 1000
DEFAULT_WAIT_MS = 750
WAIT_UNTIL_STATES = ("load", "domcontentloaded", "networkidle", "commit")


class ActionExecutor:
    """
    Execute actions for sessions owned by a SessionManager.

    Example:
        >>> executor = ActionExecutor(manager, policy=PolicyEngine.from_settings(settings))
        >>> outcome = await executor.execute("conv-1", Action.from_dict({
        ...     "type": "navigate", "url": "https://example.com",
        ... }))
        >>> outcome.to_result().to_dict()["data"]["title"]
        'Example Domain'
    """

    def __init__(
        self,
        session_manager: SessionManager,
        policy: Optional[PolicyEngine] = None,
        perception: Optional[PerceptionEngine] = None,
        vision: Optional[VisionResolver] = None,
        resolver: Optional[TargetResolver] = None,
        search_service: Optional[Any] = None,
        world_models: Optional[WorldModelStore] = None,
        telemetry: Optional[Telemetry] = None,
        default_settle_ms: int = DEFAULT_SETTLE_MS,
    ):
        self._sessions = session_manager
        self._policy = policy or PolicyEngine()
        self._perception = perception or PerceptionEngine()
        self._vision = vision or VisionResolver()
        self._resolver = resolver or TargetResolver()
        self._search = search_service
        self.world_models = world_models or WorldModelStore()
        self._telemetry = telemetry or session_manager.telemetry
        self._default_settle_ms = default_settle_ms

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        session_manager: SessionManager,
        search_service: Optional[Any] = None,
    ) -> "ActionExecutor":
        return cls(
            session_manager,
            policy=PolicyEngine.from_settings(settings),
            perception=PerceptionEngine.from_settings(settings),
            search_service=search_service,
            telemetry=session_manager.telemetry,
            default_settle_ms=settings.navigation.settle_ms,
        )

    # ==================== Execute ====================

    async def execute(
        self,
        session_id: str,
        action: Action,
        confirmation_token: Optional[str] = None,
        mode: ObservationMode = ObservationMode.DOM_VISION,
        current_observation: Optional[Observation] = None,
    ) -> ActionOutcome:
        """
        Execute one action.

        Args:
            session_id: Session to act in
            action: The action
            confirmation_token: Approval token for high-risk actions
            mode: Observation mode for extract actions
            current_observation: Observation used by the vision fallback

        Returns:
            Ok, NeedsConfirmation or Err
        """
        try:
            decision = self._policy.assert_allowed(action, session_id, confirmation_token)
        except ConfirmationRequired as gate:
            logger.info(f"Action {action.type.value} in {session_id} needs confirmation ({gate.action_digest[:12]})")
            self._telemetry.record(session_id, "confirmation_required", gate.to_dict())
            return NeedsConfirmation(
                action=action,
                risk=RiskLevel(gate.risk),
                details=ConfirmationDetails(
                    action_digest=gate.action_digest,
                    session_id=gate.session_id,
                    command_hint=gate.command_hint,
                ),
            )
        except PolicyDeniedError as e:
            self._telemetry.record(session_id, "action_denied", {
                "action": action.to_dict(),
                "policy": e.policy_name,
            })
            return Err(action=action, risk=RiskLevel.HIGH, error=e)

        world = self.world_models.for_session(session_id)
        observation = current_observation or world.latest_observation()

        try:
            page = await self._sessions.get_page(session_id)
            data = await self._dispatch(session_id, page, action, mode, observation)
        except Exception as e:
            logger.warning(f"Action {action.type.value} failed in {session_id}: {e}")
            world.add_action(action, success=False)
            self._telemetry.record(session_id, "action_error", {
                "action": action.to_dict(),
                "risk": decision.risk.value,
                "error": str(e),
            })
            return Err(action=action, risk=decision.risk, error=e)

        world.add_action(action, success=True)
        self._sessions.touch(session_id)
        self._telemetry.record(session_id, "action", {
            "action": action.to_dict(),
            "risk": decision.risk.value,
            "data": data,
        })
        return Ok(action=action, risk=decision.risk, data=data)

    async def _dispatch(
        self,
        session_id: str,
        page: Any,
        action: Action,
        mode: ObservationMode,
        observation: Optional[Observation],
    ) -> Dict[str, Any]:
        options = action.options

        if action.type == ActionType.NAVIGATE:
            return await self._navigate(page, action)

        try:
            if action.type == ActionType.CLICK:
                return {"clicked": await self._click(page, action, observation)}

            if action.type == ActionType.FILL:
                return {"filled": await self._fill(page, action, observation), "value": action.value or ""}

            if action.type == ActionType.SUBMIT:
                return {"submitted": await self._submit(page, action, observation)}
        except PlaywrightTimeoutError as e:
            raise ActionTimeoutError(
                f"{action.type.value} timed out: {e}",
                action_type=action.type.value,
                timeout_ms=ELEMENT_TIMEOUT_MS,
            ) from e

        if action.type == ActionType.SCROLL:
            delta_y = float(options.get("deltaY") or DEFAULT_SCROLL_DELTA)
            await page.mouse.wheel(0, delta_y)
            return {"deltaY": delta_y}

        if action.type == ActionType.WAIT:
            wait_ms = max(0, int(options.get("waitMs") or DEFAULT_WAIT_MS))
            await page.wait_for_timeout(wait_ms)
            return {"waitMs": wait_ms}

        if action.type == ActionType.EXTRACT:
            observed = await self._perception.observe(
                page,
                mode=mode,
                include_screenshot=options.get("screenshot") is True,
                session_id=session_id,
            )
            self.world_models.for_session(session_id).add_observation(observed)
            structured = await self._perception.extract_structured(page)
            return {"observation": observed.to_dict(), "structured": structured.to_dict()}

        if action.type == ActionType.SEARCH:
            query = str(action.value or options.get("query") or "").strip()
            results = await self._run_search(
                query,
                limit=int(options.get("limit") or 8),
                timeout_ms=int(options.get("timeoutMs") or 45000),
            )
            return {"query": query, "results": [r.to_dict() for r in results]}

        raise ActionValidationError(
            f"Unsupported action type: {action.type.value}",
            action_type=action.type.value,
        )

    # ==================== Navigation ====================

    async def _navigate(self, page: Any, action: Action) -> Dict[str, Any]:
        target_url = canonicalize_url(action.url or "")
        if not is_http_url(target_url):
            raise ActionValidationError(
                "navigate action requires a valid http/https url",
                action_type=action.type.value,
                invalid_params={"url": action.url},
            )

        options = action.options
        timeout_ms = int(clamp(
            float(options.get("timeoutMs") or DEFAULT_NAV_TIMEOUT_MS),
            MIN_NAV_TIMEOUT_MS,
            MAX_NAV_TIMEOUT_MS,
        ))
        wait_until = str(options.get("waitUntil") or "load").lower()
        if wait_until not in WAIT_UNTIL_STATES:
            wait_until = "domcontentloaded"
        settle_ms = self._settle_ms(options.get("settleMs"))

        try:
            await page.goto(target_url, wait_until=wait_until, timeout=timeout_ms)
        except Exception as e:
            raise NavigationError(f"Navigation to {target_url} failed: {e}", url=target_url) from e
        await self.wait_for_settled(page, timeout_ms, settle_ms)
        return {"url": page.url, "title": await page.title()}

    def _settle_ms(self, override: Any) -> int:
        value = self._default_settle_ms if override is None else override
        try:
            return int(clamp(float(value), 0, MAX_SETTLE_MS))
        except (TypeError, ValueError):
            return int(clamp(self._default_settle_ms, 0, MAX_SETTLE_MS))

    async def wait_for_settled(self, page: Any, timeout_ms: int, settle_ms: int) -> None:
        """
        Best-effort wait for a page to finish loading.

        Each step swallows its own timeout; pages that poll forever or
        never fire load still proceed.
        """
        load_timeout = int(clamp(timeout_ms * 0.5, 1500, 12000))
        try:
            await page.wait_for_load_state("load", timeout=load_timeout)
        except Exception as e:
            logger.debug(f"Load state not reached: {e}")

        try:
            await page.wait_for_function(
                "document.readyState !== 'loading'",
                timeout=min(4000, load_timeout),
            )
        except Exception as e:
            logger.debug(f"Document still loading: {e}")

        if settle_ms > 0:
            await asyncio.sleep(settle_ms / 1000)

        try:
            await page.wait_for_load_state(
                "networkidle",
                timeout=int(clamp(timeout_ms * 0.2, 1000, 3500)),
            )
        except Exception as e:
            logger.debug(f"Network not idle: {e}")

    # ==================== Element actions ====================

    async def _click(self, page: Any, action: Action, observation: Optional[Observation]) -> str:
        resolved = await self._resolver.resolve(page, action.target)
        if resolved is not None:
            await resolved.first.click(timeout=ELEMENT_TIMEOUT_MS)
            return "dom"

        fallback = await self._vision.resolve(page, action.target, observation)
        if fallback.css:
            await page.locator(fallback.css).first.click(timeout=ELEMENT_TIMEOUT_MS)
            return "vision-css"
        if fallback.bbox is not None:
            x, y = fallback.bbox.center
            await page.mouse.click(x, y)
            return "vision-bbox"

        raise TargetResolutionError(
            "Unable to resolve click target with DOM or vision fallback",
            action_type=action.type.value,
            selector=action.target.css if action.target else None,
        )

    async def _fill(self, page: Any, action: Action, observation: Optional[Observation]) -> str:
        value = action.value or ""
        resolved = await self._resolver.resolve(page, action.target)
        if resolved is not None:
            await resolved.first.fill(value, timeout=ELEMENT_TIMEOUT_MS)
            return "dom"

        fallback = await self._vision.resolve(page, action.target, observation)
        if fallback.css:
            await page.locator(fallback.css).first.fill(value, timeout=ELEMENT_TIMEOUT_MS)
            return "vision-css"

        raise TargetResolutionError(
            "Unable to resolve fill target with DOM or vision fallback",
            action_type=action.type.value,
            selector=action.target.css if action.target else None,
        )

    async def _submit(self, page: Any, action: Action, observation: Optional[Observation]) -> str:
        resolved = await self._resolver.resolve(page, action.target)
        if resolved is not None:
            await resolved.first.click(timeout=ELEMENT_TIMEOUT_MS)
            return "dom"

        if action.target is not None:
            fallback = await self._vision.resolve(page, action.target, observation)
            if fallback.css:
                await page.locator(fallback.css).first.click(timeout=ELEMENT_TIMEOUT_MS)
                return "vision-css"

        await page.keyboard.press("Enter")
        return "keyboard-enter"

    # ==================== Helpers ====================

    async def observe(
        self,
        session_id: str,
        mode: ObservationMode = ObservationMode.DOM,
        include_screenshot: bool = False,
    ) -> Observation:
        """Observe the session's page and append it to the world model."""
        page = await self._sessions.get_page(session_id)
        observation = await self._perception.observe(
            page,
            mode=mode,
            include_screenshot=include_screenshot,
            session_id=session_id,
        )
        self.world_models.for_session(session_id).add_observation(observation)
        self._sessions.touch(session_id)
        self._telemetry.record(session_id, "observe", {
            "url": observation.url,
            "title": observation.title,
            "screenshotPath": observation.screenshot_path,
        })
        return observation

    def decide_next(
        self,
        session_id: str,
        goal: str,
        mode: ObservationMode = ObservationMode.DOM_VISION,
    ) -> ActionDecision:
        """Propose the next action from the goal and the latest observation."""
        world = self.world_models.for_session(session_id)
        decision = decide_next_action(goal, world, self._policy, world.latest_observation(), mode)
        self._telemetry.record(session_id, "decide_next", {
            "actionType": decision.action.type.value,
            "risk": decision.risk.value,
        })
        return decision

    async def extract_structured(self, session_id: str, url: Optional[str] = None) -> StructuredExtraction:
        """Extract main content, navigating to url first when one is given."""
        page = await self._sessions.get_page(session_id)
        if url and is_http_url(url):
            await page.goto(canonicalize_url(url), wait_until="load", timeout=DEFAULT_NAV_TIMEOUT_MS)
            await self.wait_for_settled(page, DEFAULT_NAV_TIMEOUT_MS, 800)
        extracted = await self._perception.extract_structured(page, url_override=page.url)
        self._sessions.touch(session_id)
        self._telemetry.record(session_id, "extract_structured", {
            "url": extracted.url,
            "title": extracted.title,
            "textChars": len(extracted.main_text),
        })
        return extracted

    async def search(
        self,
        session_id: str,
        query: str,
        limit: int = 8,
        timeout_ms: int = 45000,
    ) -> List[SearchResult]:
        """Run a web search on behalf of a session."""
        results = await self._run_search(query, limit=limit, timeout_ms=timeout_ms)
        self._telemetry.record(session_id, "search", {
            "query": query,
            "count": len(results),
            "top": results[0].url if results else None,
        })
        return results

    async def _run_search(self, query: str, limit: int, timeout_ms: int) -> List[SearchResult]:
        if self._search is None:
            raise ActionValidationError(
                "No search service configured",
                action_type=ActionType.SEARCH.value,
            )
        return await self._search.search(query, limit=limit, timeout_ms=timeout_ms)
