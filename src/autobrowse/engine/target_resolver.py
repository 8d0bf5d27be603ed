"""
Target Resolver - DOM locator resolution for click, fill and submit.

Strategies (tried in order, first non-empty locator wins):
1. CSS - The target's CSS selector, when it matches something
2. ROLE_TEXT - Playwright get_by_role with the target text as accessible name
3. TEXT - Playwright get_by_text, substring match

Each strategy returns a locator or None; a strategy that errors (for
example an unknown ARIA role) counts as no match.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from autobrowse.interfaces.web import ActionTarget

logger = logging.getLogger(__name__)


class ResolutionStrategy(Enum):
    """Which strategy resolved the target."""
    CSS = "css"
    ROLE_TEXT = "role_text"
    TEXT = "text"


@dataclass
class ResolvedTarget:
    """A locator that matched at least one element."""
    locator: Any
    strategy: ResolutionStrategy
    count: int = 1

    @property
    def first(self) -> Any:
        return self.locator.first


Strategy = Callable[[Any, ActionTarget], Awaitable[Optional[Any]]]


async def _non_empty(locator: Any) -> Optional[Any]:
    return locator if await locator.count() > 0 else None


async def css_strategy(page: Any, target: ActionTarget) -> Optional[Any]:
    if not target.css:
        return None
    return await _non_empty(page.locator(target.css))


async def role_text_strategy(page: Any, target: ActionTarget) -> Optional[Any]:
    if not (target.role and target.text):
        return None
    return await _non_empty(page.get_by_role(target.role, name=target.text))


async def text_strategy(page: Any, target: ActionTarget) -> Optional[Any]:
    if not target.text:
        return None
    return await _non_empty(page.get_by_text(target.text, exact=False))


DEFAULT_STRATEGIES: List[Tuple[ResolutionStrategy, Strategy]] = [
    (ResolutionStrategy.CSS, css_strategy),
    (ResolutionStrategy.ROLE_TEXT, role_text_strategy),
    (ResolutionStrategy.TEXT, text_strategy),
]


class TargetResolver:
    """
    Run the locator strategy chain for an action target.

    Example:
        >>> resolver = TargetResolver()
        >>> resolved = await resolver.resolve(page, ActionTarget(text="Sign up"))
        >>> if resolved:
        ...     await resolved.first.click()
    """

    def __init__(self, strategies: Optional[List[Tuple[ResolutionStrategy, Strategy]]] = None):
        self._strategies = list(strategies or DEFAULT_STRATEGIES)

    async def resolve(self, page: Any, target: Optional[ActionTarget]) -> Optional[ResolvedTarget]:
        """
        Resolve a target to a Playwright locator.

        Args:
            page: Live Playwright page
            target: Target description; None resolves to nothing

        Returns:
            ResolvedTarget, or None when no strategy matched
        """
        if target is None:
            return None

        for name, strategy in self._strategies:
            try:
                locator = await strategy(page, target)
            except Exception as e:
                logger.debug(f"Strategy {name.value} failed for {target.to_dict()}: {e}")
                continue
            if locator is not None:
                count = await locator.count()
                logger.debug(f"Resolved {target.to_dict()} via {name.value} ({count} matches)")
                return ResolvedTarget(locator=locator, strategy=name, count=count)

        return None
