"""
Autobrowse - Autonomous web-browsing agent core.

Manages browser sessions across backends (local Playwright, Browserbase,
Steel), perceives pages, runs policy-gated actions, aggregates web search
and drives a bounded page-discovery loop for one conversational turn.

Example:
    >>> from autobrowse import WebToolRuntime, NavigationPlanner, get_settings
    >>> settings = get_settings()
    >>> runtime = WebToolRuntime.from_settings(settings)
    >>> planner = NavigationPlanner.from_settings(settings, runtime)
    >>> result = await planner.run_turn("conv-1", "Compare plans on acme.io")
"""

__version__ = "0.1.0"

# Public API exports
from autobrowse.config import Settings, get_settings
from autobrowse.core.navigation import NavigationPlanner, StopReason, TurnResult
from autobrowse.tools.web_tools import WebToolRuntime

__all__ = [
    "Settings",
    "get_settings",
    "NavigationPlanner",
    "StopReason",
    "TurnResult",
    "WebToolRuntime",
    "__version__",
]
