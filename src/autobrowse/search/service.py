"""
Search Service - Fan a query out to every enabled provider and rerank.

Ranking per hit::

    score = overlap * 1.1 + freshness + trust

- overlap: query tokens found in title + snippet
- freshness: first 20xx year in the URL (current 0.45, previous 0.25, older 0.05)
- trust: brave_api 0.3, managed_api 0.2, HTML scrapes 0.1, browser_fallback 0.05
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from autobrowse.interfaces.web import SearchResult, utc_now_iso
from autobrowse.registry import get_search_provider, list_search_providers
from autobrowse.search.providers import BrowserSearchFallback, RawSearchResult, SearchProvider
from autobrowse.utils.retry import clamp, with_timeout
from autobrowse.utils.urls import canonicalize_url, is_blocked_source_url, is_http_url

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 8
MAX_LIMIT = 20
DEFAULT_TIMEOUT_MS = 45000
MIN_TIMEOUT_MS = 1000

ENGINE_TRUST: Dict[str, float] = {
    "brave_api": 0.3,
    "managed_api": 0.2,
    "browser_fallback": 0.05,
}
SCRAPE_TRUST = 0.1

YEAR_RE = re.compile(r"\b(20\d{2})\b")


def freshness_score(url: str, current_year: Optional[int] = None) -> float:
    """Boost URLs that carry a recent year."""
    match = YEAR_RE.search(url)
    if not match:
        return 0.0
    year = int(match.group(1))
    now_year = current_year or datetime.now(timezone.utc).year
    if year >= now_year:
        return 0.45
    if year == now_year - 1:
        return 0.25
    return 0.05


def rerank(
    query: str,
    raw_results: List[RawSearchResult],
    retrieved_at: str,
    current_year: Optional[int] = None,
) -> List[SearchResult]:
    """
    Canonicalize, score, dedupe and rank raw hits.

    Deterministic for fixed inputs: duplicates keep their best-scoring
    entry and ties keep provider order.
    """
    tokens = [token for token in query.lower().split() if token]
    best: Dict[str, SearchResult] = {}
    order: List[str] = []

    for item in raw_results:
        url = canonicalize_url(item.url)
        if not is_http_url(url) or is_blocked_source_url(url):
            continue
        haystack = f"{item.title} {item.snippet}".lower()
        overlap = sum(1 for token in tokens if token in haystack)
        trust = ENGINE_TRUST.get(item.engine, SCRAPE_TRUST)
        score = round(overlap * 1.1 + freshness_score(url, current_year) + trust, 4)

        existing = best.get(url)
        if existing is None:
            order.append(url)
        elif existing.score >= score:
            continue
        best[url] = SearchResult(
            title=item.title or url,
            url=url,
            snippet=item.snippet,
            rank=0,
            engine=item.engine,
            retrieved_at=retrieved_at,
            score=score,
        )

    ranked = sorted((best[url] for url in order), key=lambda r: r.score, reverse=True)
    for index, result in enumerate(ranked, start=1):
        result.rank = index
    return ranked


class SearchService:
    """
    Aggregate web search.

    Example:
        >>> service = SearchService.from_settings(settings)
        >>> results = await service.search("playwright python docs", limit=5)
        >>> results[0].rank
        1
    """

    def __init__(
        self,
        providers: List[SearchProvider],
        client: Optional[httpx.AsyncClient] = None,
        browser_fallback: Optional[BrowserSearchFallback] = None,
        default_limit: int = DEFAULT_LIMIT,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self._providers = providers
        self._client = client
        self._owns_client = client is None
        self._browser_fallback = browser_fallback
        self._default_limit = default_limit
        self._default_timeout_ms = default_timeout_ms

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[httpx.AsyncClient] = None) -> "SearchService":
        """Instantiate every registered provider from the search settings."""
        import autobrowse.search.providers  # noqa: F401  registers providers

        search = settings.search
        providers = [get_search_provider(name)(search) for name in list_search_providers()]
        fallback = (
            BrowserSearchFallback(timeout_ms=search.provider_timeout_ms)
            if search.enable_browser_fallback else None
        )
        return cls(
            providers,
            client=client,
            browser_fallback=fallback,
            default_limit=search.default_limit,
            default_timeout_ms=search.timeout_ms,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Search the web.

        Args:
            query: Search query
            limit: Results to return (clamped to 1-20)
            timeout_ms: Budget cap for each provider (at least 1s)

        Returns:
            Ranked results, canonical URLs unique

        Raises:
            ValueError: If the query is empty
        """
        q = str(query or "").strip()
        if not q:
            raise ValueError("search query is required")

        limit = int(clamp(limit or self._default_limit, 1, MAX_LIMIT))
        timeout_ms = max(MIN_TIMEOUT_MS, int(timeout_ms or self._default_timeout_ms))
        retrieved_at = utc_now_iso()

        raw = await self._fan_out(q, timeout_ms)
        if not raw and self._browser_fallback is not None:
            try:
                raw = await with_timeout(
                    self._browser_fallback.search(q),
                    timeout_ms / 1000,
                    f"Browser search fallback timed out after {timeout_ms}ms",
                )
            except Exception as e:
                logger.warning(f"Browser search fallback failed: {e}")
                raw = []

        results = rerank(q, raw, retrieved_at)[:limit]
        logger.info(f"Search '{q}' -> {len(results)} results from {len(raw)} raw hits")
        return results

    async def _fan_out(self, query: str, timeout_ms: int) -> List[RawSearchResult]:
        enabled = [provider for provider in self._providers if provider.is_enabled()]
        if not enabled:
            return []
        client = self._get_client()

        settled = await asyncio.gather(
            *(self._search_provider(provider, query, client, timeout_ms) for provider in enabled),
            return_exceptions=True,
        )

        aggregated: List[RawSearchResult] = []
        for provider, outcome in zip(enabled, settled):
            if isinstance(outcome, BaseException):
                logger.debug(f"Search provider {provider.name} raised: {outcome}")
                continue
            aggregated.extend(outcome)
        return aggregated

    async def _search_provider(
        self,
        provider: SearchProvider,
        query: str,
        client: httpx.AsyncClient,
        timeout_ms: int,
    ) -> List[RawSearchResult]:
        # Bounded per provider
        budget_s = min(provider.timeout_seconds, timeout_ms / 1000)
        try:
            return await with_timeout(
                provider.search(query, client),
                budget_s,
                f"Search provider {provider.name} timed out after {int(budget_s * 1000)}ms",
            )
        except asyncio.TimeoutError as e:
            logger.warning(str(e))
            return []
