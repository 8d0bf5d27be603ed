"""
Search Providers - Individual web search sources.

Available providers (fan-out order):
- BraveSearchProvider: Brave Search API (needs a subscription token)
- DuckDuckGoHtmlProvider: duckduckgo.com/html scrape
- DuckDuckGoLiteProvider: lite.duckduckgo.com scrape
- BingHtmlProvider: bing.com scrape
- ManagedSearchProvider: self-hosted JSON search API (needs a URL)

BrowserSearchFallback is not part of the fan-out; SearchService uses it
only when every provider came back empty.

Providers never raise for transport or parse problems: a failed source
returns an empty list so the aggregate search degrades instead of failing.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import parse_qs, quote_plus, unquote, urlsplit

import httpx
from bs4 import BeautifulSoup

from autobrowse.registry import register_search_provider

logger = logging.getLogger(__name__)

BRAVE_API_URL = "https://api.search.brave.com/res/v1/web/search"
DDG_HTML_URL = "https://duckduckgo.com/html/"
DDG_LITE_URL = "https://lite.duckduckgo.com/lite/"
BING_URL = "https://www.bing.com/search"

BRAVE_ENV_KEY = "BRAVE_SEARCH_API_KEY"


@dataclass
class RawSearchResult:
    """A provider hit before ranking."""
    title: str
    url: str
    snippet: str
    engine: str


def normalize_search_url(href: str) -> str:
    """
    Unwrap search-engine redirect links.

    DuckDuckGo wraps targets as ``//duckduckgo.com/l/?uddg=<encoded>``;
    anything without a ``uddg`` parameter is returned unchanged.
    """
    raw = str(href or "").strip()
    if not raw:
        return ""
    if raw.startswith("//"):
        raw = f"https:{raw}"
    try:
        params = parse_qs(urlsplit(raw).query)
    except ValueError:
        params = {}
    target = params.get("uddg")
    if target and target[0]:
        return target[0]
    if "uddg=" in raw:
        return unquote(raw.split("uddg=", 1)[1].split("&", 1)[0])
    return raw


def _text(node: Any) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


class SearchProvider(ABC):
    """
    Abstract base for a search source.

    Attributes:
        name: Engine name reported on results
    """

    name: str = ""

    def __init__(self, settings: Any):
        self._settings = settings

    def is_enabled(self) -> bool:
        """Whether the provider has what it needs (keys, URLs) to run."""
        return True

    @property
    def timeout_seconds(self) -> float:
        return self._settings.provider_timeout_ms / 1000

    async def search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        """
        Query this source.

        Returns:
            Raw hits; empty on any transport or parse failure
        """
        try:
            return await self._search(query, client)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Search provider {self.name} failed: {e}")
            return []

    @abstractmethod
    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        ...

    async def _fetch_html(self, client: httpx.AsyncClient, url: str, params: dict) -> str:
        response = await client.get(
            url,
            params=params,
            headers={"user-agent": self._settings.user_agent},
            timeout=self.timeout_seconds,
            follow_redirects=True,
        )
        if response.status_code >= 400:
            logger.debug(f"{self.name} returned HTTP {response.status_code}")
            return ""
        return response.text


@register_search_provider("brave_api")
class BraveSearchProvider(SearchProvider):
    """Brave Search API. Enabled when a key is configured or BRAVE_SEARCH_API_KEY is set."""

    name = "brave_api"

    def api_key(self) -> Optional[str]:
        key = self._settings.brave_api_key
        if key is not None and key.get_secret_value().strip():
            return key.get_secret_value().strip()
        return os.environ.get(BRAVE_ENV_KEY, "").strip() or None

    def is_enabled(self) -> bool:
        return self.api_key() is not None

    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        response = await client.get(
            BRAVE_API_URL,
            params={"q": query, "count": 10},
            headers={
                "accept": "application/json",
                "accept-encoding": "gzip",
                "x-subscription-token": self.api_key() or "",
            },
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            logger.debug(f"Brave API returned HTTP {response.status_code}")
            return []
        data = response.json()
        return [
            RawSearchResult(
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                snippet=str(item.get("description") or ""),
                engine=self.name,
            )
            for item in ((data.get("web") or {}).get("results") or [])
        ]


@register_search_provider("duckduckgo")
class DuckDuckGoHtmlProvider(SearchProvider):
    """DuckDuckGo HTML endpoint."""

    name = "duckduckgo"

    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        html = await self._fetch_html(client, DDG_HTML_URL, {"q": query})
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        results: List[RawSearchResult] = []
        for block in soup.select("div.result"):
            link = block.select_one("a.result__a")
            if link is None or not link.get("href"):
                continue
            snippet = block.select_one("a.result__snippet") or block.select_one("div.result__snippet")
            results.append(RawSearchResult(
                title=_text(link),
                url=normalize_search_url(link["href"]),
                snippet=_text(snippet),
                engine=self.name,
            ))
        return results


@register_search_provider("duckduckgo_lite")
class DuckDuckGoLiteProvider(SearchProvider):
    """DuckDuckGo Lite endpoint (links only, no snippets)."""

    name = "duckduckgo_lite"

    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        html = await self._fetch_html(client, DDG_LITE_URL, {"q": query})
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        results: List[RawSearchResult] = []
        for link in soup.select("a[rel~=nofollow]"):
            href = link.get("href")
            title = _text(link)
            if not href or not title:
                continue
            results.append(RawSearchResult(
                title=title,
                url=normalize_search_url(href),
                snippet="",
                engine=self.name,
            ))
        return results


@register_search_provider("bing")
class BingHtmlProvider(SearchProvider):
    """Bing results page."""

    name = "bing"

    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        html = await self._fetch_html(client, BING_URL, {"q": query, "setlang": "en-us"})
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        results: List[RawSearchResult] = []
        for block in soup.select("li.b_algo"):
            link = block.select_one("h2 a")
            if link is None or not link.get("href"):
                continue
            snippet = block.select_one(".b_caption p") or block.select_one("p")
            results.append(RawSearchResult(
                title=_text(link),
                url=normalize_search_url(link["href"]),
                snippet=_text(snippet),
                engine=self.name,
            ))
        return results


@register_search_provider("managed_api")
class ManagedSearchProvider(SearchProvider):
    """
    Self-hosted search API.

    POSTs ``{"query": ..., "limit": 10}`` and expects
    ``{"results": [{"title", "url", "snippet"}]}`` back.
    """

    name = "managed_api"

    def is_enabled(self) -> bool:
        return bool((self._settings.managed_api_url or "").strip())

    async def _search(self, query: str, client: httpx.AsyncClient) -> List[RawSearchResult]:
        headers = {"content-type": "application/json"}
        key = self._settings.managed_api_key
        if key is not None and key.get_secret_value():
            headers["authorization"] = f"Bearer {key.get_secret_value()}"
        response = await client.post(
            self._settings.managed_api_url.strip(),
            json={"query": query, "limit": 10},
            headers=headers,
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            logger.debug(f"Managed search API returned HTTP {response.status_code}")
            return []
        return [
            RawSearchResult(
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                snippet=str(item.get("snippet") or ""),
                engine=self.name,
            )
            for item in (response.json().get("results") or [])
        ]


# JavaScript for scraping a rendered DuckDuckGo results page
BROWSER_RESULTS_JS = r'''
(nodes) => nodes.map((node) => {
    const anchor = node.querySelector('a.result__a, h2 a');
    const snippet = node.querySelector('.result__snippet, .snippet');
    const collapse = (value) => String(value || '').replace(/\s+/g, ' ').trim();
    return {
        title: collapse(anchor ? anchor.textContent : ''),
        url: anchor ? (anchor.href || anchor.getAttribute('href') || '') : '',
        snippet: collapse(snippet ? snippet.textContent : ''),
    };
}).filter((item) => item.url)
'''


class BrowserSearchFallback:
    """
    Last-resort search through a throwaway headless Chromium.

    Used only when every HTTP provider came back empty (typically when
    scrapers are served a bot wall).
    """

    name = "browser_fallback"

    def __init__(self, timeout_ms: int = 15000):
        self._timeout_ms = timeout_ms

    async def search(self, query: str) -> List[RawSearchResult]:
        from playwright.async_api import async_playwright

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True)
            try:
                page = await browser.new_page()
                page.set_default_timeout(self._timeout_ms)
                await page.goto(f"{DDG_HTML_URL}?q={quote_plus(query)}", wait_until="domcontentloaded")
                await page.wait_for_timeout(250)
                rows = await page.eval_on_selector_all(".result", BROWSER_RESULTS_JS)
            finally:
                await browser.close()

        return [
            RawSearchResult(
                title=str(row.get("title") or ""),
                url=normalize_search_url(str(row.get("url") or "")),
                snippet=str(row.get("snippet") or ""),
                engine=self.name,
            )
            for row in rows or []
        ]
