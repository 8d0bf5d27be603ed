"""
Search Module - Multi-provider web search with reranking.
"""

from autobrowse.search.providers import (
    BingHtmlProvider,
    BraveSearchProvider,
    BrowserSearchFallback,
    DuckDuckGoHtmlProvider,
    DuckDuckGoLiteProvider,
    ManagedSearchProvider,
    RawSearchResult,
    SearchProvider,
    normalize_search_url,
)
from autobrowse.search.service import SearchService, freshness_score, rerank

__all__ = [
    "SearchService",
    "SearchProvider",
    "RawSearchResult",
    "BraveSearchProvider",
    "DuckDuckGoHtmlProvider",
    "DuckDuckGoLiteProvider",
    "BingHtmlProvider",
    "ManagedSearchProvider",
    "BrowserSearchFallback",
    "normalize_search_url",
    "freshness_score",
    "rerank",
]
