"""
Candidate URL discovery - site-direct page ranking and search-query planning.

Pure functions used by the navigation planner to decide which pages of a
known site (or which search hits) are worth opening for a task.
"""

import re
from typing import List

from autobrowse.core.judge import extract_signal_tokens, wants_structural_endpoints
from autobrowse.interfaces.web import SearchResult, StructuredExtraction, TaskFrame
from autobrowse.utils.urls import (
    dedupe_canonical_urls,
    extract_relative_links,
    extract_text_urls,
    is_within_site,
    url_host,
)

PATH_HINTS = (
    (re.compile(r"\b(pricing|price|plans?|subscription|billing)\b"), ("pricing", "plans", "subscription", "billing")),
    (re.compile(r"\b(contact|support|help|email|phone)\b"), ("contact", "support", "help")),
    (re.compile(r"\b(sign ?up|register|create account|onboard)\b"), ("signup", "register", "get-started")),
    (re.compile(r"\b(docs?|api|developer)\b"), ("docs", "api", "developers")),
)
SITE_KEYWORD_HINTS = (
    "pricing", "price", "plans", "plan", "subscription", "billing",
    "faq", "about", "features", "product", "docs", "api",
)
MODEL_DOC_MARKERS = ("llms.txt", "model context", "prompt")

OBJECTIVE_PATH_RE = re.compile(r"\b(pricing|plans?|subscription|billing|contact|support|docs?|api)\b")
PRICING_PATH_RE = re.compile(r"/pricing|/plans?|/subscription|/billing", re.IGNORECASE)
CONTACT_PATH_RE = re.compile(r"/contact|/support|/faq", re.IGNORECASE)
ABOUT_PATH_RE = re.compile(r"/about", re.IGNORECASE)
STRUCTURAL_PATH_RE = re.compile(r"/(?:sitemap|llms\.txt|\.well-known/llms\.txt)", re.IGNORECASE)
HOW_TO_RE = re.compile(r"\bhow-to\b")
WORD_SPLIT_RE = re.compile(r"[^a-z0-9]+")

MAX_QUERY_CHARS = 220


def _tokens(text: str, min_length: int) -> List[str]:
    return [token for token in WORD_SPLIT_RE.split(str(text or "").lower()) if len(token) >= min_length]


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


# ==================== Site discovery ====================

def build_direct_path_hints(root: str, message: str) -> List[str]:
    """Guess well-known paths (``/pricing``, ``/contact``...) the task points at."""
    lower = str(message or "").lower()
    hints: List[str] = []
    for pattern, paths in PATH_HINTS:
        if pattern.search(lower):
            hints.extend(f"{root.rstrip('/')}/{path}" for path in paths)
    return dedupe_canonical_urls(hints)


def prioritize_structural_endpoints(root: str, message: str) -> List[str]:
    """Structural endpoints in fetch order: llms.txt first when the task is about model docs."""
    lower = str(message or "").lower()
    base = root.rstrip("/")
    if any(marker in lower for marker in MODEL_DOC_MARKERS):
        return [f"{base}/llms.txt", f"{base}/.well-known/llms.txt", f"{base}/sitemap.xml"]
    return [f"{base}/sitemap.xml", f"{base}/sitemap_index.xml", f"{base}/llms.txt"]


def collect_discovery_links(doc: StructuredExtraction, root: str) -> List[str]:
    """Same-site URLs from a page's links, URLs in its text and ``(/path)`` references."""
    base = root.rstrip("/")
    from_links = [link.url for link in doc.links]
    from_text = extract_text_urls(doc.main_text)
    from_relative = [f"{base}{path}" for path in extract_relative_links(doc.main_text)]
    merged = dedupe_canonical_urls(from_links + from_text + from_relative)
    return [url for url in merged if is_within_site(url, root)]


def rank_site_urls(urls: List[str], message: str, root: str) -> List[str]:
    """
    Order same-site candidates by how well their path fits the task.

    Scoring::

        site root                               +2.5
        task keyword also in URL (per hint)     +2.0
        task token (4+ chars) in URL            +0.4
        /pricing, /plans, /subscription...      +2.6
        /contact, /support, /faq                +1.3
        /about                                  -0.4
        structural endpoint (unless asked for)  -3.5
    """
    lower_task = str(message or "").lower()
    wants_structural = wants_structural_endpoints(lower_task)
    task_tokens = _tokens(lower_task, 4)
    root_key = root.rstrip("/")

    scored = []
    for url in dedupe_canonical_urls(urls):
        lower = url.lower()
        score = 0.0
        if url.rstrip("/") == root_key:
            score += 2.5
        score += sum(2.0 for hint in SITE_KEYWORD_HINTS if hint in lower_task and hint in lower)
        score += sum(0.4 for token in task_tokens if token in lower)
        if PRICING_PATH_RE.search(lower):
            score += 2.6
        if CONTACT_PATH_RE.search(lower):
            score += 1.3
        if ABOUT_PATH_RE.search(lower):
            score -= 0.4
        if not wants_structural and STRUCTURAL_PATH_RE.search(lower):
            score -= 3.5
        scored.append((score, url))

    scored.sort(key=lambda entry: entry[0], reverse=True)
    return [url for _, url in scored]


def has_objective_candidate(urls: List[str], message: str) -> bool:
    """True when some URL already looks like the page the task wants."""
    tokens = extract_signal_tokens(message)
    for url in urls:
        lower = url.lower()
        if OBJECTIVE_PATH_RE.search(lower):
            return True
        if any(token in lower for token in tokens):
            return True
    return False


# ==================== Search planning ====================

def build_search_query(frame: TaskFrame, message: str) -> str:
    """
    Search query for a task.

    Pending entities lead; with a domain hint the query is scoped
    with ``site:host``.
    """
    pending = [entity for entity in frame.entities if frame.entity_status.get(entity) != "resolved"]
    entities = pending or list(frame.entities)
    objective = frame.required_output or frame.user_objective or message

    hosts = [url_host(hint) for hint in frame.domain_hints]
    host = next((_strip_www(h) for h in hosts if h), "")
    if host:
        return f"site:{host} {objective}"[:MAX_QUERY_CHARS]

    query = f"{' '.join(entities)} {objective}".strip() or str(message or "").strip()
    return query[:MAX_QUERY_CHARS]


def rank_search_results_for_task(
    results: List[SearchResult],
    frame: TaskFrame,
    query: str,
) -> List[SearchResult]:
    """
    Re-order search hits for this task.

    Keeps the search service's order as a prior, boosts task tokens and
    hinted domains, and demotes how-to pages unless the task asks "how".
    """
    tokens = list(dict.fromkeys(_tokens(
        " ".join([frame.required_output, frame.user_objective, query, " ".join(frame.entities)]),
        3,
    )))
    domain_hosts = [_strip_www(host) for host in (url_host(hint) for hint in frame.domain_hints) if host]
    asks_how = "how" in tokens

    scored = []
    for index, result in enumerate(results):
        blob = f"{result.title} {result.url} {result.snippet}".lower()
        score = max(0.0, 6 - index * 0.35)
        score += sum(0.4 for token in tokens if token in blob)
        score += sum(4.5 for host in domain_hosts if host in blob)
        if HOW_TO_RE.search(blob) and not asks_how:
            score -= 1.4
        scored.append((score, index, result))

    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return [result for _, _, result in scored]
