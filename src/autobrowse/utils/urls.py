"""
URL utilities - canonical forms, dedupe and URL harvesting from text.
"""

import re
from typing import Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAM_PREFIXES = ("utm_", "fbclid", "gclid", "msclkid")
DEFAULT_PORTS = {"http": 80, "https": 443}
BLOCKED_SOURCE_HOSTS = ("duckduckgo.com", "bing.com")

EXPLICIT_URL_RE = re.compile(r"https?://[^\s)]+", re.IGNORECASE)
TEXT_URL_RE = re.compile(r"https?://[^\s<>\"')]+", re.IGNORECASE)
DOMAIN_HINT_RE = re.compile(
    r"\b((?:https?://)?(?:[a-z0-9-]+\.)+[a-z]{2,24}(?:/[^\s]*)?)",
    re.IGNORECASE,
)
RELATIVE_LINK_RE = re.compile(r"\((/[a-z0-9/_\-?.=&%#]+)\)", re.IGNORECASE)


def canonicalize_url(
    url: str,
    strip_hash: bool = True,
    strip_tracking_params: bool = True,
) -> str:
    """
    Canonical form of a URL.
    
    Lower-cases scheme and host, drops default ports, the fragment, tracking
    query parameters and trailing path slashes. Input that does not parse as an
    absolute URL is returned stripped.
    
    Example:
        >>> canonicalize_url("HTTPS://Example.com:443/a/?utm_source=x#top")
        'https://example.com/a'
    """
    raw = str(url or "").strip()
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return raw
    if not parts.scheme or not parts.netloc:
        return raw
    
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"
    userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""
    netloc = f"{userinfo}@{host}" if userinfo else host
    
    query = parts.query
    if strip_tracking_params and query:
        pairs = parse_qsl(query, keep_blank_values=True)
        kept = [
            (key, value) for key, value in pairs
            if not key.lower().startswith(TRACKING_PARAM_PREFIXES)
        ]
        if len(kept) != len(pairs):
            query = urlencode(kept)
    
    fragment = "" if strip_hash else parts.fragment
    path = parts.path.rstrip("/")
    return urlunsplit((scheme, netloc, path, query, fragment))


def is_http_url(url: str) -> bool:
    """True for absolute http(s) URLs."""
    return bool(re.match(r"^https?://", str(url or "").strip(), re.IGNORECASE))


def dedupe_canonical_urls(urls: Iterable[str]) -> List[str]:
    """Canonicalize, drop non-http and duplicates, keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for value in urls:
        canonical = canonicalize_url(value)
        if not is_http_url(canonical) or canonical in seen:
            continue
        seen.add(canonical)
        out.append(canonical)
    return out


def extract_explicit_urls(text: str) -> List[str]:
    """Absolute http(s) URLs written out in free text."""
    return dedupe_canonical_urls(EXPLICIT_URL_RE.findall(str(text or "")))


def extract_text_urls(text: str) -> List[str]:
    """URLs embedded in page text, stopping at quotes and angle brackets."""
    return dedupe_canonical_urls(TEXT_URL_RE.findall(str(text or "")))


def extract_domain_hint_urls(text: str) -> List[str]:
    """
    URLs and bare domains mentioned in a message.
    
    Bare ``host.tld/path`` tokens are promoted to https.
    
    Example:
        >>> extract_domain_hint_urls("pricing on acme.io please")
        ['https://acme.io']
    """
    urls = []
    for raw in DOMAIN_HINT_RE.findall(str(text or "")):
        trimmed = re.sub(r"[),.;!?]+$", "", raw.strip())
        if not trimmed:
            continue
        urls.append(trimmed if is_http_url(trimmed) else f"https://{trimmed}")
    return dedupe_canonical_urls(urls)


def extract_relative_links(text: str) -> List[str]:
    """Relative ``(/path)`` references found in text, as written."""
    return [match for match in RELATIVE_LINK_RE.findall(str(text or "")) if match.startswith("/")]


def url_host(url: str) -> str:
    """Lower-cased hostname, or an empty string."""
    try:
        return (urlsplit(str(url or "").strip()).hostname or "").lower()
    except ValueError:
        return ""


def site_root(url: str) -> Optional[str]:
    """``scheme://host[:port]`` of an http(s) URL, or None."""
    try:
        parts = urlsplit(str(url or "").strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return canonicalize_url(f"{parts.scheme}://{parts.netloc}")


def is_within_site(candidate_url: str, root: str) -> bool:
    """True when candidate's host is the root host or one of its subdomains."""
    host = url_host(candidate_url)
    root_host = url_host(root)
    if not host or not root_host:
        return False
    return host == root_host or host.endswith(f".{root_host}")


def is_blocked_source_url(url: str) -> bool:
    """
    True for URLs that must not be returned as sources.
    
    Non-http URLs and search-engine hosts' own pages are blocked.
    """
    normalized = canonicalize_url(url)
    if not is_http_url(normalized):
        return True
    host = url_host(normalized)
    if not host:
        return True
    return any(host == blocked or host.endswith(f".{blocked}") for blocked in BLOCKED_SOURCE_HOSTS)


def sanitize_id(value: str, fallback: str = "default", max_length: int = 80) -> str:
    """
    Filesystem-safe identifier: lower-case ``[a-z0-9._-]``, at most max_length chars.
    """
    cleaned = re.sub(r"[^a-z0-9._-]", "-", str(value or "").strip().lower())[:max_length]
    return cleaned or fallback
