"""
Perception Engine - Turn a live page into an Observation or a StructuredExtraction.

Both reads are a single ``page.evaluate`` round trip; the JavaScript
collects everything and Python only shapes it into dataclasses.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from autobrowse.interfaces.web import (
    Observation,
    ObservationElement,
    ObservationMode,
    PageLink,
    StructuredExtraction,
)
from autobrowse.utils.retry import now_ms
from autobrowse.utils.urls import is_http_url, sanitize_id

logger = logging.getLogger(__name__)

MAX_VISIBLE_TEXT = 12000
MAX_ELEMENTS = 160
MAX_ELEMENT_TEXT = 160
MAX_CSS_PATH = 240
MAX_MAIN_TEXT = 40000
MAX_HEADINGS = 20
MAX_LINKS = 100
MAX_LINK_TEXT = 120
MIN_CONTENT_CHARS = 200

CONTENT_SELECTORS = [
    "main",
    "article",
    "[role='main']",
    "#content",
    "#main-content",
    ".content",
    ".post-content",
    ".entry-content",
    "body",
]

PUBLISHED_SELECTORS = [
    "meta[property='article:published_time']",
    "meta[name='pubdate']",
    "meta[name='publish-date']",
    "meta[itemprop='datePublished']",
    "meta[name='date']",
    "time[datetime]",
]

BYLINE_SELECTORS = [
    "[rel='author']",
    "[itemprop='author']",
    "meta[name='author']",
]


# JavaScript for observation capture
OBSERVE_JS = r'''
({ maxText, maxElements, maxElementText, maxCssPath }) => {
    const collapse = (value) => String(value || '').replace(/\s+/g, ' ').trim();

    function cssPath(el) {
        const parts = [];
        let current = el;
        while (current && current.nodeType === Node.ELEMENT_NODE) {
            const tag = current.tagName.toLowerCase();
            if (current.id) {
                parts.unshift(`${tag}#${current.id}`);
                break;
            }
            const classes = typeof current.className === 'string'
                ? current.className.trim().split(/\s+/).filter(Boolean).slice(0, 2)
                : [];
            parts.unshift(classes.length ? `${tag}.${classes.join('.')}` : tag);
            current = current.parentElement;
        }
        return parts.join(' > ').slice(0, maxCssPath);
    }

    const nodes = Array.from(document.querySelectorAll(
        "button, a, input, textarea, select, [role='button'], [role='link']"
    ));
    const elements = nodes.map((el, index) => {
        const tag = el.tagName.toLowerCase();
        const role = el.getAttribute('role') || (tag === 'a' ? 'link' : tag);
        const text = collapse(el.innerText || el.getAttribute('aria-label') || el.value || '')
            .slice(0, maxElementText);
        return {
            id: el.id || `${role}-${index + 1}`,
            role,
            text,
            cssPath: cssPath(el),
        };
    }).filter((item) => item.cssPath).slice(0, maxElements);

    const visibleText = collapse(document.body ? document.body.innerText : '').slice(0, maxText);
    const headings = document.querySelectorAll('h1, h2, h3').length;

    return {
        url: location.href,
        title: document.title || '',
        visibleText,
        elements,
        headings,
    };
}
'''

# JavaScript for main-content extraction
EXTRACT_JS = r'''
({ contentSelectors, publishedSelectors, bylineSelectors, minChars, limits }) => {
    const collapse = (value) => String(value || '').replace(/\s+/g, ' ').trim();

    let mainText = '';
    for (const selector of contentSelectors) {
        const node = document.querySelector(selector);
        if (!node) continue;
        const text = collapse(node.innerText);
        if (text.length >= minChars || selector === 'body') {
            mainText = text;
            break;
        }
    }

    const readAttr = (node) => {
        if (!node) return '';
        if (node.tagName.toLowerCase() === 'meta') return collapse(node.getAttribute('content'));
        if (node.hasAttribute('datetime')) return collapse(node.getAttribute('datetime'));
        return collapse(node.innerText || node.getAttribute('content'));
    };
    const firstValue = (selectors) => {
        for (const selector of selectors) {
            const value = readAttr(document.querySelector(selector));
            if (value) return value;
        }
        return '';
    };

    const headings = Array.from(document.querySelectorAll('h1, h2, h3'))
        .map((node) => collapse(node.innerText))
        .filter(Boolean)
        .slice(0, limits.headings);

    const links = [];
    for (const anchor of Array.from(document.querySelectorAll('a[href]'))) {
        if (links.length >= limits.links) break;
        const url = anchor.href || '';
        if (!/^https?:\/\//i.test(url)) continue;
        links.push({ text: collapse(anchor.innerText).slice(0, limits.linkText), url });
    }

    return {
        url: location.href,
        title: document.title || '',
        byline: firstValue(bylineSelectors),
        publishedAt: firstValue(publishedSelectors),
        mainText: mainText.slice(0, limits.mainText),
        headings,
        links,
    };
}
'''


class PerceptionEngine:
    """
    Read page state for the agent.

    Example:
        >>> engine = PerceptionEngine(screenshot_dir="./shots")
        >>> obs = await engine.observe(page, ObservationMode.DOM, False, "conv-1")
        >>> obs.dom_summary
        'headings=3, interactive_elements=42, text_chars=5120'
    """

    def __init__(
        self,
        screenshot_dir: str = "./.autobrowse/screenshots",
        max_elements: int = MAX_ELEMENTS,
        max_visible_text: int = MAX_VISIBLE_TEXT,
    ):
        self._screenshot_dir = Path(screenshot_dir)
        self._max_elements = max_elements
        self._max_visible_text = max_visible_text

    @classmethod
    def from_settings(cls, settings: Any) -> "PerceptionEngine":
        perception = settings.perception
        return cls(
            screenshot_dir=perception.screenshot_dir,
            max_elements=perception.max_elements,
            max_visible_text=perception.max_visible_text,
        )

    async def observe(
        self,
        page: Any,
        mode: ObservationMode = ObservationMode.DOM,
        include_screenshot: bool = False,
        session_id: str = "default",
    ) -> Observation:
        """
        Capture an observation of the page.

        Args:
            page: Live Playwright page
            mode: DOM only, or DOM plus a screenshot
            include_screenshot: Take the screenshot (only honored in dom+vision mode)
            session_id: Used to name the screenshot file

        Returns:
            Frozen Observation
        """
        raw: Dict[str, Any] = await page.evaluate(OBSERVE_JS, {
            "maxText": self._max_visible_text,
            "maxElements": self._max_elements,
            "maxElementText": MAX_ELEMENT_TEXT,
            "maxCssPath": MAX_CSS_PATH,
        }) or {}

        elements = tuple(
            ObservationElement(
                id=str(item.get("id") or ""),
                role=str(item.get("role") or ""),
                text=str(item.get("text") or ""),
                css_path=str(item.get("cssPath") or ""),
            )
            for item in (raw.get("elements") or [])[: self._max_elements]
        )
        visible_text = str(raw.get("visibleText") or "")[: self._max_visible_text]
        dom_summary = (
            f"headings={int(raw.get('headings') or 0)}, "
            f"interactive_elements={len(elements)}, "
            f"text_chars={len(visible_text)}"
        )

        screenshot_path = None
        if mode == ObservationMode.DOM_VISION and include_screenshot:
            screenshot_path = await self._screenshot(page, session_id)

        return Observation(
            url=str(raw.get("url") or page.url or ""),
            title=str(raw.get("title") or ""),
            dom_summary=dom_summary,
            visible_text=visible_text,
            elements=elements,
            screenshot_path=screenshot_path,
        )

    async def _screenshot(self, page: Any, session_id: str) -> str:
        self._screenshot_dir.mkdir(parents=True, exist_ok=True)
        path = self._screenshot_dir / f"{sanitize_id(session_id, fallback='session')}-{now_ms()}.png"
        await page.screenshot(path=str(path), full_page=True)
        logger.debug(f"Saved screenshot to {path}")
        return str(path)

    async def extract_structured(self, page: Any, url_override: Optional[str] = None) -> StructuredExtraction:
        """
        Extract the main content of the page.

        Args:
            page: Live Playwright page
            url_override: URL to report instead of the page's own

        Returns:
            StructuredExtraction with text capped at 40,000 chars
        """
        raw: Dict[str, Any] = await page.evaluate(EXTRACT_JS, {
            "contentSelectors": CONTENT_SELECTORS,
            "publishedSelectors": PUBLISHED_SELECTORS,
            "bylineSelectors": BYLINE_SELECTORS,
            "minChars": MIN_CONTENT_CHARS,
            "limits": {
                "headings": MAX_HEADINGS,
                "links": MAX_LINKS,
                "linkText": MAX_LINK_TEXT,
                "mainText": MAX_MAIN_TEXT,
            },
        }) or {}

        links: List[PageLink] = []
        for item in (raw.get("links") or [])[:MAX_LINKS]:
            url = str(item.get("url") or "")
            if is_http_url(url):
                links.append(PageLink(text=str(item.get("text") or ""), url=url))

        return StructuredExtraction(
            url=url_override or str(raw.get("url") or page.url or ""),
            title=str(raw.get("title") or ""),
            main_text=str(raw.get("mainText") or "")[:MAX_MAIN_TEXT],
            headings=[str(h) for h in (raw.get("headings") or [])][:MAX_HEADINGS],
            links=links,
            byline=raw.get("byline") or None,
            published_at=raw.get("publishedAt") or None,
        )
