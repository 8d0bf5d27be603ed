"""
Vision Resolver - Fallback target resolution when DOM locators find nothing.

Strategies (tried in order):
1. BBOX - The caller already knows where the element is
2. OBSERVATION - Match target text (and role) against the last observation
3. IN_PAGE - Score visible clickable elements by text containment
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from autobrowse.interfaces.web import ActionTarget, BoundingBox, Observation
from autobrowse.utils.retry import clamp

logger = logging.getLogger(__name__)

BBOX_CONFIDENCE = 0.95
OBSERVATION_CONFIDENCE = 0.55
ROLE_MISMATCH_PENALTY = 0.2


class VisionStrategy(Enum):
    """How a vision fallback resolved its target."""
    BBOX = "bbox"
    TEXT_MATCH = "text-match"
    ROLE_TEXT_MATCH = "role-text-match"
    NONE = "none"


@dataclass(frozen=True)
class VisionResolution:
    """A fallback target: a CSS selector, a rectangle, or nothing."""
    confidence: float
    strategy: VisionStrategy
    css: Optional[str] = None
    bbox: Optional[BoundingBox] = None

    @property
    def is_resolved(self) -> bool:
        return self.strategy != VisionStrategy.NONE


UNRESOLVED = VisionResolution(confidence=0.0, strategy=VisionStrategy.NONE)


# JavaScript for in-page candidate ranking
RANK_CLICKABLE_JS = r'''
({ text, role, penalty }) => {
    const normalized = String(text || '').toLowerCase();
    const roleHint = String(role || '').toLowerCase();
    if (!normalized) return null;

    const candidates = Array.from(document.querySelectorAll(
        "button, a, input[type='button'], input[type='submit'], [role='button'], [role='link']"
    ));

    const ranked = candidates.map((el, index) => {
        const tag = el.tagName.toLowerCase();
        const elRole = el.getAttribute('role') || (tag === 'a' ? 'link' : tag);
        const label = String(el.innerText || el.getAttribute('aria-label') || el.value || '')
            .replace(/\s+/g, ' ').trim().toLowerCase();
        if (!label || !label.includes(normalized)) return null;

        const score = 1 - (roleHint && elRole !== roleHint ? penalty : 0);
        const classes = typeof el.className === 'string'
            ? el.className.trim().split(/\s+/).filter(Boolean).slice(0, 2)
            : [];
        let css;
        if (el.id) css = `#${el.id}`;
        else if (classes.length) css = `${tag}.${classes.join('.')}`;
        else css = `${tag}:nth-of-type(${index + 1})`;

        const rect = el.getBoundingClientRect();
        return { score, css, bbox: { x: rect.x, y: rect.y, w: rect.width, h: rect.height } };
    }).filter(Boolean);

    ranked.sort((a, b) => b.score - a.score);
    return ranked[0] || null;
}
'''


class VisionResolver:
    """
    Resolve an action target without a working DOM locator.

    Returns an unresolved result instead of raising; the caller decides
    whether the action fails.
    """

    async def resolve(
        self,
        page: Any,
        target: Optional[ActionTarget],
        last_observation: Optional[Observation],
    ) -> VisionResolution:
        """
        Resolve a target.

        Args:
            page: Live Playwright page (used for in-page ranking)
            target: The action target
            last_observation: Most recent observation of the page, if any

        Returns:
            VisionResolution; strategy is NONE when nothing matched
        """
        if target is None:
            return UNRESOLVED
        if target.bbox is not None:
            return VisionResolution(
                confidence=BBOX_CONFIDENCE,
                strategy=VisionStrategy.BBOX,
                bbox=target.bbox,
            )

        text = (target.text or "").strip().lower()
        role = (target.role or "").strip().lower()
        if not text:
            return UNRESOLVED

        strategy = VisionStrategy.ROLE_TEXT_MATCH if role else VisionStrategy.TEXT_MATCH

        if last_observation is not None:
            for element in last_observation.elements:
                role_ok = not role or element.role.lower() == role
                if role_ok and text in element.text.lower() and element.css_path:
                    logger.debug(f"Vision matched '{text}' from observation: {element.css_path}")
                    return VisionResolution(
                        confidence=OBSERVATION_CONFIDENCE,
                        strategy=strategy,
                        css=element.css_path,
                    )

        try:
            ranked: Optional[Dict[str, Any]] = await page.evaluate(RANK_CLICKABLE_JS, {
                "text": text,
                "role": role,
                "penalty": ROLE_MISMATCH_PENALTY,
            })
        except Exception as e:
            logger.debug(f"In-page ranking failed: {e}")
            return UNRESOLVED

        if not ranked:
            return UNRESOLVED

        box = ranked.get("bbox") or {}
        return VisionResolution(
            confidence=clamp(float(ranked.get("score") or 0), 0.5, 0.8),
            strategy=strategy,
            css=ranked.get("css") or None,
            bbox=BoundingBox(
                x=float(box.get("x", 0)),
                y=float(box.get("y", 0)),
                w=float(box.get("w", 0)),
                h=float(box.get("h", 0)),
            ) if box else None,
        )
