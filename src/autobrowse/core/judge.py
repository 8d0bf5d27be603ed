"""
Navigation Judges - Decide after each page whether the turn has enough.

DeterministicJudge scores objective coverage over significant tokens;
LLMJudge asks a model the same question and falls back to the
deterministic decision whenever the model is unavailable or unusable.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from autobrowse.interfaces.llm import ILLMProvider, Message
from autobrowse.interfaces.web import StructuredExtraction, TaskFrame
from autobrowse.llm.json_output import non_empty_string, parse_json_response, string_list
from autobrowse.utils.urls import canonicalize_url, is_http_url

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "the", "and", "for", "with", "that", "from", "this", "have", "will", "your",
    "about", "into", "what", "when", "where", "which", "whose", "their", "there",
    "please", "user", "request", "details", "provide", "output", "exact", "latest",
})
TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")
STRUCTURAL_ENDPOINT_RE = re.compile(r"/(?:sitemap(?:_index)?\.xml|llms\.txt|\.well-known/llms\.txt)$", re.IGNORECASE)
WELL_KNOWN_PATH_RE = re.compile(
    r"\b(pricing|plans?|subscription|billing|contact|support|faq|docs?|features?)\b",
    re.IGNORECASE,
)

STRUCTURAL_MARKERS = ("sitemap", "llms.txt", "robots.txt")

MAX_SIGNAL_TOKENS = 20
MAX_MISSING_INFO = 6
ENOUGH_COVERAGE = 0.62
ENOUGH_TEXT_CHARS = 220


def extract_signal_tokens(text: str) -> List[str]:
    """Distinct lower-case tokens of 4+ chars, stopwords removed, at most 20."""
    out: List[str] = []
    for token in TOKEN_SPLIT_RE.split(str(text or "").lower()):
        if len(token) < 4 or token in STOPWORDS or token in out:
            continue
        out.append(token)
        if len(out) >= MAX_SIGNAL_TOKENS:
            break
    return out


def task_signal_text(frame: TaskFrame, message: str) -> str:
    return " ".join([frame.required_output, frame.user_objective, " ".join(frame.entities), message])


@dataclass
class ObjectiveCoverage:
    """Which task tokens a page mentions."""
    matched: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.missing)

    @property
    def ratio(self) -> float:
        return len(self.matched) / self.total if self.total else 0.0


def objective_coverage(frame: TaskFrame, message: str, doc: StructuredExtraction) -> ObjectiveCoverage:
    tokens = extract_signal_tokens(task_signal_text(frame, message))
    content = " ".join([doc.url, doc.title, " ".join(doc.headings), doc.main_text]).lower()
    coverage = ObjectiveCoverage()
    for token in tokens:
        (coverage.matched if token in content else coverage.missing).append(token)
    return coverage


def is_structural_endpoint(url: str) -> bool:
    """sitemap.xml / sitemap_index.xml / llms.txt style endpoints."""
    return bool(STRUCTURAL_ENDPOINT_RE.search(str(url or "")))


def wants_structural_endpoints(text: str) -> bool:
    """True when the task itself asks about sitemaps, llms.txt or robots.txt."""
    lower = str(text or "").lower()
    return any(marker in lower for marker in STRUCTURAL_MARKERS)


def select_best_next_url(
    remaining: List[str],
    missing_tokens: List[str],
    wants_structural: bool = False,
) -> Optional[str]:
    """
    Pick the queued URL most likely to fill the gaps.

    Earlier queue positions get a prior (4 - 0.25 * index); each missing
    token in the URL adds 1.25 and well-known info paths add 0.8.
    Structural endpoints lose 3.2 unless the task asked for them.
    Ties keep queue order.
    """
    best_url: Optional[str] = None
    best_score = float("-inf")
    tokens = [token for token in missing_tokens if len(token) >= 3]

    for index, url in enumerate(remaining):
        lower = url.lower()
        score = max(0.0, 4 - index * 0.25)
        if not wants_structural and is_structural_endpoint(lower):
            score -= 3.2
        score += sum(1.25 for token in tokens if token in lower)
        if WELL_KNOWN_PATH_RE.search(lower):
            score += 0.8
        if score > best_score:
            best_score = score
            best_url = url
    return best_url


@dataclass
class NavigationDecision:
    """
    Judge verdict for one page.

    Attributes:
        should_continue: Whether to keep browsing
        reason: Short human-readable explanation
        missing_info: Task tokens (or model notes) the page lacked
        next_best_url: URL to visit next, only when continuing
        matched_tokens: Task tokens the page mentioned
        coverage: matched / total task tokens
    """
    should_continue: bool
    reason: str
    missing_info: List[str] = field(default_factory=list)
    next_best_url: Optional[str] = None
    matched_tokens: List[str] = field(default_factory=list)
    coverage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "shouldContinue": self.should_continue,
            "reason": self.reason,
            "missingInfo": list(self.missing_info),
            "nextBestUrl": self.next_best_url,
            "coverage": self.coverage,
        }


class DeterministicJudge:
    """
    Coverage-based judge.

    Stops when the page has at least 220 chars of main text and mentions
    at least 62% of the task's signal tokens.
    """

    async def decide(
        self,
        frame: TaskFrame,
        message: str,
        doc: StructuredExtraction,
        remaining_urls: List[str],
    ) -> NavigationDecision:
        return self.evaluate(frame, message, doc, remaining_urls)

    def evaluate(
        self,
        frame: TaskFrame,
        message: str,
        doc: StructuredExtraction,
        remaining_urls: List[str],
    ) -> NavigationDecision:
        coverage = objective_coverage(frame, message, doc)
        enough = len(doc.main_text) >= ENOUGH_TEXT_CHARS and coverage.ratio >= ENOUGH_COVERAGE

        if enough:
            reason = (
                f"Page covers key objective signals ({', '.join(coverage.matched[:4])})."
                if coverage.matched
                else "Page contains enough structured detail for the requested output."
            )
        else:
            reason = (
                f"Current page is missing key details ({', '.join(coverage.missing[:4])})."
                if coverage.missing
                else "Current page does not yet provide enough concrete details for the requested output."
            )

        return NavigationDecision(
            should_continue=not enough,
            reason=reason,
            missing_info=coverage.missing[:MAX_MISSING_INFO],
            next_best_url=None if enough else select_best_next_url(
                remaining_urls,
                coverage.missing,
                wants_structural=wants_structural_endpoints(f"{frame.user_objective} {message}"),
            ),
            matched_tokens=coverage.matched,
            coverage=round(coverage.ratio, 4),
        )


JUDGE_PROMPT = """You are a web navigation judge.
Decide whether the current page already has enough information for the user's objective.
Return JSON only with keys: shouldContinue (boolean), reason (string), missingInfo (string[]), nextBestUrl (string or null).
nextBestUrl should be one of the remaining URLs when possible.

Objective: {objective}
Required output: {required_output}
User message: {message}

Current page:
url: {url}
title: {title}
headings: {headings}
text: {text}

Remaining URLs: {remaining}"""


class LLMJudge:
    """
    Model-backed judge with the deterministic judge as fallback.

    Matched tokens and coverage on the returned decision always come from
    the deterministic evaluation so stagnation tracking stays model-independent.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        fallback: Optional[DeterministicJudge] = None,
        max_tokens: int = 600,
    ):
        self._llm = llm
        self._fallback = fallback or DeterministicJudge()
        self._max_tokens = max_tokens

    async def decide(
        self,
        frame: TaskFrame,
        message: str,
        doc: StructuredExtraction,
        remaining_urls: List[str],
    ) -> NavigationDecision:
        baseline = self._fallback.evaluate(frame, message, doc, remaining_urls)
        try:
            decision = await self._ask(frame, message, doc, remaining_urls)
        except Exception as e:
            logger.warning(f"LLM judge failed, using deterministic decision: {e}")
            return baseline
        if decision is None:
            return baseline

        decision.matched_tokens = baseline.matched_tokens
        decision.coverage = baseline.coverage
        return decision

    async def _ask(
        self,
        frame: TaskFrame,
        message: str,
        doc: StructuredExtraction,
        remaining_urls: List[str],
    ) -> Optional[NavigationDecision]:
        prompt = JUDGE_PROMPT.format(
            objective=frame.user_objective,
            required_output=frame.required_output,
            message=message,
            url=doc.url,
            title=doc.title,
            headings=json.dumps(doc.headings[:12]),
            text=doc.main_text[:3500],
            remaining=json.dumps(remaining_urls[:12]),
        )
        response = await self._llm.complete([Message.user(prompt)], temperature=0.0, max_tokens=self._max_tokens)
        parsed = parse_json_response(response.content)
        if parsed is None or not isinstance(parsed.get("shouldContinue"), bool):
            logger.debug("LLM judge reply unusable; falling back")
            return None

        should_continue = parsed["shouldContinue"]
        return NavigationDecision(
            should_continue=should_continue,
            reason=non_empty_string(parsed.get("reason")) or "Model decision.",
            missing_info=string_list(parsed.get("missingInfo"))[:MAX_MISSING_INFO],
            next_best_url=(
                self._pick_next_url(parsed.get("nextBestUrl"), remaining_urls)
                if should_continue else None
            ),
        )

    @staticmethod
    def _pick_next_url(proposed: object, remaining_urls: List[str]) -> Optional[str]:
        candidate = non_empty_string(proposed)
        if candidate is None:
            return None
        normalized = canonicalize_url(candidate)
        for url in remaining_urls:
            if canonicalize_url(url) == normalized:
                return url
        return normalized if is_http_url(normalized) else None
