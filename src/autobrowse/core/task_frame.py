"""
Task Frames - What the user is asking for this turn, and how it relates to last turn.

A frame is rebuilt every turn: relation to the previous frame
(new task / continue / correction / acknowledge), the entities in play,
domain hints, and the inputs still missing. The deterministic builder
always produces a frame; an optional LLM planner is merged over it.
"""

import json
import logging
import re
import time
from collections import OrderedDict
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from autobrowse.interfaces.llm import ILLMProvider, Message
from autobrowse.interfaces.web import (
    SearchResult,
    StructuredExtraction,
    TaskFrame,
    TaskRelation,
    utc_now_iso,
)
from autobrowse.llm.json_output import non_empty_string, parse_json_response, string_list
from autobrowse.utils.urls import (
    dedupe_canonical_urls,
    extract_domain_hint_urls,
    extract_explicit_urls,
    is_http_url,
    url_host,
)

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT_RE = re.compile(
    r"^\s*(ok(?:ay)?|alright|got it|understood|thanks|thank you|cool|great|nice|sure)[.!]?\s*$",
    re.IGNORECASE,
)
CORRECTION_RE = re.compile(r"\b(i mean|i meant|correction|typo|that was a typo|meant)\b", re.IGNORECASE)
CORRECTION_PHRASE_RE = re.compile(r"\b(i mean|i meant|correction|typo|that was a typo)\b", re.IGNORECASE)
QUOTED_RE = re.compile(r"\"([^\"]+)\"|'([^']+)'")
TITLE_LIKE_RE = re.compile(r"\b[A-Z][a-zA-Z0-9.&-]{1,30}\b")
WORD_SPLIT_RE = re.compile(r"[^a-z0-9]+")

WH_PREFIXES = ("what", "how", "where", "when")
WEBSITE_CUES = ("website", "site", "domain", "landing page")
PAGE_CUES = ("pricing", "subscription", "plans", "plan")

OFFICIAL_WEBSITE_URL = "official_website_url"
DEFAULT_INTENT = "web_assist_task"
RESOLVED = "resolved"
UNRESOLVED = "unresolved"


def dedupe_strings(values: Iterable[str]) -> List[str]:
    """Case-insensitive dedupe of stripped, non-empty strings, first spelling kept."""
    seen = set()
    out: List[str] = []
    for value in values:
        normalized = str(value or "").strip()
        if not normalized or normalized.lower() in seen:
            continue
        seen.add(normalized.lower())
        out.append(normalized)
    return out


def _hint_url(value: str) -> str:
    return value if is_http_url(value) else f"https://{value}"


# ==================== Deterministic rules ====================

def resolve_task_relation(message: str, previous: Optional[TaskFrame]) -> TaskRelation:
    """
    Classify how a message relates to the previous frame.

    Without a previous frame every message is a new task. Otherwise:
    acknowledgement phrase, then correction phrase, then short follow-ups
    (4 tokens or fewer) continue, then an explicit URL or wh-question
    starts a new task; anything else continues.
    """
    if previous is None:
        return TaskRelation.NEW_TASK
    lower = str(message or "").lower()
    if ACKNOWLEDGEMENT_RE.match(message or ""):
        return TaskRelation.ACKNOWLEDGE
    if CORRECTION_RE.search(lower):
        return TaskRelation.CORRECTION

    tokens = [t for t in WORD_SPLIT_RE.split(lower) if t]
    if len(tokens) <= 4:
        return TaskRelation.CONTINUE

    if extract_explicit_urls(message) or lower.startswith(WH_PREFIXES):
        return TaskRelation.NEW_TASK
    return TaskRelation.CONTINUE


def normalize_task_relation(value: object, fallback: TaskRelation) -> TaskRelation:
    try:
        return TaskRelation(str(value or "").strip().lower())
    except ValueError:
        return fallback


def extract_entity_candidates(message: str) -> List[str]:
    """Quoted phrases, mentioned domains (without www) and Capitalized tokens."""
    cleaned = CORRECTION_PHRASE_RE.sub(" ", str(message or "")).strip()
    if not cleaned:
        return []

    quoted = [(a or b).strip() for a, b in QUOTED_RE.findall(cleaned)]
    domains = [re.sub(r"^www\.", "", url_host(url)) for url in extract_domain_hint_urls(cleaned)]
    title_like = TITLE_LIKE_RE.findall(cleaned)
    return dedupe_strings(quoted + domains + title_like)


def resolve_entities(
    relation: TaskRelation,
    explicit_entities: List[str],
    previous: Optional[TaskFrame],
) -> List[str]:
    """
    Carry entities across turns.

    A correction naming one entity replaces the first unresolved entity of
    the previous frame, or its last entity when all are resolved.
    """
    if previous is None:
        return dedupe_strings(explicit_entities)
    if relation == TaskRelation.ACKNOWLEDGE:
        return list(previous.entities)

    if relation == TaskRelation.CORRECTION:
        if not explicit_entities:
            return list(previous.entities)
        if len(explicit_entities) == 1 and previous.entities:
            updated = list(previous.entities)
            unresolved = [
                index for index, entity in enumerate(updated)
                if previous.entity_status.get(entity) == UNRESOLVED
            ]
            updated[unresolved[0] if unresolved else len(updated) - 1] = explicit_entities[0]
            return dedupe_strings(updated)
        return dedupe_strings(explicit_entities)

    if relation == TaskRelation.CONTINUE:
        if explicit_entities:
            return dedupe_strings(list(previous.entities) + explicit_entities)
        return list(previous.entities)

    return dedupe_strings(explicit_entities)


def resolve_entity_status(entities: List[str], previous: Optional[TaskFrame]) -> Dict[str, str]:
    """Keep a previously known status, otherwise unresolved."""
    known = previous.entity_status if previous else {}
    return {entity: known.get(entity, UNRESOLVED) for entity in entities}


def build_user_objective(
    message: str,
    relation: TaskRelation,
    entities: List[str],
    previous: Optional[TaskFrame],
) -> str:
    trimmed = str(message or "").strip()
    if relation == TaskRelation.ACKNOWLEDGE and previous is not None:
        return previous.user_objective
    if (
        previous is not None
        and relation in (TaskRelation.CONTINUE, TaskRelation.CORRECTION)
        and len(trimmed) <= 80
    ):
        if entities:
            return f"{previous.user_objective} | updated entities: {', '.join(entities)}"
        return previous.user_objective
    return trimmed or "Provide useful web-assisted support."


def build_required_output(message: str, entities: List[str]) -> str:
    if entities:
        return f"Answer the user request for {', '.join(entities)} with concrete external-data details."
    trimmed = str(message or "").strip()
    if not trimmed:
        return "Provide a concise web-assisted answer."
    return f"Provide the exact output the user asked for: {trimmed[:220]}"


def build_skill_plan(has_domain_hint: bool) -> List[str]:
    if has_domain_hint:
        return ["navigate_to_domain", "discover_pages", "extract_structured", "answer"]
    return ["search_web", "rank_sources", "open_pages", "extract_structured", "answer"]


def should_ask_for_website_url(message: str, frame: Optional[TaskFrame] = None) -> bool:
    """True for site-specific page requests ("pricing on their website") with no domain to go on."""
    if frame is not None and frame.domain_hints:
        return False
    lower = str(message or "").lower()
    return any(cue in lower for cue in WEBSITE_CUES) and any(cue in lower for cue in PAGE_CUES)


def finalize_task_frame(
    frame: TaskFrame,
    docs: List[StructuredExtraction],
    search_results: Optional[List[SearchResult]] = None,
) -> TaskFrame:
    """
    Mark entities resolved when they appear in what the turn gathered.

    Returns a new frame; the input is not modified.
    """
    blob = " ".join(
        [f"{doc.title} {doc.url} {doc.main_text}" for doc in docs]
        + [f"{r.title} {r.url} {r.snippet}" for r in (search_results or [])]
    ).lower()

    status: Dict[str, str] = {}
    for entity in frame.entities:
        token = entity.lower()
        if len(token) > 1 and token in blob:
            status[entity] = RESOLVED
        else:
            status[entity] = frame.entity_status.get(entity, UNRESOLVED)

    missing = list(frame.missing_inputs)
    if OFFICIAL_WEBSITE_URL in missing and frame.domain_hints:
        missing = [item for item in missing if item != OFFICIAL_WEBSITE_URL]

    return replace(frame, entity_status=status, missing_inputs=missing, updated_at=utc_now_iso())


# ==================== Builder ====================

PLANNER_PROMPT = """You are a web-assist task planner.
Infer the task context without hardcoded intent categories.
Keep continuity with the previous frame when the user is correcting or continuing.
If the user message is acknowledgement-only, relation must be 'acknowledge'.
Return JSON only with keys:
relation, intentType, userObjective, entities, domainHints, requiredOutput, missingInputs, skillPlan
Allowed relation values: new_task, continue, correction, acknowledge.
missingInputs should include 'official_website_url' only when the task truly depends on navigating a specific site and no reliable domain is available.

User message: {message}

Previous frame: {previous}

Provided URLs: {urls}"""


class TaskFrameBuilder:
    """
    Build the frame for a turn.

    Example:
        >>> builder = TaskFrameBuilder()
        >>> frame = await builder.build("conv-1", "turn-1", "Compare plans on acme.io", None, ["https://acme.io"])
        >>> frame.skill_plan[0]
        'navigate_to_domain'
    """

    def __init__(self, llm: Optional[ILLMProvider] = None, max_tokens: int = 600):
        self._llm = llm
        self._max_tokens = max_tokens

    async def build(
        self,
        session_id: str,
        turn_id: str,
        message: str,
        previous: Optional[TaskFrame] = None,
        provided_urls: Optional[List[str]] = None,
    ) -> TaskFrame:
        """
        Build a frame; the LLM planner's fields win where it returns usable values.

        Any planner failure leaves the deterministic frame in place.
        """
        provided_urls = list(provided_urls or [])
        frame = self.build_deterministic(session_id, turn_id, message, previous, provided_urls)
        if self._llm is None:
            return frame
        try:
            return await self._merge_llm(frame, message, previous, provided_urls)
        except Exception as e:
            logger.warning(f"Task planner failed, using deterministic frame: {e}")
            return frame

    def build_deterministic(
        self,
        session_id: str,
        turn_id: str,
        message: str,
        previous: Optional[TaskFrame],
        provided_urls: List[str],
    ) -> TaskFrame:
        relation = resolve_task_relation(message, previous)
        entities = resolve_entities(relation, extract_entity_candidates(message), previous)
        carried = previous.domain_hints if previous is not None and relation != TaskRelation.NEW_TASK else []
        domain_hints = dedupe_canonical_urls(list(provided_urls) + list(carried))
        missing = (
            [OFFICIAL_WEBSITE_URL]
            if not domain_hints and should_ask_for_website_url(message)
            else []
        )
        intent = (
            previous.intent_type
            if previous is not None and relation != TaskRelation.NEW_TASK
            else DEFAULT_INTENT
        )
        return TaskFrame(
            session_id=session_id,
            turn_id=turn_id,
            relation=relation,
            intent_type=intent,
            user_objective=build_user_objective(message, relation, entities, previous),
            entities=entities,
            domain_hints=domain_hints,
            required_output=build_required_output(message, entities),
            missing_inputs=missing,
            skill_plan=build_skill_plan(bool(domain_hints)),
            entity_status=resolve_entity_status(entities, previous),
        )

    async def _merge_llm(
        self,
        frame: TaskFrame,
        message: str,
        previous: Optional[TaskFrame],
        provided_urls: List[str],
    ) -> TaskFrame:
        prompt = PLANNER_PROMPT.format(
            message=message,
            previous=json.dumps(previous.to_dict() if previous else None)[:2000],
            urls=json.dumps(provided_urls),
        )
        response = await self._llm.complete([Message.user(prompt)], temperature=0.0, max_tokens=self._max_tokens)
        parsed = parse_json_response(response.content)
        if parsed is None:
            logger.debug("Task planner returned no JSON; keeping deterministic frame")
            return frame

        relation = normalize_task_relation(parsed.get("relation"), frame.relation)
        explicit = string_list(parsed.get("entities")) or frame.entities
        entities = resolve_entities(relation, explicit, previous)
        carried = previous.domain_hints if previous is not None and relation != TaskRelation.NEW_TASK else []
        domain_hints = dedupe_canonical_urls(
            list(provided_urls)
            + [_hint_url(value) for value in string_list(parsed.get("domainHints"))]
            + list(carried)
        )
        missing = dedupe_strings(
            string_list(parsed.get("missingInputs"))
            + ([OFFICIAL_WEBSITE_URL] if not domain_hints and should_ask_for_website_url(message) else [])
        )
        if domain_hints:
            missing = [item for item in missing if item != OFFICIAL_WEBSITE_URL]
        skill_plan = string_list(parsed.get("skillPlan"))[:8] or build_skill_plan(bool(domain_hints))

        return replace(
            frame,
            relation=relation,
            intent_type=non_empty_string(parsed.get("intentType")) or frame.intent_type,
            user_objective=(
                non_empty_string(parsed.get("userObjective"))
                or build_user_objective(message, relation, entities, previous)
            ),
            entities=entities,
            domain_hints=domain_hints,
            required_output=(
                non_empty_string(parsed.get("requiredOutput"))
                or build_required_output(message, entities)
            ),
            missing_inputs=missing,
            skill_plan=skill_plan,
            entity_status=resolve_entity_status(entities, previous),
        )


# ==================== Arena ====================

class TaskFrameArena:
    """
    Latest task frame per session, bounded by count and age.

    Least-recently-used sessions are evicted past max_entries; frames
    older than ttl_seconds are dropped on access.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._frames: "OrderedDict[str, Tuple[float, TaskFrame]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._frames)

    def get(self, session_id: str) -> Optional[TaskFrame]:
        entry = self._frames.get(session_id)
        if entry is None:
            return None
        stored_at, frame = entry
        if self._clock() - stored_at > self._ttl:
            del self._frames[session_id]
            return None
        self._frames.move_to_end(session_id)
        return frame

    def put(self, frame: TaskFrame) -> None:
        self._frames[frame.session_id] = (self._clock(), frame)
        self._frames.move_to_end(frame.session_id)
        self.evict()

    def evict(self, session_id: Optional[str] = None) -> int:
        """
        Drop one session's frame, or expired and overflow frames.

        Returns:
            Number of frames removed
        """
        if session_id is not None:
            return 1 if self._frames.pop(session_id, None) is not None else 0

        removed = 0
        now = self._clock()
        for key in [k for k, (stored_at, _) in self._frames.items() if now - stored_at > self._ttl]:
            del self._frames[key]
            removed += 1
        while len(self._frames) > self._max_entries:
            self._frames.popitem(last=False)
            removed += 1
        return removed
