"""
Tests for navigation judges and their scoring helpers.
"""

import json

import pytest

from autobrowse.interfaces.web import StructuredExtraction, TaskFrame, TaskRelation


def _frame(**overrides):
    data = dict(
        session_id="conv-1",
        turn_id="turn-1",
        relation=TaskRelation.NEW_TASK,
        intent_type="web_assist_task",
        user_objective="Acme pricing plans",
        entities=["Acme"],
        domain_hints=["https://acme.io"],
    )
    data.update(overrides)
    return TaskFrame(**data)


def _doc(text, url="https://acme.io", title="Acme"):
    return StructuredExtraction(url=url, title=title, main_text=text)


FULL_PAGE = "Acme pricing plans: Starter is free, Team is $12 per seat. " * 5


class TestSignals:
    """Test token extraction and coverage."""

    def test_extract_signal_tokens(self):
        """Test short words, stopwords and duplicates are dropped."""
        from autobrowse.core.judge import extract_signal_tokens
        tokens = extract_signal_tokens("The pricing and PLANS for Acme, pricing again")
        assert tokens == ["pricing", "plans", "acme", "again"]

    def test_token_cap(self):
        """Test at most twenty tokens are kept."""
        from autobrowse.core.judge import MAX_SIGNAL_TOKENS, extract_signal_tokens
        text = " ".join(f"word{i:02d}" for i in range(30))
        assert len(extract_signal_tokens(text)) == MAX_SIGNAL_TOKENS

    def test_objective_coverage(self):
        """Test matched and missing tokens against page content."""
        from autobrowse.core.judge import objective_coverage
        coverage = objective_coverage(_frame(), "acme pricing plans", _doc("Acme company blog"))
        assert coverage.matched == ["acme"]
        assert coverage.missing == ["pricing", "plans"]
        assert coverage.total == 3

    def test_coverage_grows_with_content(self):
        """Test adding task words to the page never lowers coverage."""
        from autobrowse.core.judge import extract_signal_tokens, objective_coverage, task_signal_text
        frame = _frame(domain_hints=[])
        message = "acme pricing plans seats discount"
        tokens = extract_signal_tokens(task_signal_text(frame, message))
        previous = -1
        for count in range(len(tokens) + 1):
            doc = _doc("filler " + " ".join(tokens[:count]), url="https://example.org", title="Page")
            coverage = objective_coverage(frame, message, doc)
            assert len(coverage.matched) >= previous
            assert coverage.total == len(tokens)
            previous = len(coverage.matched)
        assert coverage.ratio == 1.0

    def test_structural_detection(self):
        """Test structural endpoints and tasks that ask for them."""
        from autobrowse.core.judge import is_structural_endpoint, wants_structural_endpoints
        assert is_structural_endpoint("https://acme.io/sitemap.xml")
        assert is_structural_endpoint("https://acme.io/.well-known/llms.txt")
        assert not is_structural_endpoint("https://acme.io/sitemap-guide")
        assert wants_structural_endpoints("Does acme publish an llms.txt?")
        assert not wants_structural_endpoints("acme pricing")


class TestSelectBestNextUrl:
    """Test next URL selection."""

    def test_missing_tokens_win(self):
        """Test a later URL mentioning missing tokens beats queue order."""
        from autobrowse.core.judge import select_best_next_url
        remaining = ["https://acme.io/blog", "https://acme.io/pricing"]
        assert select_best_next_url(remaining, ["pricing"]) == "https://acme.io/pricing"

    def test_structural_penalty(self):
        """Test sitemaps lose to ordinary pages unless asked for."""
        from autobrowse.core.judge import select_best_next_url
        remaining = ["https://acme.io/sitemap.xml", "https://acme.io/about"]
        assert select_best_next_url(remaining, []) == "https://acme.io/about"
        assert select_best_next_url(remaining, [], wants_structural=True) == "https://acme.io/sitemap.xml"

    def test_ties_keep_order(self):
        """Test equal scores keep the first URL."""
        from autobrowse.core.judge import select_best_next_url
        assert select_best_next_url(["https://a.io/x", "https://a.io/y"], []) == "https://a.io/x"
        assert select_best_next_url([], ["pricing"]) is None


class TestDeterministicJudge:
    """Test the coverage-based judge."""

    @pytest.mark.asyncio
    async def test_enough_info(self):
        """Test a long page covering the task stops navigation."""
        from autobrowse.core.judge import DeterministicJudge
        decision = await DeterministicJudge().decide(
            _frame(), "acme pricing plans", _doc(FULL_PAGE), ["https://acme.io/blog"],
        )
        assert decision.should_continue is False
        assert decision.next_best_url is None
        assert decision.coverage == 1.0
        assert "acme" in decision.reason

    @pytest.mark.asyncio
    async def test_short_page_continues(self):
        """Test a thin page continues toward the best remaining URL."""
        from autobrowse.core.judge import DeterministicJudge
        decision = await DeterministicJudge().decide(
            _frame(),
            "acme pricing plans",
            _doc("Acme company blog"),
            ["https://acme.io/blog", "https://acme.io/pricing"],
        )
        assert decision.should_continue is True
        assert decision.missing_info == ["pricing", "plans"]
        assert decision.next_best_url == "https://acme.io/pricing"
        assert decision.coverage == 0.3333

    def test_covering_but_short(self):
        """Test full coverage on a tiny page is not enough."""
        from autobrowse.core.judge import DeterministicJudge
        decision = DeterministicJudge().evaluate(_frame(), "", _doc("Acme pricing plans"), [])
        assert decision.should_continue is True
        assert decision.missing_info == []

    def test_to_dict(self):
        """Test the wire shape."""
        from autobrowse.core.judge import NavigationDecision
        data = NavigationDecision(True, "more", ["plans"], "https://acme.io/plans").to_dict()
        assert data == {
            "shouldContinue": True,
            "reason": "more",
            "missingInfo": ["plans"],
            "nextBestUrl": "https://acme.io/plans",
            "coverage": 0.0,
        }


class TestLLMJudge:
    """Test the model-backed judge and its fallback."""

    @pytest.mark.asyncio
    async def test_model_decision_keeps_coverage(self, scripted_llm):
        """Test the model verdict is used with deterministic coverage."""
        from autobrowse.core.judge import LLMJudge
        llm = scripted_llm([json.dumps({
            "shouldContinue": True,
            "reason": "Enterprise tier not listed.",
            "missingInfo": ["enterprise"],
            "nextBestUrl": "https://ACME.io/enterprise/",
        })])
        decision = await LLMJudge(llm).decide(
            _frame(), "acme pricing plans", _doc(FULL_PAGE), ["https://acme.io/enterprise"],
        )
        assert decision.should_continue is True
        assert decision.reason == "Enterprise tier not listed."
        assert decision.missing_info == ["enterprise"]
        assert decision.next_best_url == "https://acme.io/enterprise"
        assert decision.coverage == 1.0
        assert decision.matched_tokens == ["acme", "pricing", "plans"]
        assert len(llm.prompts) == 1

    @pytest.mark.asyncio
    async def test_stop_drops_next_url(self, scripted_llm):
        """Test a stop verdict never carries a next URL."""
        from autobrowse.core.judge import LLMJudge
        llm = scripted_llm(['{"shouldContinue": false, "nextBestUrl": "https://acme.io/x"}'])
        decision = await LLMJudge(llm).decide(_frame(), "", _doc("Acme"), ["https://acme.io/x"])
        assert decision.should_continue is False
        assert decision.next_best_url is None
        assert decision.reason == "Model decision."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        RuntimeError("rate limited"),
        "I think you should keep going.",
        '{"shouldContinue": "yes"}',
    ])
    async def test_falls_back(self, scripted_llm, reply):
        """Test errors and unusable replies give the deterministic decision."""
        from autobrowse.core.judge import LLMJudge
        decision = await LLMJudge(scripted_llm([reply])).decide(
            _frame(), "acme pricing plans", _doc(FULL_PAGE), [],
        )
        assert decision.should_continue is False
        assert decision.reason.startswith("Page covers key objective signals")

    def test_pick_next_url(self):
        """Test canonical matching against remaining URLs."""
        from autobrowse.core.judge import LLMJudge
        remaining = ["https://acme.io/plans?ref=nav"]
        assert LLMJudge._pick_next_url("https://acme.io/plans?ref=nav#top", remaining) == remaining[0]
        assert LLMJudge._pick_next_url("https://acme.io/other/", remaining) == "https://acme.io/other"
        assert LLMJudge._pick_next_url("mailto:sales@acme.io", remaining) is None
        assert LLMJudge._pick_next_url(None, remaining) is None
