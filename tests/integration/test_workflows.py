"""
Integration tests for end-to-end workflows over the in-memory backend.
"""

import pytest

ACME_TEXT = "Check the Acme pricing answer: concrete external data on every plan. " * 5


@pytest.fixture
def acme_pages(local_provider, make_page):
    """Every new page serves the Acme pricing extraction."""
    local_provider.page_factory = lambda: make_page(
        title="Acme",
        observation={"title": "Acme", "visibleText": "Acme pricing"},
        extraction={"title": "Acme", "mainText": ACME_TEXT, "headings": ["Pricing"]},
    )
    return local_provider


class TestBrowseTurn:
    """Test a full planner turn through the tool runtime."""

    @pytest.mark.asyncio
    async def test_site_turn_stops_with_enough_info(self, settings, runtime, acme_pages):
        """Test discovery, visit, extraction and the deterministic judge together."""
        from autobrowse.core.navigation import NavigationPlanner, StopReason
        planner = NavigationPlanner.from_settings(settings, runtime)
        result = await planner.run_turn("conv-1", "Check acme.io pricing")

        assert result.stop_reason == StopReason.ENOUGH_INFO
        assert result.visited_urls == ["https://acme.io"]
        assert result.sources[0]["url"] == "https://acme.io"
        assert result.documents[0].headings == ["Pricing"]
        assert acme_pages.started == ["conv-1"]

        telemetry = runtime.telemetry
        assert telemetry.events("conv-1", "observe")
        assert telemetry.events("conv-1", "extract_structured")
        world = runtime.executor.world_models.get("conv-1")
        assert world.latest_observation().title == "Acme"

    @pytest.mark.asyncio
    async def test_search_turn_uses_search_service(self, settings, runtime, search_service, acme_pages):
        """Test a turn without a site searches and visits the top results."""
        from autobrowse.core.navigation import NavigationPlanner
        planner = NavigationPlanner.from_settings(settings, runtime)
        result = await planner.run_turn("conv-1", "latest python release notes")

        assert search_service.queries
        assert len(result.search_results) == 2
        assert result.iterations >= 1
        assert result.to_dict()["taskFrame"]["skillPlan"][0] == "search_web"


class TestConfirmationFlow:
    """Test the high-risk action round trip."""

    @pytest.mark.asyncio
    async def test_click_needs_then_accepts_token(self, runtime, local_provider, approval_secret):
        """Test a purchase click is held back, then runs with a signed token."""
        from autobrowse.control.security.approval import sign_approval_token

        await runtime.invoke("web_session_start", {}, "conv-1")
        page = local_provider.pages["conv-1"]
        page.texts["Buy now"] = 1
        act = {"action": {"type": "click", "target": {"text": "Buy now"}}}

        held = await runtime.invoke("web_act", act, "conv-1")
        assert held["needsConfirmation"] is True
        assert page.calls == []
        details = held["confirmationRequired"]

        token = sign_approval_token("conv-1", details["actionDigest"], approval_secret)
        done = await runtime.invoke("web_act", dict(act, confirmationToken=token), "conv-1")
        assert done["success"] is True
        assert page.calls[-1] == ("click", "text", "Buy now")

    @pytest.mark.asyncio
    async def test_token_for_other_session_rejected(self, runtime, local_provider, approval_secret):
        """Test a token signed for another session does not unlock the action."""
        from autobrowse.control.security.approval import sign_approval_token

        await runtime.invoke("web_session_start", {}, "conv-1")
        act = {"action": {"type": "submit"}}
        held = await runtime.invoke("web_act", act, "conv-1")
        token = sign_approval_token("conv-2", held["confirmationRequired"]["actionDigest"], approval_secret)

        again = await runtime.invoke("web_act", dict(act, confirmationToken=token), "conv-1")
        assert again["needsConfirmation"] is True
        assert local_provider.pages["conv-1"].calls == []


class TestSessionLifecycle:
    """Test start, reuse and end across tool calls."""

    @pytest.mark.asyncio
    async def test_start_reuse_end(self, runtime, local_provider):
        first = await runtime.invoke("web_session_start", {}, "conv-1")
        second = await runtime.invoke("web_session_start", {}, "conv-1")
        assert first["session"]["backend"] == "local"
        assert second["session"]["sessionId"] == "conv-1"
        assert local_provider.started == ["conv-1"]
        assert local_provider.touched

        assert await runtime.invoke("web_session_end", {}, "conv-1") == {"closed": True}
        assert await runtime.invoke("web_session_end", {}, "conv-1") == {"closed": False}

    @pytest.mark.asyncio
    async def test_start_navigate_extract(self, runtime, acme_pages):
        """Test a start URL, an explicit navigate and extraction agree on the page."""
        started = await runtime.invoke("web_session_start", {"startUrl": "https://example.com/pricing"}, "conv-1")
        assert started["success"] is True

        acted = await runtime.invoke("web_act", {
            "action": {"type": "navigate", "url": "https://Example.com/pricing/?utm_source=mail"},
        }, "conv-1")
        assert acted["success"] is True
        assert acted["data"]["url"] == "https://example.com/pricing"

        extracted = await runtime.invoke("web_extract_structured", {}, "conv-1")
        assert extracted["url"] == "https://example.com/pricing"
        assert len(extracted["mainText"]) > 0
        gotos = [call[1] for call in acme_pages.pages["conv-1"].calls if call[0] == "goto"]
        assert gotos == ["https://example.com/pricing", "https://example.com/pricing"]
