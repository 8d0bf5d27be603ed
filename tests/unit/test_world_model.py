"""
Tests for the per-session world model.
"""

from autobrowse.interfaces.web import Action, Observation


def _obs(n):
    return Observation(url=f"https://example.com/{n}", title=str(n), dom_summary="", visible_text="")


class TestWorldModel:
    """Test bounded logs."""

    def test_goal_and_notes(self):
        """Test goal trimming and empty notes ignored."""
        from autobrowse.core.world_model import WorldModel
        model = WorldModel("conv-1")
        model.set_goal("  find pricing  ")
        model.add_note("")
        model.add_note("   ")
        model.add_note("pricing page found")
        assert model.goal == "find pricing"
        assert model.notes == ["pricing page found"]

    def test_caps(self):
        """Test oldest entries drop past each cap."""
        from autobrowse.core.world_model import MAX_ACTIONS, MAX_NOTES, MAX_OBSERVATIONS, WorldModel
        model = WorldModel("conv-1")
        for i in range(MAX_OBSERVATIONS + 5):
            model.add_observation(_obs(i))
        for i in range(MAX_ACTIONS + 5):
            model.add_action(Action.from_dict({"type": "wait"}), success=i % 2 == 0)
        for i in range(MAX_NOTES + 5):
            model.add_note(f"note {i}")
        assert len(model.observations) == MAX_OBSERVATIONS
        assert model.observations[0].title == "5"
        assert len(model.actions) == MAX_ACTIONS
        assert len(model.notes) == MAX_NOTES
        assert model.notes[0] == "note 5"

    def test_latest_and_summary(self):
        """Test the summary reflects the latest observation."""
        from autobrowse.core.world_model import WorldModel
        model = WorldModel("conv-1")
        assert model.latest_observation() is None
        assert model.summary()["latestUrl"] is None
        model.add_observation(_obs(1))
        model.add_observation(_obs(2))
        summary = model.summary()
        assert summary["latestUrl"] == "https://example.com/2"
        assert summary["observations"] == 2


class TestWorldModelStore:
    """Test the keyed store."""

    def test_for_session_creates_once(self):
        """Test one model per session."""
        from autobrowse.core.world_model import WorldModelStore
        store = WorldModelStore()
        first = store.for_session("a")
        assert store.for_session("a") is first
        assert store.get("b") is None
        store.delete("a")
        assert store.get("a") is None
