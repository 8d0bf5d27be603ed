"""
Tests for session telemetry.
"""

import json


class TestTelemetry:
    """Test the in-memory recorder and JSONL sink."""

    def test_record_and_filter(self):
        """Test events are kept per session and filterable by type."""
        from autobrowse.reporting import Telemetry
        telemetry = Telemetry()
        telemetry.record("conv-1", "action", {"type": "click"})
        telemetry.record("conv-1", "search", {"query": "x"})
        telemetry.record("conv-2", "action")
        assert [e.type for e in telemetry.events("conv-1")] == ["action", "search"]
        assert len(telemetry.events("conv-1", "search")) == 1
        assert telemetry.events("conv-3") == []

    def test_payload_is_copied(self):
        """Test later mutation of the caller's dict does not leak in."""
        from autobrowse.reporting import Telemetry
        telemetry = Telemetry()
        payload = {"n": 1}
        telemetry.record("s", "e", payload)
        payload["n"] = 2
        assert telemetry.events("s")[0].payload == {"n": 1}

    def test_cap_per_session(self):
        """Test the oldest events drop past the cap."""
        from autobrowse.reporting import Telemetry
        telemetry = Telemetry(max_events_per_session=3)
        for i in range(5):
            telemetry.record("s", "tick", {"i": i})
        assert [e.payload["i"] for e in telemetry.events("s")] == [2, 3, 4]

    def test_clear(self):
        """Test clearing a session."""
        from autobrowse.reporting import Telemetry
        telemetry = Telemetry()
        telemetry.record("s", "e")
        telemetry.clear("s")
        assert telemetry.events("s") == []

    def test_jsonl_sink(self, tmp_path):
        """Test events are appended to a per-session JSONL file."""
        from autobrowse.reporting import Telemetry
        telemetry = Telemetry(sink_dir=str(tmp_path / "telemetry"))
        telemetry.record("conv/1", "backend_switch", {"from": "steel", "to": "local"})
        telemetry.record("conv/1", "action")
        lines = (tmp_path / "telemetry" / "conv-1.jsonl").read_text().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["sessionId"] == "conv/1"
        assert first["type"] == "backend_switch"
        assert first["payload"] == {"from": "steel", "to": "local"}
        assert first["timestamp"].endswith("Z")
