"""
Tests for the exception hierarchy.
"""

import pytest


class TestBaseException:
    """Test AutobrowseError."""

    def test_message_only(self):
        """Test string form without details."""
        from autobrowse.exceptions import AutobrowseError
        error = AutobrowseError("something broke")
        assert str(error) == "something broke"
        assert error.details == {}

    def test_message_with_details(self):
        """Test details are appended to the string form."""
        from autobrowse.exceptions import AutobrowseError
        error = AutobrowseError("bad", {"key": "value"})
        assert "bad" in str(error)
        assert "key" in str(error)

    def test_hierarchy(self):
        """Test every error derives from AutobrowseError."""
        from autobrowse.exceptions import (
            AutobrowseError,
            BrowserProviderError,
            ConfirmationRequired,
            NoActiveSessionError,
            TargetResolutionError,
            ToolInputError,
        )
        for cls in (BrowserProviderError, ConfirmationRequired, NoActiveSessionError,
                    TargetResolutionError, ToolInputError):
            assert issubclass(cls, AutobrowseError)


class TestBrowserExceptions:
    """Test session and backend errors."""

    def test_no_active_session_message(self):
        """Test the restart hint is part of the message."""
        from autobrowse.exceptions import NoActiveSessionError
        error = NoActiveSessionError("conv-1")
        assert "conv-1" in error.message
        assert "web_session_start" in error.message
        assert error.session_id == "conv-1"

    def test_provider_error_flags(self):
        """Test provider error attributes."""
        from autobrowse.exceptions import BrowserProviderError
        error = BrowserProviderError("quota", recoverable=True, quota_limited=True, status_code=429, backend="steel")
        assert error.recoverable is True
        assert error.quota_limited is True
        assert error.details["status_code"] == 429

    @pytest.mark.parametrize("error,expected", [
        ("BrowserProviderError-recoverable", True),
        ("BrowserProviderError-fatal", False),
        ("connection reset by peer", True),
        ("Timeout 30000ms exceeded", True),
        ("invalid api key", False),
    ])
    def test_is_recoverable(self, error, expected):
        """Test recoverability classification."""
        from autobrowse.exceptions import BrowserProviderError, is_recoverable_provider_error
        if error == "BrowserProviderError-recoverable":
            exc = BrowserProviderError("boom", recoverable=True)
        elif error == "BrowserProviderError-fatal":
            exc = BrowserProviderError("boom timeout", recoverable=False)
        else:
            exc = RuntimeError(error)
        assert is_recoverable_provider_error(exc) is expected


class TestPolicyExceptions:
    """Test policy errors."""

    def test_confirmation_required_to_dict(self):
        """Test the confirmation wire shape."""
        from autobrowse.exceptions import ConfirmationRequired
        error = ConfirmationRequired("conv-1", "abc123", "autobrowse approve conv-1 abc123")
        assert error.to_dict() == {
            "actionDigest": "abc123",
            "sessionId": "conv-1",
            "commandHint": "autobrowse approve conv-1 abc123",
        }
        assert error.risk == "high"


class TestToolExceptions:
    """Test tool-surface errors."""

    def test_unknown_tool_message(self):
        """Test the unknown tool message."""
        from autobrowse.exceptions import UnknownToolError
        error = UnknownToolError("web_fly")
        assert error.message == "Tool not found: web_fly"
        assert error.tool_name == "web_fly"

    def test_tool_input_error_parameter(self):
        """Test the offending parameter is recorded."""
        from autobrowse.exceptions import ToolInputError
        error = ToolInputError("'query' is required", "web_search", "query")
        assert error.parameter == "query"
        assert error.details["tool"] == "web_search"
