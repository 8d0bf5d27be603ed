"""
Tests for the component registry.
"""

import pytest

from autobrowse.registry import ComponentRegistry


@pytest.fixture
def isolated_registry(monkeypatch):
    """Swap the registry tables for empty copies."""
    monkeypatch.setattr(ComponentRegistry, "_backends", {})
    monkeypatch.setattr(ComponentRegistry, "_search_providers", {})
    return ComponentRegistry


class TestBackendRegistration:
    """Test browser backend registration."""

    def test_register_backend(self, isolated_registry, fake_provider_class):
        """Test registering and retrieving a backend."""

        @isolated_registry.register_backend("fake")
        class RegisteredFake(fake_provider_class):
            pass

        assert isolated_registry.list_backends() == ["fake"]
        assert isolated_registry.get_backend("fake") is RegisteredFake

    def test_duplicate_name_rejected(self, isolated_registry, fake_provider_class):
        """Test a second class under the same name raises."""

        isolated_registry.register_backend("fake")(fake_provider_class)

        class Other(fake_provider_class):
            pass

        with pytest.raises(ValueError, match="already registered"):
            isolated_registry.register_backend("fake")(Other)

    def test_reregistering_same_class_is_noop(self, isolated_registry, fake_provider_class):
        """Test module reloads do not trip the duplicate check."""
        isolated_registry.register_backend("fake")(fake_provider_class)
        isolated_registry.register_backend("fake")(fake_provider_class)
        assert isolated_registry.list_backends() == ["fake"]

    def test_unknown_backend(self, isolated_registry):
        """Test unknown backend names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown backend"):
            isolated_registry.get_backend("selenium")


class TestSearchProviderRegistration:
    """Test search provider registration."""

    def test_registration_order_preserved(self, isolated_registry):
        """Test providers list in registration order."""
        from autobrowse.registry import list_search_providers, register_search_provider

        @register_search_provider("zeta")
        class Zeta:
            pass

        @register_search_provider("alpha")
        class Alpha:
            pass

        assert list_search_providers() == ["zeta", "alpha"]

    def test_unknown_provider(self, isolated_registry):
        """Test unknown provider names raise ValueError."""
        from autobrowse.registry import get_search_provider
        with pytest.raises(ValueError, match="Unknown search provider"):
            get_search_provider("altavista")


class TestBuiltinRegistrations:
    """Test the shipped components register themselves."""

    def test_builtin_backends(self):
        """Test local and remote backends are available."""
        import autobrowse.browsers  # noqa: F401
        from autobrowse.registry import list_backends
        assert {"local", "steel", "browserbase"} <= set(list_backends())

    def test_builtin_search_providers(self):
        """Test the search fan-out order."""
        import autobrowse.search.providers  # noqa: F401
        from autobrowse.registry import list_search_providers
        assert list_search_providers() == [
            "brave_api", "duckduckgo", "duckduckgo_lite", "bing", "managed_api",
        ]
