"""
Registry module - Component registration and discovery.

This module provides a registry pattern for registering browser
backends and search providers by name.
"""

from autobrowse.registry.registry import (
    ComponentRegistry,
    register_backend,
    register_search_provider,
    get_backend,
    get_search_provider,
    list_backends,
    list_search_providers,
)

__all__ = [
    "ComponentRegistry",
    "register_backend",
    "register_search_provider",
    "get_backend",
    "get_search_provider",
    "list_backends",
    "list_search_providers",
]
