"""
Configuration module - Centralized settings management.

This module provides type-safe configuration management using Pydantic,
supporting environment variables, YAML files, and CLI arguments.

Usage:
    from autobrowse.config import get_settings, load_config
    
    # Get global settings (loaded once)
    settings = get_settings()
    
    # Or load fresh settings with overrides
    settings = load_config(backend={"preference": "local"})

Environment Variables:
    AUTOBROWSE__BACKEND__PREFERENCE=steel
    AUTOBROWSE__NAVIGATION__SETTLE_MS=800
    AUTOBROWSE__POLICY__CONFIRM_SECRET=...
    STEEL_API_KEY=...
    BROWSERBASE_API_KEY=... / BROWSERBASE_PROJECT_ID=...
    BRAVE_SEARCH_API_KEY=...
"""

from autobrowse.config.settings import (
    Settings,
    BrowserSettings,
    BackendSettings,
    NavigationSettings,
    SearchSettings,
    PolicySettings,
    ToolSettings,
    PerceptionSettings,
    LLMSettings,
    LoggingSettings,
)
from autobrowse.config.loader import ConfigLoader, load_config

# Global settings singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).
    
    Settings are loaded once from environment variables and config files.
    Call reset_settings() to reload.
    
    Returns:
        Global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (forces reload on next get_settings())."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "BrowserSettings",
    "BackendSettings",
    "NavigationSettings",
    "SearchSettings",
    "PolicySettings",
    "ToolSettings",
    "PerceptionSettings",
    "LLMSettings",
    "LoggingSettings",
    "ConfigLoader",
    "load_config",
    "get_settings",
    "reset_settings",
]
