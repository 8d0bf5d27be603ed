"""
Exceptions module - Custom exception hierarchy.

This module defines all custom exceptions used throughout Autobrowse,
providing clear error types for different failure scenarios.
"""

from autobrowse.exceptions.base import (
    AutobrowseError,
    ConfigurationError,
)
from autobrowse.exceptions.browser import (
    BrowserError,
    BrowserLaunchError,
    BrowserProviderError,
    NoActiveSessionError,
    NavigationError,
    is_recoverable_provider_error,
)
from autobrowse.exceptions.action import (
    ActionError,
    ActionValidationError,
    ActionExecutionError,
    TargetResolutionError,
    ActionTimeoutError,
)
from autobrowse.exceptions.policy import (
    PolicyError,
    ConfirmationRequired,
    PolicyDeniedError,
)
from autobrowse.exceptions.tool import (
    ToolError,
    UnknownToolError,
    ToolInputError,
)

__all__ = [
    # Base exceptions
    "AutobrowseError",
    "ConfigurationError",
    # Browser exceptions
    "BrowserError",
    "BrowserLaunchError",
    "BrowserProviderError",
    "NoActiveSessionError",
    "NavigationError",
    "is_recoverable_provider_error",
    # Action exceptions
    "ActionError",
    "ActionValidationError",
    "ActionExecutionError",
    "TargetResolutionError",
    "ActionTimeoutError",
    # Policy exceptions
    "PolicyError",
    "ConfirmationRequired",
    "PolicyDeniedError",
    # Tool exceptions
    "ToolError",
    "UnknownToolError",
    "ToolInputError",
]
