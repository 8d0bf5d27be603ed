"""
Browsers module - Browser-hosting backends.

Importing this module registers the local, Steel and Browserbase
backends with the component registry.
"""

from autobrowse.browsers.base import ManagedSession, PlaywrightSessionProvider
from autobrowse.browsers.local_playwright import LocalPlaywrightProvider
from autobrowse.browsers.remote import RemoteCDPProvider
from autobrowse.browsers.steel import SteelProvider
from autobrowse.browsers.browserbase import BrowserbaseProvider
from autobrowse.browsers.profiles import ProfileStore, ProfileLease, ProfileAssignmentStore
from autobrowse.browsers.remote_context import RemoteContextStore

__all__ = [
    "ManagedSession",
    "PlaywrightSessionProvider",
    "LocalPlaywrightProvider",
    "RemoteCDPProvider",
    "SteelProvider",
    "BrowserbaseProvider",
    "ProfileStore",
    "ProfileLease",
    "ProfileAssignmentStore",
    "RemoteContextStore",
]
