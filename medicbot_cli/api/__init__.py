"""
MedicBot API Layer.

This package handles all communication with the MedicBot backend and the
Discord authorization flow.
"""

from .auth import DiscordAuthorizer
from .client import MedicBotAPIClient
from .redirect import BrowserRedirectHandler, RedirectHandler
from .token_manager import TokenLifecycleManager

__all__ = [
    "BrowserRedirectHandler",
    "DiscordAuthorizer",
    "MedicBotAPIClient",
    "RedirectHandler",
    "TokenLifecycleManager",
]
