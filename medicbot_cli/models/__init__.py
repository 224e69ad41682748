"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as settings, tokens and catalog entries.
"""

from .audio import AudioTrack
from .config import MedicBotSettings, resolve_config
from .tokens import AuthorizationRequest, TokenRecord, TokenResponse

__all__ = [
    "AudioTrack",
    "AuthorizationRequest",
    "MedicBotSettings",
    "TokenRecord",
    "TokenResponse",
    "resolve_config",
]
