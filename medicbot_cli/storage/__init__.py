"""
Storage Layer.

This package handles all data persistence: the settings file, the stored
MedicBot tokens, and the downloaded audio cache.
"""

from .audio_cache import AudioCache
from .config_manager import ConfigManager
from .token_store import TokenStore

__all__ = ["AudioCache", "ConfigManager", "TokenStore"]
