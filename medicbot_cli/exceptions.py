"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MedicBotError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MedicBotError):
    """Raised for missing or invalid settings, such as an absent Discord client ID."""


class AuthorizationCancelled(MedicBotError):
    """Raised when the user denies or abandons the Discord consent screen."""


class TokenExchangeError(MedicBotError):
    """Raised when the backend rejects a Discord authorization code."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        message = f"MedicBot token exchange failed with code {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)


class TokenRefreshError(MedicBotError):
    """Raised when the backend refuses to refresh an access token."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"MedicBot refresh failed: {status_code}")


class CatalogFetchError(MedicBotError):
    """Raised when the audio catalog cannot be retrieved."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"MedicBot audio fetch failed: {status_code}")


class AssetFetchError(MedicBotError):
    """Raised when an audio file cannot be downloaded."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"MedicBot audio download failed: {status_code}")
