"""
Pydantic model for application settings.
Resolves defaults and normalizes the service URLs and Discord client ID.
"""

from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_API_BASE_URL = "https://api.medicbot.comaristan.com"
DEFAULT_SHAREABLE_BASE_URL = "https://medicbot.comaristan.com"
DEFAULT_REDIRECT_PORT = 47823

_URL_DEFAULTS = {
    "api_base_url": DEFAULT_API_BASE_URL,
    "shareable_base_url": DEFAULT_SHAREABLE_BASE_URL,
}


def normalize_base_url(value: str) -> str:
    """Removes any trailing slashes from a base URL."""
    return value.rstrip("/")


class MedicBotSettings(BaseModel):
    """A validated settings model for the MedicBot client."""

    # Service endpoints
    api_base_url: str = DEFAULT_API_BASE_URL
    shareable_base_url: str = DEFAULT_SHAREABLE_BASE_URL

    # Discord OAuth
    discord_client_id: str = ""
    redirect_port: int = DEFAULT_REDIRECT_PORT
    auth_timeout: int = 300

    # Network
    request_timeout: int = 30

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_base_url", "shareable_base_url", mode="before")
    @classmethod
    def resolve_base_url(cls, v: Any, info: ValidationInfo) -> str:
        """Falls back to the default URL when unset and strips trailing slashes."""
        if v is None or not str(v).strip():
            v = _URL_DEFAULTS[info.field_name]
        return normalize_base_url(str(v).strip())

    @field_validator("discord_client_id", mode="before")
    @classmethod
    def resolve_client_id(cls, v: Any) -> str:
        """An absent client ID is valid until an authorization is attempted."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("redirect_port")
    @classmethod
    def validate_redirect_port(cls, v: int) -> int:
        if v < 1024 or v > 65535:
            raise ValueError("Redirect port must be between 1024 and 65535.")
        return v

    @field_validator("request_timeout", "auth_timeout")
    @classmethod
    def validate_timeouts(cls, v: int, info: ValidationInfo) -> int:
        upper = 300 if info.field_name == "request_timeout" else 3600
        if v < 1 or v > upper:
            raise ValueError(f"{info.field_name} must be between 1 and {upper} seconds.")
        return v

    @property
    def redirect_uri(self) -> str:
        """The loopback URI Discord redirects back to after consent."""
        return f"http://127.0.0.1:{self.redirect_port}/callback"

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}


def resolve_config(settings: dict[str, Any] | None = None) -> MedicBotSettings:
    """
    Builds normalized settings from externally supplied values.

    Missing or blank URLs fall back to the public MedicBot endpoints. Unknown
    keys and ``None`` values are ignored so partially filled preference sources
    can be passed through as-is.
    """
    known_keys = MedicBotSettings.model_fields.keys()
    values = {
        key: value
        for key, value in (settings or {}).items()
        if key in known_keys and value is not None
    }
    return MedicBotSettings(**values)
