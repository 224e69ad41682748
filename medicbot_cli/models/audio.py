"""
Model for audio tracks listed in the MedicBot catalog.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class AudioTrack(BaseModel):
    """An audio track descriptor, passed through as returned by the catalog."""

    id: str
    name: str = ""
    aliases: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = Field(False, alias="isFavorite")

    class Config:
        """Pydantic model configuration."""

        extra = "allow"
        populate_by_name = True

    @field_validator("aliases", "tags", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("is_favorite", mode="before")
    @classmethod
    def none_as_false(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def keywords(self) -> list[str]:
        """Searchable terms besides the track name."""
        return [k for k in (self.id, *self.aliases, *self.tags) if k]

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over the name and keywords."""
        needle = query.strip().lower()
        if not needle:
            return True
        return any(needle in term.lower() for term in (self.name, *self.keywords))
