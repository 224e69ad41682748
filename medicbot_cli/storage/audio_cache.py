"""
On-disk cache of downloaded audio files, keyed by track ID.

Entries are named ``audio-<sanitized-id>.<ext>`` and are never revalidated or
evicted automatically; the extension comes from the Content-Type of the
response that produced the file.
"""

import asyncio
import logging
import os
import re
import uuid
from collections.abc import AsyncIterator
from pathlib import Path

import aiofiles

log = logging.getLogger(__name__)

CACHE_FILE_PREFIX = "audio-"
DEFAULT_EXTENSION = "audio"

CONTENT_TYPE_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/m4a": "m4a",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/flac": "flac",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
}

_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]+", re.IGNORECASE | re.ASCII)


def sanitize_file_component(value: str) -> str:
    """Replaces each run of characters unsafe in file names with '_'."""
    return _UNSAFE_CHARS.sub("_", value)


def extension_from_content_type(content_type: str | None) -> str:
    """Maps a Content-Type header value to a file extension."""
    if not content_type:
        return DEFAULT_EXTENSION
    media_type = content_type.split(";")[0].strip().lower()
    if media_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[media_type]
    if media_type.startswith("audio/"):
        subtype = media_type.split("/", 1)[1]
        if subtype:
            return subtype
    return DEFAULT_EXTENSION


class AudioCache:
    """Manages the audio cache directory."""

    def __init__(self, cache_dir_path: Path):
        self.cache_dir = cache_dir_path

    @staticmethod
    def base_name(audio_id: str) -> str:
        return f"{CACHE_FILE_PREFIX}{sanitize_file_component(audio_id)}"

    def ensure_dir(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def find(self, base_name: str) -> Path | None:
        """Returns the first cached file for a base name, if any."""
        try:
            entries = sorted(os.listdir(self.cache_dir))
        except OSError:
            return None
        prefix = f"{base_name}."
        for entry in entries:
            if entry.startswith(prefix):
                return self.cache_dir / entry
        return None

    async def write(
        self, base_name: str, extension: str, chunks: AsyncIterator[bytes]
    ) -> Path:
        """
        Streams chunks into ``<base_name>.<extension>``.

        The data is written to a hidden temporary file first and renamed into
        place when complete, so an interrupted download never becomes a hit.
        """
        destination = self.cache_dir / f"{base_name}.{extension}"
        tmp_path = self.cache_dir / f".{base_name}-{uuid.uuid4().hex}.part"
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
            await asyncio.to_thread(os.replace, tmp_path, destination)
        except BaseException:
            await asyncio.to_thread(tmp_path.unlink, missing_ok=True)
            raise
        log.debug(f"Cached audio file '{destination.name}'.")
        return destination

    def clear(self) -> int:
        """Removes all cached audio files and returns how many were deleted."""
        log.info("Clearing all cached audio files...")
        removed = 0
        if not self.cache_dir.is_dir():
            return removed
        for cache_file in self.cache_dir.glob(f"{CACHE_FILE_PREFIX}*"):
            try:
                cache_file.unlink()
                removed += 1
            except OSError as e:
                log.warning(f"Failed to remove cached file {cache_file.name}: {e}")
        return removed
