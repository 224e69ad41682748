"""
File-backed storage for the MedicBot access/refresh token pair.
"""

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from medicbot_cli.models.tokens import TokenRecord

log = logging.getLogger(__name__)

PROVIDER_ID = "medicbot-discord"


class TokenStore:
    """
    Persists one TokenRecord under a fixed provider key in a JSON document.

    Writes go to a temporary file that is moved over the previous document, so
    readers see either the old record or the new one.
    """

    def __init__(self, token_file_path: Path, provider_id: str = PROVIDER_ID):
        self.token_file_path = token_file_path
        self.provider_id = provider_id

    def load(self) -> TokenRecord | None:
        """Returns the stored record, or None when absent or unreadable."""
        entry = self._read_document().get(self.provider_id)
        if entry is None:
            return None
        try:
            return TokenRecord.model_validate(entry)
        except ValidationError as e:
            log.debug(f"Ignoring malformed token record for '{self.provider_id}': {e}")
            return None

    def save(self, record: TokenRecord) -> None:
        """Replaces the stored record."""
        document = self._read_document()
        document[self.provider_id] = record.model_dump()
        self._write_document(document)
        log.debug(f"Stored tokens for '{self.provider_id}'.")

    def clear(self) -> None:
        """Removes the stored record. Does nothing if none is stored."""
        document = self._read_document()
        if self.provider_id not in document:
            return
        del document[self.provider_id]
        if document:
            self._write_document(document)
        else:
            try:
                self.token_file_path.unlink()
            except FileNotFoundError:
                pass
        log.debug(f"Cleared tokens for '{self.provider_id}'.")

    @staticmethod
    def is_access_expired(record: TokenRecord, now: float) -> bool:
        return now >= record.access_expiry

    @staticmethod
    def is_refresh_expired(record: TokenRecord, now: float) -> bool:
        """An unknown refresh expiry (0) is never treated as expired."""
        return record.refresh_expiry > 0 and now >= record.refresh_expiry

    def _read_document(self) -> dict[str, Any]:
        if not self.token_file_path.is_file():
            return {}
        try:
            with open(self.token_file_path, encoding="utf-8") as f:
                document = json.load(f)
        except (ValueError, OSError) as e:
            log.debug(f"Token store read failed: {e}")
            return {}
        return document if isinstance(document, dict) else {}

    def _write_document(self, document: dict[str, Any]) -> None:
        directory = self.token_file_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=directory, prefix=".tokens-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            if os.name == "posix":
                os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, self.token_file_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
