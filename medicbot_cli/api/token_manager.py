"""
Decides, on every call, whether the stored access token can be reused,
must be refreshed, or requires a new interactive authorization.
"""

import logging
import time
from collections.abc import Callable

from medicbot_cli.exceptions import TokenRefreshError
from medicbot_cli.models.tokens import TokenRecord
from medicbot_cli.storage.token_store import TokenStore

from .auth import DiscordAuthorizer

log = logging.getLogger(__name__)


class TokenLifecycleManager:
    """
    Hands out valid MedicBot access tokens.

    A rejected refresh token is removed from the store before the interactive
    flow starts, so it is never retried silently.
    """

    def __init__(
        self,
        token_store: TokenStore,
        authorizer: DiscordAuthorizer,
        clock: Callable[[], float] = time.time,
    ):
        self._token_store = token_store
        self._authorizer = authorizer
        self._clock = clock

    async def get_access_token(self) -> str:
        """
        Returns a usable access token, refreshing or re-authorizing as needed.

        Raises:
            ConfigurationError: If authorization is needed but no client ID is set.
            AuthorizationCancelled: If the user abandons the consent screen.
            TokenExchangeError: If the backend rejects the authorization code.
        """
        now = self._clock()
        stored = self._token_store.load()

        if (
            stored
            and stored.access_token
            and not self._token_store.is_access_expired(stored, now)
        ):
            return stored.access_token

        if stored and stored.refresh_token:
            if self._token_store.is_refresh_expired(stored, now):
                log.debug("Refresh token has expired, discarding stored tokens.")
                self._token_store.clear()
            else:
                refreshed = await self._try_refresh(stored)
                if refreshed:
                    return refreshed.access_token

        record = await self._authorizer.authorize()
        return record.access_token

    def invalidate(self) -> None:
        """Forgets the stored tokens so the next request re-authorizes."""
        self._token_store.clear()

    async def _try_refresh(self, stored: TokenRecord) -> TokenRecord | None:
        log.debug("Access token expired, refreshing...")
        try:
            response = await self._authorizer.refresh(stored.refresh_token)
        except TokenRefreshError as e:
            log.debug(f"{e}. Clearing stored tokens and re-authorizing.")
            self._token_store.clear()
            return None

        record = TokenRecord.from_response(response, now=self._clock())
        self._token_store.save(record)
        return record
