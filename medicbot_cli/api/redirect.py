"""
Browser redirect handling for the Discord consent step.

The default handler opens the authorization URL in the system browser and
listens on the loopback redirect URI for exactly one callback.
"""

import asyncio
import logging
import webbrowser
from abc import ABC, abstractmethod
from urllib.parse import urlparse

from aiohttp import web

from medicbot_cli.exceptions import AuthorizationCancelled, ConfigurationError
from medicbot_cli.models.tokens import AuthorizationRequest

log = logging.getLogger(__name__)

_SUCCESS_PAGE = """<html>
<head><title>MedicBot</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
<h1>Authentication successful</h1>
<p>You can close this window and return to the terminal.</p>
</body>
</html>"""

_FAILURE_PAGE = """<html>
<head><title>MedicBot</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
<h1>Authentication failed</h1>
<p>{reason}</p>
</body>
</html>"""


class RedirectHandler(ABC):
    """Presents an authorization request to the user and captures the code."""

    @abstractmethod
    async def authorize(self, request: AuthorizationRequest) -> str:
        """
        Returns the authorization code for the request.

        Raises:
            AuthorizationCancelled: If the user denies or abandons consent.
        """


class BrowserRedirectHandler(RedirectHandler):
    """Opens the system browser and waits on a one-shot local callback server."""

    def __init__(self, timeout: float = 300, open_browser: bool = True):
        self.timeout = timeout
        self.open_browser = open_browser

    async def authorize(self, request: AuthorizationRequest) -> str:
        parsed = urlparse(request.redirect_uri)
        host = parsed.hostname or "127.0.0.1"
        port = parsed.port or 80
        callback_path = parsed.path or "/"

        loop = asyncio.get_running_loop()
        result: asyncio.Future[str] = loop.create_future()

        async def handle_callback(http_request: web.Request) -> web.Response:
            query = http_request.query
            if result.done():
                return web.Response(
                    text=_FAILURE_PAGE.format(reason="This login link was already used."),
                    content_type="text/html",
                    status=400,
                )
            if "error" in query:
                reason = query.get("error_description") or query["error"]
                result.set_exception(
                    AuthorizationCancelled(f"Discord authorization was denied: {reason}")
                )
                return web.Response(
                    text=_FAILURE_PAGE.format(reason=reason),
                    content_type="text/html",
                    status=400,
                )
            if query.get("state") != request.state:
                result.set_exception(
                    AuthorizationCancelled(
                        "Discord authorization returned an unexpected state."
                    )
                )
                return web.Response(
                    text=_FAILURE_PAGE.format(reason="State mismatch."),
                    content_type="text/html",
                    status=400,
                )
            code = query.get("code")
            if not code:
                result.set_exception(
                    AuthorizationCancelled("Discord did not return an authorization code.")
                )
                return web.Response(
                    text=_FAILURE_PAGE.format(reason="Missing authorization code."),
                    content_type="text/html",
                    status=400,
                )
            result.set_result(code)
            return web.Response(text=_SUCCESS_PAGE, content_type="text/html")

        app = web.Application()
        app.router.add_get(callback_path, handle_callback)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, host, port)
            try:
                await site.start()
            except OSError as e:
                raise ConfigurationError(
                    f"Could not listen for the Discord redirect on {host}:{port}: {e}"
                ) from e

            log.info("Opening Discord in your browser to authorize MedicBot...")
            log.info(f"If it does not open, visit: [cyan]{request.url}[/cyan]")
            if self.open_browser:
                await asyncio.to_thread(webbrowser.open, request.url)

            try:
                return await asyncio.wait_for(result, timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise AuthorizationCancelled(
                    "Timed out waiting for Discord authorization."
                ) from e
        finally:
            await runner.cleanup()
