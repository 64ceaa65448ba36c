"""Open the drill page in the user's browser once the server is listening."""

import asyncio
import logging
import webbrowser

import httpx

from hashcards.domain.constants import (
    BROWSER_POLL_ATTEMPTS,
    BROWSER_POLL_INTERVAL,
    BROWSER_POLL_TIMEOUT,
)
from hashcards.domain.errors import ServerUnreachable

logger = logging.getLogger(__name__)


def server_url(host: str, port: int) -> str:
    return f"http://{host}:{port}/"


async def wait_for_server(
    host: str,
    port: int,
    attempts: int = BROWSER_POLL_ATTEMPTS,
    delay: float = BROWSER_POLL_INTERVAL,
) -> None:
    """Poll the drill server until it answers an HTTP request."""
    url = f"http://{host}:{port}/api/progress"
    last_error: Exception | None = None
    async with httpx.AsyncClient(timeout=BROWSER_POLL_TIMEOUT) as client:
        for attempt in range(1, attempts + 1):
            try:
                await client.get(url)
                logger.debug(f"Server answered after {attempt} attempt(s)")
                return
            except httpx.TransportError as e:
                last_error = e
                await asyncio.sleep(delay)
    raise ServerUnreachable(f"no response from {url} after {attempts} attempts: {last_error}")


async def open_browser_when_ready(host: str, port: int) -> None:
    """
    Wait for the server, then open its root page.

    Raises ServerUnreachable if the server never answers.
    """
    await wait_for_server(host, port)
    url = server_url(host, port)
    opened = await asyncio.to_thread(webbrowser.open, url)
    if not opened:
        logger.warning(f"Could not open a browser; visit {url}")
