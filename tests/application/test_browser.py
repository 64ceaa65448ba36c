from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from hashcards.application import browser
from hashcards.domain.errors import ServerUnreachable


def test_server_url():
    assert browser.server_url("127.0.0.1", 8000) == "http://127.0.0.1:8000/"


@pytest.mark.asyncio
@patch("hashcards.application.browser.httpx.AsyncClient")
async def test_wait_retries_until_server_answers(mock_client_cls):
    client = MagicMock()
    client.get = AsyncMock(side_effect=[httpx.ConnectError("refused"), MagicMock()])
    mock_client_cls.return_value.__aenter__.return_value = client

    await browser.wait_for_server("127.0.0.1", 8000, attempts=3, delay=0)

    assert client.get.await_count == 2
    client.get.assert_awaited_with("http://127.0.0.1:8000/api/progress")


@pytest.mark.asyncio
@patch("hashcards.application.browser.httpx.AsyncClient")
async def test_wait_gives_up(mock_client_cls):
    client = MagicMock()
    client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
    mock_client_cls.return_value.__aenter__.return_value = client

    with pytest.raises(ServerUnreachable, match="after 2 attempts"):
        await browser.wait_for_server("127.0.0.1", 8000, attempts=2, delay=0)


@pytest.mark.asyncio
@patch("hashcards.application.browser.webbrowser.open", return_value=True)
@patch("hashcards.application.browser.wait_for_server", new_callable=AsyncMock)
async def test_open_browser_when_ready(mock_wait, mock_open):
    await browser.open_browser_when_ready("localhost", 8123)
    mock_wait.assert_awaited_once_with("localhost", 8123)
    mock_open.assert_called_once_with("http://localhost:8123/")
