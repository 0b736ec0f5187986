"""Unit tests for Downloader — HTTP download, local files and payload checks."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pacscout.fetch.downloader import Downloader
from pacscout.middleware.error_handler import FetchError

SCRIPT = b"function FindProxyForURL(url, host) { return 'DIRECT'; }"
URL = "http://config.example.com/proxy.pac"


@pytest.fixture
def downloader():
    return Downloader(timeout_seconds=5.0, max_bytes=1024)


def _mock_response(content: bytes = SCRIPT, status_code: int = 200, charset: str | None = None):
    """Create a mock httpx.Response."""
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    resp.content = content
    resp.charset_encoding = charset
    return resp


def _mock_client(response=None, side_effect=None):
    client = AsyncMock()
    if side_effect is not None:
        client.get.side_effect = side_effect
    else:
        client.get.return_value = response
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestHttpDownload:
    async def test_successful_download(self, downloader):
        client = _mock_client(_mock_response(charset="utf-8"))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client) as cls:
            content = await downloader.fetch(URL)

        assert content == SCRIPT
        assert downloader.script_url == URL
        assert downloader.charset == "utf-8"
        client.get.assert_called_once_with(URL)
        cls.assert_called_once_with(timeout=5.0, follow_redirects=True)

    async def test_http_error_status(self, downloader):
        client = _mock_client(_mock_response(status_code=404))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            with pytest.raises(FetchError) as exc_info:
                await downloader.fetch(URL)

        assert "HTTP 404" in exc_info.value.message
        assert exc_info.value.details["status_code"] == 404

    async def test_transport_error(self, downloader):
        client = _mock_client(side_effect=httpx.ConnectError("connection refused"))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            with pytest.raises(FetchError, match="connection refused"):
                await downloader.fetch(URL)

        # The URL stays known so lookups for it are still not proxied
        assert downloader.script_url == URL

    async def test_timeout(self, downloader):
        client = _mock_client(side_effect=httpx.ReadTimeout("timed out"))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            with pytest.raises(FetchError):
                await downloader.fetch(URL)

    async def test_empty_payload(self, downloader):
        client = _mock_client(_mock_response(content=b""))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            with pytest.raises(FetchError, match="empty"):
                await downloader.fetch(URL)

    async def test_oversized_payload(self, downloader):
        client = _mock_client(_mock_response(content=b"x" * 1025))

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            with pytest.raises(FetchError, match="exceeds 1024 bytes"):
                await downloader.fetch(URL)


class TestSourceValidation:
    async def test_missing_source(self, downloader):
        with pytest.raises(FetchError, match="No proxy configuration script URL"):
            await downloader.fetch(None)

    async def test_unsupported_scheme(self, downloader):
        with pytest.raises(FetchError, match="Unsupported scheme"):
            await downloader.fetch("ftp://config.example.com/proxy.pac")


class TestLocalFile:
    async def test_bare_path(self, downloader, tmp_path):
        script = tmp_path / "proxy.pac"
        script.write_bytes(SCRIPT)

        assert await downloader.fetch(str(script)) == SCRIPT
        assert downloader.script_url == script.as_uri()
        assert downloader.charset is None

    async def test_file_url(self, downloader, tmp_path):
        script = tmp_path / "my proxy.pac"
        script.write_bytes(SCRIPT)
        url = "file://" + str(script).replace(" ", "%20")

        assert await downloader.fetch(url) == SCRIPT
        assert downloader.script_url == script.as_uri()

    async def test_relative_path_reported_as_absolute_url(self, downloader, tmp_path, monkeypatch):
        (tmp_path / "proxy.pac").write_bytes(SCRIPT)
        monkeypatch.chdir(tmp_path)

        assert await downloader.fetch("proxy.pac") == SCRIPT
        assert downloader.script_url == (tmp_path / "proxy.pac").resolve().as_uri()

    async def test_missing_file(self, downloader, tmp_path):
        with pytest.raises(FetchError, match="Could not read"):
            await downloader.fetch(str(tmp_path / "absent.pac"))


class TestConcurrency:
    async def test_second_concurrent_fetch_rejected(self, downloader):
        gate = asyncio.Event()
        client = AsyncMock()

        async def slow_get(url):
            await gate.wait()
            return _mock_response()

        client.get.side_effect = slow_get
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("pacscout.fetch.downloader.httpx.AsyncClient", return_value=client):
            first = asyncio.create_task(downloader.fetch(URL))
            await asyncio.sleep(0)
            assert downloader.busy

            with pytest.raises(RuntimeError):
                await downloader.fetch(URL)

            gate.set()
            assert await first == SCRIPT

        assert not downloader.busy
