from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from iso_manager.errors import FetchFailed
from iso_manager.lib.fetch import HttpFetcher

URL = "https://mirror.example.com/isos/tiny-1.iso"


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(timeout_s=5.0, transport=httpx.MockTransport(handler))


def test_streams_body_to_file(tmp_path: Path) -> None:
    body = b"\x00CD001" * 1000

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == URL
        return httpx.Response(200, content=body)

    dest = tmp_path / "out.part"
    written = _fetcher(handler).fetch(URL, dest)

    assert written == len(body)
    assert dest.read_bytes() == body


def test_follows_redirects(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old.iso":
            return httpx.Response(302, headers={"Location": URL})
        return httpx.Response(200, content=b"data")

    dest = tmp_path / "out.part"
    _fetcher(handler).fetch("https://mirror.example.com/old.iso", dest)

    assert dest.read_bytes() == b"data"


def test_http_status_is_http_error(tmp_path: Path) -> None:
    fetcher = _fetcher(lambda request: httpx.Response(404))

    with pytest.raises(FetchFailed) as exc:
        fetcher.fetch(URL, tmp_path / "out.part")

    assert exc.value.reason == FetchFailed.HTTP_ERROR
    assert "404" in exc.value.cause


def test_connect_failure_is_connection_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailed) as exc:
        _fetcher(handler).fetch(URL, tmp_path / "out.part")

    assert exc.value.reason == FetchFailed.CONNECTION_ERROR
    assert exc.value.kind == "FetchFailed"


def test_read_timeout_is_timeout(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FetchFailed) as exc:
        _fetcher(handler).fetch(URL, tmp_path / "out.part")

    assert exc.value.reason == FetchFailed.TIMEOUT


def test_unparseable_url_is_connection_error(tmp_path: Path) -> None:
    fetcher = _fetcher(lambda request: httpx.Response(200, content=b"data"))

    with pytest.raises(FetchFailed) as exc:
        fetcher.fetch("https://[::1/x.iso", tmp_path / "out.part")

    assert exc.value.reason == FetchFailed.CONNECTION_ERROR
    assert not (tmp_path / "out.part").exists()
