# tests/test_utils.py
import asyncio

import httpx
import pytest

from resolver import utils
from resolver.config import load_config


def test_getenv_helpers(monkeypatch):
    monkeypatch.setenv("X_INT", "42")
    assert utils.getenv_int("X_INT", 1) == 42
    assert utils.getenv_int("X_INT", 1, max_val=10) == 10
    monkeypatch.setenv("X_BOOL", "Yes")
    assert utils.getenv_bool("X_BOOL", False) is True
    monkeypatch.setenv("X_CSV", " a, ,b ")
    assert utils.getenv_csv("X_CSV", "") == ("a", "b")
    monkeypatch.setenv("X_STR", "   ")
    assert utils.getenv_str("X_STR", "dflt") == "dflt"


def test_hostname_helpers():
    assert utils.hostname_of("https://WWW.TorrentLeech.org/torrent/1") == "www.torrentleech.org"
    assert utils.hostname_of("not a url") == ""
    assert utils.hostname_from_pattern("www.torrentleech.org/*") == "www.torrentleech.org"
    assert utils.hostname_from_pattern("https://thepiratebay.org/*") == "thepiratebay.org"
    assert utils.hostname_from_pattern("https://*.site.org/*") == "example.site.org"
    assert utils.hostname_from_pattern("") == ""
    assert utils.is_http_url("https://x")
    assert not utils.is_http_url("ftp://x")


@pytest.mark.asyncio
async def test_httpx_client_uses_config_and_transport():
    cfg = load_config()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, text="ok")

    async with utils.httpx_client(cfg, transport=httpx.MockTransport(handler)) as client:
        assert client.follow_redirects is False
        r = await client.get("https://uindex.org/details")
    assert r.status_code == 200
    assert seen["ua"] == cfg.user_agent


class _SlowClosable:
    def __init__(self):
        self.calls = 0

    async def close(self):
        self.calls += 1
        await asyncio.sleep(10)


@pytest.mark.asyncio
async def test_try_close_is_bounded():
    obj = _SlowClosable()
    await utils.try_close(obj, timeout_ms=50)
    assert obj.calls == 1
    await utils.try_close(None)


@pytest.mark.asyncio
async def test_await_cancelled_handles_running_and_done_tasks():
    t = asyncio.create_task(asyncio.sleep(10))
    await utils.await_cancelled(t)
    assert t.cancelled()

    async def _boom():
        raise RuntimeError("x")

    t2 = asyncio.create_task(_boom())
    await asyncio.sleep(0)
    await utils.await_cancelled(t2)
    assert t2.done()
    await utils.await_cancelled(None)
