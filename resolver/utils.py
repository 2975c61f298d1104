from __future__ import annotations

import asyncio
import logging
import os
from contextlib import suppress
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

# ========== Environment helpers ==========

def getenv_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return v if v is not None and v.strip() else default

def getenv_int(name: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw)
    except ValueError:
        return default
    if min_val is not None:
        val = max(min_val, val)
    if max_val is not None:
        val = min(max_val, val)
    return val

def getenv_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


# parse CSV-ish envs into tuples (trim blanks)
def getenv_csv(name: str, default_csv: str) -> Tuple[str, ...]:
    raw = getenv_str(name, default_csv)
    parts = [x.strip() for x in raw.split(",")]
    return tuple(p for p in parts if p)

# ========== Exceptions ==========

class PolicyViolation(Exception):
    """Candidate host is outside the observable/contactable intersection."""

class ContentUnsupported(Exception):
    """Response body could not be decoded as text."""

# ========== URL helpers ==========

def hostname_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""

def is_http_url(url: str) -> bool:
    s = urlparse(url).scheme.lower()
    return s in {"http", "https"}

def hostname_from_pattern(pattern: str, *, wildcard: str = "example") -> str:
    """
    Hostname of a match/connect pattern like 'www.site.org/*' or
    'https://*.site.org/*'. Bare patterns are treated as http URLs and
    the first '*' is replaced by `wildcard` before parsing.
    """
    raw = (pattern or "").strip()
    if not raw:
        return ""
    url = raw if "://" in raw else "http://" + raw
    url = url.replace("*", wildcard, 1)
    return hostname_of(url)

# ========== HTTPX client (shared static fetch wiring) ==========

def httpx_client(cfg, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Return a preconfigured AsyncClient honoring cfg request settings.
    `transport` lets tests plug in httpx.MockTransport.
    """
    limits = httpx.Limits(max_keepalive_connections=8, max_connections=max(8, cfg.max_concurrent * 2))
    timeout = httpx.Timeout(cfg.request_timeout_ms / 1000.0)
    headers = {
        "User-Agent": cfg.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }
    kwargs = dict(
        timeout=timeout,
        limits=limits,
        headers=headers,
        follow_redirects=False,
    )
    if transport is not None:
        kwargs["transport"] = transport
    elif cfg.proxy_server:
        kwargs["proxy"] = cfg.proxy_server
    return httpx.AsyncClient(**kwargs)


# ========== Playwright helpers ==========

async def try_close(obj, timeout_ms: int = 1500) -> None:
    """
    Best-effort, bounded-time close of a Playwright page/context so a dead
    renderer can never hold a queue slot.
    """
    if obj is None:
        return
    try:
        await asyncio.wait_for(obj.close(), timeout=max(0.1, (timeout_ms or 1) / 1000.0))
    except Exception as e:
        # swallow – we're tearing down; the target might already be gone
        logger.debug("close() failed for %r: %s", obj, e)

async def await_cancelled(task: Optional[asyncio.Task], *, timeout: float = 1.0) -> None:
    """
    Cancel an asyncio task and await its completion to avoid the
    'Future exception was never retrieved' warning.
    """
    if task is None:
        return
    if task.done():
        with suppress(asyncio.CancelledError, Exception):
            _ = task.result()
        return
    task.cancel()
    with suppress(asyncio.CancelledError, PlaywrightError, Exception):
        await asyncio.wait_for(task, timeout=timeout)
