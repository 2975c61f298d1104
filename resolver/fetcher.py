from __future__ import annotations

import logging
from typing import Optional

import httpx

from .classifier import classify
from .policy import OriginPolicy
from .status import Status, BLOCKED, TIMED_OUT, UNSUPPORTED
from .utils import ContentUnsupported, PolicyViolation

logger = logging.getLogger(__name__)

# A NUL this early means a binary payload whatever the headers say.
_BINARY_SNIFF_BYTES = 1024
MAX_REDIRECTS = 10

_TEXT_APPLICATION_TYPES = {
    "application/xhtml+xml",
    "application/xml",
    "application/json",
    "application/javascript",
}


def _is_text_type(content_type: str) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    if not mime or mime.startswith("text/"):
        return True
    return mime in _TEXT_APPLICATION_TYPES or mime.endswith(("+xml", "+json"))


def decode_body(response: httpx.Response) -> str:
    """
    Body as text. Charset comes from the headers, falling back to httpx's
    default decoding (undecodable bytes become U+FFFD). Only binary
    payloads are rejected.
    """
    content_type = response.headers.get("content-type", "")
    if not _is_text_type(content_type):
        raise ContentUnsupported(f"non-text content-type {content_type!r}")
    if b"\x00" in (response.content or b"")[:_BINARY_SNIFF_BYTES]:
        raise ContentUnsupported("binary body")
    return response.text


class DirectFetchStrategy:
    """
    Single GET of the candidate page, classified as-is.

    fetch() returns a terminal Status, or None when the page loaded fine but
    mentioned no language at all (content may be rendered client-side).
    Redirects are followed by hand so that every hop passes the origin
    policy; a hop to a host it does not permit is never requested.
    """

    def __init__(self, client: httpx.AsyncClient, timeout_ms: int, policy: OriginPolicy) -> None:
        self.client = client
        self.timeout = httpx.Timeout(timeout_ms / 1000.0)
        self.policy = policy

    async def _get(self, url: str) -> httpx.Response:
        r = await self.client.get(url, timeout=self.timeout, follow_redirects=False)
        hops = 0
        while r.is_redirect and r.next_request is not None:
            hops += 1
            if hops > MAX_REDIRECTS:
                raise PolicyViolation(f"more than {MAX_REDIRECTS} redirects from {url}")
            target = str(r.next_request.url)
            if not self.policy.permits_url(target):
                raise PolicyViolation(f"redirect from {r.request.url} to {target}")
            logger.debug("Following redirect %s -> %s", r.request.url, target)
            await r.aclose()
            r = await self.client.send(r.next_request, follow_redirects=False)
        return r

    async def fetch(self, url: str) -> Optional[Status]:
        try:
            r = await self._get(url)
        except PolicyViolation as e:
            logger.warning("Not following %s: %s", url, e)
            return BLOCKED
        except httpx.TimeoutException as e:
            logger.info("Timeout fetching %s: %s", url, e)
            return TIMED_OUT
        except httpx.DecodingError as e:
            logger.info("Undecodable response from %s: %s", url, e)
            return UNSUPPORTED
        except httpx.RequestError as e:
            logger.warning("Request failed for %s: %s", url, e or type(e).__name__)
            return BLOCKED

        s = r.status_code
        if s < 200 or s >= 300:
            logger.info("Invalid return status for %s: HTTP %d", url, s)
            return Status.http_error(s)

        try:
            text = decode_body(r)
        except ContentUnsupported as e:
            logger.info("Unsupported content at %s: %s", url, e)
            return UNSUPPORTED

        indicators = classify(text)
        if not indicators:
            logger.debug("No language keywords in static body of %s", url)
            return None
        return Status.found(indicators)
