"""
Embedder side of the isolated-render message channel.

Each isolated render posts exactly one JSON text message
``{"url": <address it was loaded with>, "flags": <flag symbols>}`` to the
embedder. Every render shares the same MessageBus, so a PendingChannelRequest
has to pick its own answer out of whatever arrives: it checks the sender,
then the payload, then the address, and silently waits on for anything
that fails.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .classifier import IndicatorSet, classify

logger = logging.getLogger(__name__)

Listener = Callable[[Any, str], None]


class ProtocolMismatch(Exception):
    """A channel message failed sender, payload or address validation."""


@dataclass(frozen=True)
class ChannelMessage:
    url: str
    flags: str

    @classmethod
    def for_page(cls, url: str, text: str) -> "ChannelMessage":
        return cls(url=url, flags=classify(text).symbols())

    def encode(self) -> str:
        return json.dumps({"url": self.url, "flags": self.flags}, ensure_ascii=False)

    @classmethod
    def decode(cls, data: Any) -> "ChannelMessage":
        if not isinstance(data, str):
            raise ProtocolMismatch(f"expected text payload, got {type(data).__name__}")
        try:
            obj = json.loads(data)
        except ValueError as e:
            raise ProtocolMismatch(f"payload is not JSON: {e}") from e
        if not isinstance(obj, dict):
            raise ProtocolMismatch("payload is not an object")
        url = obj.get("url")
        if not url or not isinstance(url, str):
            raise ProtocolMismatch("payload has no url")
        flags = obj.get("flags", "")
        if flags is None:
            flags = ""
        if not isinstance(flags, str):
            raise ProtocolMismatch("flags is not a string")
        return cls(url=url, flags=flags)

    @property
    def indicators(self) -> IndicatorSet:
        try:
            return IndicatorSet.from_symbols(self.flags)
        except ValueError as e:
            raise ProtocolMismatch(str(e)) from e


class MessageBus:
    """Embedder-wide message endpoint; delivery is synchronous, in listener order."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def post(self, sender: Any, data: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(sender, data)
            except Exception:
                logger.exception("Channel listener failed")


class PendingChannelRequest:
    """
    One request/response correlation for one isolated render.

    Usage::

        with PendingChannelRequest(url, handle.sender, bus) as req:
            indicators = await req.result(timeout_s)

    Leaving the block always unregisters the listener, so nothing is
    accepted after a timeout.
    """

    def __init__(self, address: str, sender: Any, bus: MessageBus) -> None:
        self.address = address
        self.sender = sender
        self._bus = bus
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._closed = False
        bus.add_listener(self._on_message)

    @property
    def done(self) -> bool:
        return self._future.done()

    def _on_message(self, sender: Any, data: Any) -> None:
        if self._closed or self._future.done():
            return
        if sender is not self.sender:
            logger.debug("Message from unknown source ignored (waiting on %s): %r", self.address, sender)
            return
        try:
            msg = ChannelMessage.decode(data)
            indicators = msg.indicators
        except ProtocolMismatch as e:
            logger.info("Malformed channel message for %s ignored: %s", self.address, e)
            return
        if msg.url != self.address:
            logger.info(
                "Channel message url does not match request, ignoring. message=%s requested=%s",
                msg.url, self.address,
            )
            return
        logger.debug("Channel message accepted for %s: %r", self.address, indicators)
        self._future.set_result(indicators)

    async def result(self, timeout_s: float) -> IndicatorSet:
        """Raises asyncio.TimeoutError when no valid message arrives in time."""
        return await asyncio.wait_for(self._future, timeout=timeout_s)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.remove_listener(self._on_message)
        if not self._future.done():
            self._future.cancel()

    def __enter__(self) -> "PendingChannelRequest":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
