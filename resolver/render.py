from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from .channel import MessageBus, PendingChannelRequest
from .status import Status, TIMED_OUT

logger = logging.getLogger(__name__)


class RenderHandle(Protocol):
    # Identity the surface passes as `sender` when the render posts a message.
    sender: Any


class RenderSurface(Protocol):
    """
    Creates hidden, isolated rendering contexts whose scripts report back
    through a MessageBus. open() must not start navigation: the caller
    registers its channel request first, then calls navigate().
    """

    async def open(self) -> RenderHandle: ...

    async def navigate(self, handle: RenderHandle, url: str) -> None: ...

    async def close(self, handle: RenderHandle) -> None: ...


class IsolatedRenderStrategy:
    def __init__(self, surface: RenderSurface, bus: MessageBus, timeout_ms: int) -> None:
        self.surface = surface
        self.bus = bus
        self.timeout_s = max(0.001, timeout_ms / 1000.0)

    async def render(self, url: str) -> Status:
        """
        Load `url` in a fresh isolated context and wait for its report.
        Always terminal: Found / NotFound from the report, TimedOut otherwise.
        """
        handle: Optional[RenderHandle] = None
        try:
            handle = await self.surface.open()
            with PendingChannelRequest(url, handle.sender, self.bus) as request:
                await self.surface.navigate(handle, url)
                try:
                    indicators = await request.result(self.timeout_s)
                except asyncio.TimeoutError:
                    logger.info("Timeout waiting for isolated render of %s", url)
                    return TIMED_OUT
            return Status.from_indicators(indicators)
        finally:
            if handle is not None:
                await self.surface.close(handle)
