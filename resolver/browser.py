from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright, Page, Error as PWError

from .channel import MessageBus
from .classifier import reporter_vocabulary_json
from .config import Config
from .utils import try_close, await_cancelled

logger = logging.getLogger(__name__)

# Name of the function exposed to every isolated render for its single report.
BINDING_NAME = "__subtitleReport"

_ACTIVE: dict[str, Any] = {
    "loop_old_ex_handler": None,
}

# Benign aborts from contexts we tear down mid-navigation
_SILENCE_PATTERNS = (
    "net::ERR_ABORTED",
    "frame was detached",
    "Target closed",
    "Target page, context or browser has been closed",
    "Execution context was destroyed",
    "Navigation failed because page was closed",
    "TargetClosedError",
)

# Runs in every frame of an isolated render, before the page's own scripts.
_REPORTER_JS = """
(() => {
  const vocabulary = %(vocabulary)s;
  const embedder = %(embedder)s;
  const binding = %(binding)s;
  if (window.top !== window) return;
  if (embedder && window.location.href.startsWith(embedder)) return;
  const report = () => {
    const content = document.body ? (document.body.textContent || '') : '';
    const lower = content.toLowerCase();
    let flags = '';
    for (const [lang, flag] of vocabulary) {
      if (lower.includes(lang)) flags += flag;
    }
    const send = window[binding];
    if (typeof send === 'function') {
      send(JSON.stringify({ url: window.location.href, flags }));
    }
  };
  if (document.readyState === 'complete') report();
  else window.addEventListener('load', report, { once: true });
})();
"""


def reporter_script(embedder: Optional[str]) -> str:
    return _REPORTER_JS % {
        "vocabulary": reporter_vocabulary_json(),
        "embedder": json.dumps(embedder or ""),
        "binding": json.dumps(BINDING_NAME),
    }


def _browser_args(cfg: Config) -> list[str]:
    args: list[str] = [
        "--disable-dev-shm-usage",
        "--no-sandbox",
        "--headless=new",
        # keep renderer light
        "--disable-extensions",
        "--disable-background-networking",
        "--disable-sync",
        "--metrics-recording-only",
        "--mute-audio",
        "--no-default-browser-check",
        "--no-first-run",
        "--disable-default-apps",
        "--disable-gpu",
    ]
    for a in cfg.browser_args_extra or ():
        if isinstance(a, str) and a.strip():
            args.append(a.strip())
    return args


def _install_loop_exception_silencer() -> None:
    """
    Suppress loop-level 'Future exception was never retrieved' logs for
    navigations we abort on purpose when a render is torn down.
    """
    loop = asyncio.get_running_loop()
    prev = loop.get_exception_handler()
    _ACTIVE["loop_old_ex_handler"] = prev

    def _handler(_loop, context: dict):
        exc = context.get("exception")
        message = context.get("message", "")
        text = f"{exc!r}" if exc else message
        cls_name = type(exc).__name__ if exc is not None else ""

        if (text and any(p in text for p in _SILENCE_PATTERNS)) or cls_name == "TargetClosedError":
            logger.debug("Suppressed loop exception: %s", text or cls_name)
            return

        if prev:
            prev(_loop, context)
        else:
            _loop.default_exception_handler(context)

    loop.set_exception_handler(_handler)


def _restore_loop_exception_handler() -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.set_exception_handler(_ACTIVE.get("loop_old_ex_handler"))
    _ACTIVE["loop_old_ex_handler"] = None


async def init_browser(cfg: Config) -> Tuple[Playwright, Browser]:
    proxy = {"server": cfg.proxy_server} if cfg.proxy_server else None

    pw = await async_playwright().start()
    browser = await pw.chromium.launch(
        headless=True,
        args=_browser_args(cfg),
        proxy=proxy,
    )

    _install_loop_exception_silencer()

    logger.info(
        "Browser initialized UA=%s proxy=%s block_heavy=%s",
        cfg.user_agent, bool(proxy), cfg.block_heavy_resources,
    )
    return pw, browser


async def shutdown_browser(pw: Playwright, browser: Browser) -> None:
    try:
        await browser.close()
    except Exception as e:
        logger.warning("Error while closing browser: %s", e)

    try:
        await pw.stop()
    except Exception as e:
        logger.warning("Error while stopping Playwright: %s", e)

    _restore_loop_exception_handler()


async def _install_request_blocking(context: BrowserContext) -> None:
    async def route_handler(route, request):
        rtype = request.resource_type
        if rtype in {"image", "media", "font"}:
            return await route.abort()
        return await route.continue_()
    await context.route("**/*", route_handler)


@dataclass
class PlaywrightRenderHandle:
    context: BrowserContext
    page: Page
    sender: Any
    nav_task: Optional[asyncio.Task] = field(default=None)


class PlaywrightRenderSurface:
    """
    One fresh BrowserContext per render: no cookies, storage or cache shared
    with any other render. The page's report reaches the bus through an
    exposed binding; the binding source frame is the sender identity.
    """

    def __init__(self, browser: Browser, cfg: Config, bus: MessageBus, *, embedder: Optional[str] = None) -> None:
        self.browser = browser
        self.cfg = cfg
        self.bus = bus
        self._script = reporter_script(embedder)

    async def open(self) -> PlaywrightRenderHandle:
        context = await self.browser.new_context(
            user_agent=self.cfg.user_agent,
            viewport={"width": 500, "height": 500},
            java_script_enabled=True,
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        )
        try:
            context.set_default_navigation_timeout(self.cfg.page_load_timeout_ms)
            if self.cfg.block_heavy_resources:
                await _install_request_blocking(context)
            await context.expose_binding(BINDING_NAME, self._on_binding)
            await context.add_init_script(script=self._script)
            page = await context.new_page()
        except BaseException:
            await try_close(context, self.cfg.page_close_timeout_ms)
            raise
        return PlaywrightRenderHandle(context=context, page=page, sender=page.main_frame)

    def _on_binding(self, source: dict, payload: Any) -> None:
        self.bus.post(source.get("frame"), payload)

    async def navigate(self, handle: PlaywrightRenderHandle, url: str) -> None:
        handle.nav_task = asyncio.create_task(self._goto(handle.page, url), name=f"render:{url}")

    async def _goto(self, page: Page, url: str) -> None:
        try:
            await page.goto(url, wait_until=self.cfg.navigation_wait_until)
        except PWError as e:
            # the report (or the channel timeout) decides the outcome
            logger.debug("Render navigation failed for %s: %s", url, e)

    async def close(self, handle: PlaywrightRenderHandle) -> None:
        await await_cancelled(handle.nav_task)
        await try_close(handle.page, self.cfg.page_close_timeout_ms)
        await try_close(handle.context, self.cfg.page_close_timeout_ms)
