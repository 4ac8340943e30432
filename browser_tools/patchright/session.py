"""Session subsystem.

Resolves a live (browser, context, page) triple for one CLI invocation:
- reattach to the browser recorded in the Session Handle when it still answers CDP;
- otherwise launch a detached Chromium and persist its handle right away;
- reuse the first context/page so consecutive invocations act on the same tab.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from patchright.async_api import Error as PlaywrightError
from patchright.async_api import async_playwright

from .cdp_probe import ProbeResult, probe
from .config import (
    DEFAULT_LOCALE,
    DEFAULT_TIMEZONE,
    DEFAULT_VIEWPORT,
    NAVIGATION_TIMEOUT_MS,
    BrowserConfig,
)
from .errors import BrowserToolError
from .launcher import BrowserLauncher
from .state import DEFAULT_KEY, FileSessionStore, SessionHandle, SessionStore

if TYPE_CHECKING:
    from patchright.async_api import Browser, BrowserContext, BrowserType, Page

logger = logging.getLogger("patchright.browser.session")

ProbeFunc = Callable[[str, float], ProbeResult]


@dataclass
class BrowserSession:
    browser: Browser
    context: BrowserContext
    page: Page
    handle: SessionHandle
    reused: bool = False


@dataclass
class SessionStatus:
    state: str  # "none" | "unreachable" | "running"
    handle: SessionHandle | None = None
    product: str = ""
    pages: list[dict[str, str]] = field(default_factory=list)


class SessionManager:
    """Owns the browser connection for the duration of one invocation."""

    def __init__(
        self,
        config: BrowserConfig,
        chromium: BrowserType,
        store: SessionStore | None = None,
        launcher: BrowserLauncher | None = None,
        probe_func: ProbeFunc | None = None,
        probe_timeout: float = 2.0,
    ) -> None:
        self.config = config
        self.chromium = chromium
        self.store = store if store is not None else FileSessionStore.for_key(DEFAULT_KEY, config)
        self.launcher = launcher or BrowserLauncher(config)
        self.probe = probe_func or probe
        self.probe_timeout = probe_timeout
        self.handle: SessionHandle | None = None
        self.last_probe: ProbeResult | None = None

    async def reattach(self) -> Browser | None:
        """Connect to the browser named by the stored handle; clear the handle if it is stale."""
        attached = await self._reattach()
        return attached[0] if attached else None

    async def _reattach(self) -> tuple[Browser, SessionHandle] | None:
        handle = self.store.load()
        if handle is None:
            return None

        address = handle.connection_address
        result = await asyncio.to_thread(self.probe, address, self.probe_timeout)
        self.last_probe = result
        if not result.reachable:
            logger.info("reattach_stale address=%s error=%s", address, result.error)
            self.store.clear()
            return None

        try:
            browser = await self.chromium.connect_over_cdp(address, timeout=self.config.connect_timeout * 1000)
        except (PlaywrightError, OSError) as exc:
            logger.info("reattach_failed address=%s error=%s", address, exc)
            self.store.clear()
            return None

        self.handle = handle
        logger.debug("reattached address=%s ws=%s", address, result.ws_url)
        return browser, handle

    def resolve_binary(self) -> str:
        if self.config.binary_path:
            return self.config.binary_path
        with suppress(Exception):
            bundled = self.chromium.executable_path
            if bundled and Path(bundled).exists():
                return bundled
        system = BrowserConfig.system_binary()
        if system:
            return system
        raise BrowserToolError(
            "launch",
            "No Chromium executable found",
            suggestion="Run `patchright install chromium` or set PATCHRIGHT_BROWSER_BINARY",
        )

    async def launch(self) -> Browser:
        """Start a fresh browser, persist its handle, then connect to it."""
        browser, _handle = await self._launch()
        return browser

    async def _launch(self) -> tuple[Browser, SessionHandle]:
        binary = self.resolve_binary()
        result = await asyncio.to_thread(self.launcher.launch, binary)
        if not result.started:
            raise BrowserToolError(
                "launch",
                result.message,
                details={"command": result.command, "log": result.log_path, "logTail": result.log_tail},
            )

        handle = SessionHandle(connection_address=result.address, process_id=result.pid)
        self.store.save(handle)
        logger.info("launched address=%s pid=%s", handle.connection_address, handle.process_id)

        try:
            browser = await self.chromium.connect_over_cdp(
                handle.connection_address, timeout=self.config.connect_timeout * 1000
            )
        except PlaywrightError as exc:
            self.launcher.stop(handle.process_id)
            self.store.clear()
            raise BrowserToolError("launch", f"Could not connect to launched browser: {exc.message}") from exc

        self.handle = handle
        return browser, handle

    async def ensure_session(self, url: str | None = None) -> BrowserSession:
        """Return a live (browser, context, page), reusing whatever already exists."""
        attached = await self._reattach()
        reused = attached is not None
        browser, handle = attached if attached is not None else await self._launch()

        contexts = browser.contexts
        if contexts:
            context = contexts[0]
        else:
            context = await browser.new_context(
                viewport=dict(DEFAULT_VIEWPORT),
                locale=DEFAULT_LOCALE,
                timezone_id=DEFAULT_TIMEZONE,
            )

        pages = context.pages
        page = pages[0] if pages else await context.new_page()

        if url:
            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
            except PlaywrightError as exc:
                raise BrowserToolError("navigate", exc.message, details={"url": url}) from exc

        return BrowserSession(browser=browser, context=context, page=page, handle=handle, reused=reused)

    async def close(self) -> bool:
        """Shut down the session's browser. Returns False when nothing was reachable."""
        attached = await self._reattach()
        if attached is None:
            return False
        browser, handle = attached

        try:
            cdp = await browser.new_browser_cdp_session()
            await cdp.send("Browser.close")
        except PlaywrightError as exc:
            # The browser drops the connection while answering; that is success.
            logger.debug("browser_close_cdp error=%s", exc)
        with suppress(PlaywrightError):
            await browser.close()

        if handle.process_id:
            await asyncio.to_thread(self.launcher.stop, handle.process_id)
        self.store.clear()
        self.handle = None
        return True

    async def status(self) -> SessionStatus:
        handle = self.store.load()
        if handle is None:
            return SessionStatus(state="none")

        browser = await self.reattach()
        if browser is None:
            return SessionStatus(state="unreachable", handle=handle)

        pages: list[dict[str, str]] = []
        for context in browser.contexts:
            for page in context.pages:
                try:
                    title = await page.title()
                except PlaywrightError:
                    title = ""
                pages.append({"title": title, "url": page.url})
        product = self.last_probe.product if self.last_probe else ""
        return SessionStatus(state="running", handle=handle, product=product, pages=pages)


@asynccontextmanager
async def session_manager(config: BrowserConfig | None = None, **kwargs: Any) -> AsyncIterator[SessionManager]:
    """Run the patchright driver for one invocation. Exiting disconnects but leaves Chromium running."""
    cfg = config or BrowserConfig.from_env()
    async with async_playwright() as playwright:
        yield SessionManager(cfg, playwright.chromium, **kwargs)
