from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import pytest
from patchright.async_api import Error as PlaywrightError

from browser_tools.patchright.cdp_probe import ProbeResult
from browser_tools.patchright.config import BrowserConfig
from browser_tools.patchright.launcher import LaunchResult
from browser_tools.patchright.session import SessionManager
from browser_tools.patchright.state import MemorySessionStore


class DummyPage:
    goto_error: str | None = None

    def __init__(self, url: str = "about:blank", title: str = "") -> None:
        self.url = url
        self._title = title
        self.calls: list[tuple[str, Any]] = []
        self.evaluate_result: Any = None

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.calls.append(("goto", (url, kwargs)))
        if self.goto_error:
            raise PlaywrightError(self.goto_error)
        self.url = url
        self._title = f"Title of {url}"

    async def title(self) -> str:
        return self._title

    async def content(self) -> str:
        return "<html><body>hi</body></html>"

    async def evaluate(self, script: str) -> Any:
        self.calls.append(("evaluate", script))
        return self.evaluate_result

    async def click(self, selector: str, **kwargs: Any) -> None:
        self.calls.append(("click", (selector, kwargs)))

    async def fill(self, selector: str, text: str, **kwargs: Any) -> None:
        self.calls.append(("fill", (selector, text, kwargs)))

    async def wait_for_timeout(self, ms: float) -> None:
        self.calls.append(("wait", ms))

    async def screenshot(self, **kwargs: Any) -> bytes:
        self.calls.append(("screenshot", kwargs))
        return b""


class DummyContext:
    def __init__(self, pages: list[DummyPage] | None = None, options: dict[str, Any] | None = None) -> None:
        self.pages = pages if pages is not None else []
        self.options = options or {}

    async def new_page(self) -> DummyPage:
        page = DummyPage()
        self.pages.append(page)
        return page


class DummyCdpSession:
    def __init__(self, browser: DummyBrowser) -> None:
        self.browser = browser

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:  # noqa: ARG002
        self.browser.cdp_calls.append(method)
        if method == "Browser.close":
            self.browser.alive = False
            raise PlaywrightError("Target page, context or browser has been closed")
        return {}


class DummyBrowser:
    def __init__(self, contexts: list[DummyContext] | None = None) -> None:
        self.contexts = contexts if contexts is not None else []
        self.alive = True
        self.closed = False
        self.cdp_calls: list[str] = []

    async def new_context(self, **options: Any) -> DummyContext:
        ctx = DummyContext(options=options)
        self.contexts.append(ctx)
        return ctx

    async def new_browser_cdp_session(self) -> DummyCdpSession:
        return DummyCdpSession(self)

    async def close(self) -> None:
        self.closed = True


class DummyChromium:
    """Stands in for patchright's BrowserType: maps CDP addresses to live dummy browsers."""

    executable_path = "/nonexistent/patchright/chrome"

    def __init__(self) -> None:
        self.browsers: dict[str, DummyBrowser] = {}
        self.connects: list[str] = []

    async def connect_over_cdp(self, address: str, **kwargs: Any) -> DummyBrowser:  # noqa: ARG002
        self.connects.append(address)
        browser = self.browsers.get(address)
        if browser is None or not browser.alive:
            raise PlaywrightError(f"connect ECONNREFUSED {address}")
        return browser


class DummyLauncher:
    def __init__(self, chromium: DummyChromium, *, fail: str | None = None) -> None:
        self.chromium = chromium
        self.fail = fail
        self.launches: list[str] = []
        self.stopped: list[int | None] = []
        self._next_port = 40000

    def launch(self, binary: str) -> LaunchResult:
        self.launches.append(binary)
        if self.fail:
            return LaunchResult([binary], False, self.fail)
        self._next_port += 1
        address = f"http://127.0.0.1:{self._next_port}"
        # Chromium starts with one default context holding one blank tab.
        self.chromium.browsers[address] = DummyBrowser([DummyContext([DummyPage()])])
        return LaunchResult([binary], True, "Chrome launched", address=address, pid=self._next_port)

    def stop(self, pid: int | None, *, timeout: float = 2.0) -> bool:  # noqa: ARG002
        self.stopped.append(pid)
        return True


def make_probe(chromium: DummyChromium):
    def _probe(address: str, timeout: float = 2.0) -> ProbeResult:  # noqa: ARG001
        browser = chromium.browsers.get(address)
        if browser is None or not browser.alive:
            return ProbeResult(address=address, reachable=False, error="connection refused")
        return ProbeResult(address=address, reachable=True, product="Chrome/131.0")

    return _probe


class Harness:
    """One fake host: a browser "world" and a state slot shared across invocations."""

    def __init__(self, tmp_path) -> None:  # noqa: ANN001
        self.config = BrowserConfig(
            state_file=str(tmp_path / "state.json"),
            screenshot_dir=str(tmp_path / "shots"),
            binary_path="/usr/bin/chromium-test",
            log_dir=str(tmp_path / "logs"),
        )
        self.chromium = DummyChromium()
        self.launcher = DummyLauncher(self.chromium)
        self.slots: dict = {}

    @property
    def store(self) -> MemorySessionStore:
        return MemorySessionStore(slots=self.slots)

    def manager(self) -> SessionManager:
        return SessionManager(
            self.config,
            self.chromium,
            store=self.store,
            launcher=self.launcher,
            probe_func=make_probe(self.chromium),
        )

    def factory(self):
        @asynccontextmanager
        async def _factory():
            yield self.manager()

        return _factory


@pytest.fixture
def harness(tmp_path) -> Harness:  # noqa: ANN001
    return Harness(tmp_path)
