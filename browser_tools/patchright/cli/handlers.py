"""Command bodies. Each takes the invocation's SessionManager and its positional arguments."""

from __future__ import annotations

import json
import time
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import ACTION_TIMEOUT_MS, SCREENSHOT_SETTLE_MS
from .types import CommandResult

if TYPE_CHECKING:
    from ..session import SessionManager


def _json_default(value: object) -> str:
    # patchright hands JS Dates back as datetime objects.
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _optional_url(argv: list[str]) -> str | None:
    return argv[0] if argv and argv[0].strip() else None


async def handle_open(manager: SessionManager, argv: list[str]) -> CommandResult:
    url = argv[0]
    session = await manager.ensure_session(url)
    title = await session.page.title()
    return CommandResult.text(f"Opened: {url}", f"Title: {title}", data={"url": url, "title": title})


async def handle_screenshot(manager: SessionManager, argv: list[str]) -> CommandResult:
    url = _optional_url(argv)
    session = await manager.ensure_session(url)
    if url:
        # Let late layout and web fonts settle.
        await session.page.wait_for_timeout(SCREENSHOT_SETTLE_MS)
    shot_dir = Path(manager.config.screenshot_dir)
    shot_dir.mkdir(parents=True, exist_ok=True)
    path = shot_dir / f"screenshot-{int(time.time() * 1000)}.png"
    await session.page.screenshot(path=str(path), full_page=False)
    return CommandResult.text(f"Screenshot saved: {path}", data={"path": str(path)})


async def handle_html(manager: SessionManager, argv: list[str]) -> CommandResult:
    session = await manager.ensure_session(_optional_url(argv))
    html = await session.page.content()
    return CommandResult.text(html, data={"html": html})


async def handle_text(manager: SessionManager, argv: list[str]) -> CommandResult:
    session = await manager.ensure_session(_optional_url(argv))
    text = await session.page.evaluate("() => document.body.innerText")
    return CommandResult.text(str(text), data={"text": text})


async def handle_click(manager: SessionManager, argv: list[str]) -> CommandResult:
    selector = argv[0]
    session = await manager.ensure_session()
    await session.page.click(selector, timeout=ACTION_TIMEOUT_MS)
    return CommandResult.text(f"Clicked: {selector}")


async def handle_type(manager: SessionManager, argv: list[str]) -> CommandResult:
    selector = argv[0]
    text = " ".join(argv[1:])
    session = await manager.ensure_session()
    await session.page.fill(selector, text, timeout=ACTION_TIMEOUT_MS)
    return CommandResult.text(f"Typed into {selector}: {text}")


async def handle_eval(manager: SessionManager, argv: list[str]) -> CommandResult:
    script = " ".join(argv)
    session = await manager.ensure_session()
    result = await session.page.evaluate(script)
    return CommandResult.text(json.dumps(result, indent=2, ensure_ascii=False, default=_json_default), data=result)


async def handle_close(manager: SessionManager, argv: list[str]) -> CommandResult:  # noqa: ARG001
    if await manager.close():
        return CommandResult.text("Browser closed.", data={"closed": True})
    return CommandResult.text("No browser running.", data={"closed": False})


async def handle_status(manager: SessionManager, argv: list[str]) -> CommandResult:  # noqa: ARG001
    status = await manager.status()
    if status.state == "none":
        return CommandResult.text("No browser running.", data={"state": status.state})
    if status.state == "unreachable":
        return CommandResult.text("Browser state exists but not reachable.", data={"state": status.state})
    lines = [f"Browser running. Pages: {len(status.pages)}"]
    lines.extend(f"  - {p['title']} ({p['url']})" for p in status.pages)
    return CommandResult(lines=lines, data={"state": status.state, "product": status.product, "pages": status.pages})
