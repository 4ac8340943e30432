"""Liveness check for a persisted CDP address, independent of patchright.

A handle only records where a browser used to listen. Before reattaching we ask
`/json/version` for the browser websocket and issue one `Browser.getVersion` so
a port reused by something else is not mistaken for our browser.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

import websocket

logger = logging.getLogger("patchright.browser.probe")


class ProbeError(Exception):
    pass


@dataclass
class ProbeResult:
    address: str
    reachable: bool
    product: str = ""
    ws_url: str = ""
    error: str = ""


def _http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from URL."""
    try:
        req = Request(url, headers={"User-Agent": "patchright-browser"})
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (URLError, OSError, ValueError) as e:
        raise ProbeError(str(e)) from e


def browser_ws_url(address: str, timeout: float = 2.0) -> str:
    """Resolve the browser-level websocket URL for an `http://host:port` address."""
    if address.startswith(("ws://", "wss://")):
        return address
    version = _http_get_json(address.rstrip("/") + "/json/version", timeout=timeout)
    ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
    if not ws_url:
        raise ProbeError("CDP browser WebSocket URL not found")
    return ws_url


def cdp_call(ws_url: str, method: str, params: dict[str, Any] | None = None, timeout: float = 2.0) -> dict[str, Any]:
    """Send one browser-level CDP command and return its result."""
    try:
        ws = websocket.create_connection(ws_url, timeout=timeout, suppress_origin=True)
    except (websocket.WebSocketException, OSError) as e:
        raise ProbeError(str(e)) from e
    try:
        ws.send(json.dumps({"id": 1, "method": method, "params": params or {}}))
        while True:
            msg = json.loads(ws.recv())
            # Browser targets may emit events before the reply.
            if msg.get("id") != 1:
                continue
            if "error" in msg:
                raise ProbeError(str(msg["error"].get("message") or msg["error"]))
            return msg.get("result") or {}
    except (websocket.WebSocketException, OSError, ValueError) as e:
        raise ProbeError(str(e)) from e
    finally:
        ws.close()


def probe(address: str, timeout: float = 2.0) -> ProbeResult:
    """Return whether a browser answers CDP at `address`. Never raises."""
    try:
        ws_url = browser_ws_url(address, timeout=timeout)
        version = cdp_call(ws_url, "Browser.getVersion", timeout=timeout)
    except ProbeError as e:
        logger.info("probe_unreachable address=%s error=%s", address, e)
        return ProbeResult(address=address, reachable=False, error=str(e))
    return ProbeResult(
        address=address,
        reachable=True,
        product=str(version.get("product") or ""),
        ws_url=ws_url,
    )
