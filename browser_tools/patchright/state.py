"""Persisted Session Handle (disk-backed, single slot per key).

Design
- One small JSON file per session key; the `default` key is the configured state file.
- Atomic writes: write temp file then replace.
- Best-effort: missing or corrupt files load as "no session" and are never an error.
- No locking. Concurrent invocations are last-writer-wins.
"""

from __future__ import annotations

import json
import logging
import os
import re
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .config import BrowserConfig

logger = logging.getLogger("patchright.browser.state")

DEFAULT_KEY = "default"

_SAFE_KEY_RE = re.compile(r"[^a-zA-Z0-9_.-]+")


@dataclass(frozen=True, slots=True)
class SessionHandle:
    """How to reach a running browser. Holds no reference to the browser itself."""

    connection_address: str
    process_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"connectionAddress": self.connection_address, "processId": self.process_id}

    @classmethod
    def from_dict(cls, obj: Any) -> SessionHandle | None:
        if not isinstance(obj, dict):
            return None
        address = obj.get("connectionAddress")
        if address is None:
            # Files written by the earlier Node tool.
            address = obj.get("wsEndpoint")
        if not (isinstance(address, str) and address.strip()):
            return None
        pid = obj.get("processId", obj.get("pid"))
        if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
            pid = None
        return cls(connection_address=address.strip(), process_id=pid)


class SessionStore(Protocol):
    def load(self) -> SessionHandle | None: ...

    def save(self, handle: SessionHandle) -> None: ...

    def clear(self) -> None: ...


def sanitize_key(raw: str, *, max_len: int = 48) -> str:
    s = str(raw or "").strip()
    if not s:
        return DEFAULT_KEY
    s = _SAFE_KEY_RE.sub("-", s).strip("-.") or DEFAULT_KEY
    return s[: max(8, int(max_len))]


def state_file_for_key(key: str, base: Path) -> Path:
    k = sanitize_key(key)
    if k == DEFAULT_KEY:
        return base
    return base.with_name(f"{base.stem}-{k}{base.suffix or '.json'}")


class FileSessionStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @classmethod
    def for_key(cls, key: str = DEFAULT_KEY, config: BrowserConfig | None = None) -> FileSessionStore:
        cfg = config or BrowserConfig.from_env()
        return cls(state_file_for_key(key, Path(cfg.state_file)))

    def load(self) -> SessionHandle | None:
        p = self.path
        try:
            if not p.exists() or not p.is_file():
                return None
            obj = json.loads(p.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ValueError):
            logger.info("state_unreadable path=%s", p)
            return None
        handle = SessionHandle.from_dict(obj)
        if handle is None:
            logger.info("state_malformed path=%s", p)
        return handle

    def save(self, handle: SessionHandle) -> None:
        p = self.path
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_text(json.dumps(handle.to_dict()), encoding="utf-8")
        with suppress(OSError):
            os.chmod(tmp, 0o600)
        tmp.replace(p)
        logger.debug("state_saved path=%s address=%s", p, handle.connection_address)

    def clear(self) -> None:
        with suppress(FileNotFoundError):
            self.path.unlink()
            logger.debug("state_cleared path=%s", self.path)


class MemorySessionStore:
    """In-process store with the same keyed semantics; used as a test double."""

    def __init__(self, key: str = DEFAULT_KEY, slots: dict[str, SessionHandle] | None = None) -> None:
        self.key = sanitize_key(key)
        self.slots: dict[str, SessionHandle] = slots if slots is not None else {}

    def load(self) -> SessionHandle | None:
        return self.slots.get(self.key)

    def save(self, handle: SessionHandle) -> None:
        self.slots[self.key] = handle

    def clear(self) -> None:
        self.slots.pop(self.key, None)
