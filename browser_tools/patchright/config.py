from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_STATE_FILE = "/tmp/patchright-state.json"
DEFAULT_SCREENSHOT_DIR = "/tmp"
DEFAULT_PROFILE = "/tmp/patchright-profile"
DEFAULT_LOG_DIR = "/tmp/patchright-logs"

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Used only when patchright's own Chromium build is not installed.
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    # Snap builds ignore --user-data-dir outside $HOME.
    "/snap/bin/chromium",
]

# Context defaults applied when a reattached browser exposes no context.
DEFAULT_VIEWPORT = {"width": 1280, "height": 800}
DEFAULT_LOCALE = "zh-CN"
DEFAULT_TIMEZONE = "Asia/Shanghai"

NAVIGATION_TIMEOUT_MS = 30_000
ACTION_TIMEOUT_MS = 10_000
SCREENSHOT_SETTLE_MS = 2_000


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except ValueError:
        return default


@dataclass
class BrowserConfig:
    state_file: str = DEFAULT_STATE_FILE
    screenshot_dir: str = DEFAULT_SCREENSHOT_DIR
    binary_path: str | None = None
    profile_path: str = DEFAULT_PROFILE
    cdp_port: int = 0
    headless: bool = False
    extra_flags: list[str] = field(default_factory=list)
    launch_timeout: float = 15.0
    connect_timeout: float = 10.0
    log_dir: str = DEFAULT_LOG_DIR

    @classmethod
    def detect_binary(cls) -> str | None:
        """Return the PATCHRIGHT_BROWSER_BINARY override, or None to fall back to the bundled or a system Chromium."""
        env_path = os.environ.get("PATCHRIGHT_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        return None

    @staticmethod
    def system_binary() -> str | None:
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        return None

    @classmethod
    def from_env(cls) -> BrowserConfig:
        flags_raw = os.environ.get("PATCHRIGHT_BROWSER_FLAGS", "")
        extra_flags = [flag.strip() for flag in flags_raw.split(",") if flag.strip()]
        return cls(
            state_file=expand_path(os.environ.get("PATCHRIGHT_BROWSER_STATE_FILE") or DEFAULT_STATE_FILE),
            screenshot_dir=expand_path(os.environ.get("PATCHRIGHT_BROWSER_SCREENSHOT_DIR") or DEFAULT_SCREENSHOT_DIR),
            binary_path=cls.detect_binary(),
            profile_path=expand_path(os.environ.get("PATCHRIGHT_BROWSER_PROFILE") or DEFAULT_PROFILE),
            cdp_port=max(0, _env_int("PATCHRIGHT_BROWSER_PORT", 0)),
            headless=os.environ.get("PATCHRIGHT_BROWSER_HEADLESS", "0") == "1",
            extra_flags=extra_flags,
            launch_timeout=_env_float("PATCHRIGHT_BROWSER_LAUNCH_TIMEOUT", 15.0),
            connect_timeout=_env_float("PATCHRIGHT_BROWSER_CONNECT_TIMEOUT", 10.0),
            log_dir=expand_path(os.environ.get("PATCHRIGHT_BROWSER_LOG_DIR") or DEFAULT_LOG_DIR),
        )
