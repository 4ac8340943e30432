from __future__ import annotations

import contextlib
import logging
import os
import signal
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

from .config import DEFAULT_LOCALE, DEFAULT_TIMEZONE, DEFAULT_VIEWPORT, BrowserConfig, expand_path

logger = logging.getLogger("patchright.browser.launcher")

# Flags every launched browser gets, on top of the debugging port and profile.
BASE_FLAGS: list[str] = [
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    # Hides the "unsupported command-line flag" infobar the flag above triggers.
    "--test-type",
    "--remote-allow-origins=*",
]


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str
    address: str = ""
    pid: int | None = None
    log_path: str | None = None
    log_tail: str | None = None


def _tail_text(path: str | None, max_chars: int = 4000) -> str | None:
    if not path:
        return None
    try:
        p = Path(path)
        if not p.exists():
            return None
        raw = p.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    return raw if len(raw) <= max_chars else raw[-max_chars:]


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class BrowserLauncher:
    """Spawns Chromium as a detached process so it survives the CLI invocation."""

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self.config = config or BrowserConfig.from_env()
        self.process: subprocess.Popen | None = None

    def build_launch_command(self, binary: str, port: int) -> list[str]:
        flags = [
            f"--remote-debugging-port={port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            *BASE_FLAGS,
            f"--lang={DEFAULT_LOCALE}",
            f"--accept-lang={DEFAULT_LOCALE}",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        else:
            flags.append(f"--window-size={DEFAULT_VIEWPORT['width']},{DEFAULT_VIEWPORT['height']}")
        flags.extend(self.config.extra_flags)
        # about:blank keeps the first page free of the new-tab UI.
        return [binary, *flags, "about:blank"]

    @staticmethod
    def find_free_port() -> int:
        with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
            s.bind(("127.0.0.1", 0))
            return s.getsockname()[1]

    @staticmethod
    def port_available(port: int, timeout: float = 0.2) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            try:
                return sock.connect_ex(("127.0.0.1", port)) != 0
            except OSError:
                return False

    @staticmethod
    def cdp_ready(address: str, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        try:
            with urlopen(address.rstrip("/") + "/json/version", timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def _make_log_path(self) -> str:
        log_dir = Path(self.config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = int(time.time() * 1000)
        return str(log_dir / f"chrome_launch_{ts}.log")

    def launch(self, binary: str) -> LaunchResult:
        port = self.config.cdp_port or self.find_free_port()
        if self.config.cdp_port and not self.port_available(port):
            return LaunchResult([], False, f"Port {port} already in use")

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command(binary, port)
        address = f"http://127.0.0.1:{port}"
        env = dict(os.environ)
        # Suppress the "Google API keys are missing" infobar.
        env.setdefault("GOOGLE_API_KEY", "no")
        env.setdefault("GOOGLE_DEFAULT_CLIENT_ID", "no")
        env.setdefault("GOOGLE_DEFAULT_CLIENT_SECRET", "no")
        # The default context of a CDP-attached browser takes its timezone from the process.
        env.setdefault("TZ", DEFAULT_TIMEZONE)

        log_path: str | None = None
        try:
            log_path = self._make_log_path()
            with open(log_path, "ab", buffering=0) as log_fh:
                self.process = subprocess.Popen(
                    cmd,
                    stdout=log_fh,
                    stderr=log_fh,
                    stdin=subprocess.DEVNULL,
                    start_new_session=True,
                    env=env,
                )
        except OSError as exc:
            return LaunchResult(cmd, False, str(exc), log_path=log_path, log_tail=_tail_text(log_path))

        pid = self.process.pid
        logger.info("chrome_spawned pid=%s port=%s log=%s", pid, port, log_path)

        deadline = time.time() + max(0.5, self.config.launch_timeout)
        while time.time() < deadline:
            if self.cdp_ready(address):
                return LaunchResult(cmd, True, "Chrome launched", address=address, pid=pid, log_path=log_path)
            if self.process.poll() is not None:
                return LaunchResult(
                    cmd,
                    False,
                    f"Chrome exited during startup (code {self.process.returncode})",
                    pid=pid,
                    log_path=log_path,
                    log_tail=_tail_text(log_path),
                )
            time.sleep(0.1)

        self.stop(pid)
        return LaunchResult(
            cmd, False, "Chrome launch timed out", pid=pid, log_path=log_path, log_tail=_tail_text(log_path)
        )

    def stop(self, pid: int | None, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of a browser process. Returns True once it is gone."""
        if pid is None or pid <= 0:
            return False
        proc = self.process if self.process is not None and self.process.pid == pid else None

        def _gone() -> bool:
            if proc is not None:
                return proc.poll() is not None
            return not pid_alive(pid)

        if _gone():
            return True
        with contextlib.suppress(OSError):
            os.kill(pid, signal.SIGTERM)

        deadline = time.time() + max(0.1, float(timeout))
        while time.time() < deadline:
            if _gone():
                return True
            time.sleep(0.05)

        # Escalate to kill.
        with contextlib.suppress(OSError):
            os.kill(pid, getattr(signal, "SIGKILL", signal.SIGTERM))
        logger.info("chrome_killed pid=%s", pid)
        return True
