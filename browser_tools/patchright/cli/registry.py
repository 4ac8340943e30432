"""
Command registry with dispatch table for the CLI.

Usage errors are raised before any browser work; every other failure of a
command body surfaces as BrowserToolError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from patchright.async_api import Error as PlaywrightError

from ..errors import BrowserToolError, UsageError
from ..session import SessionManager, session_manager
from . import handlers
from .types import CommandResult, CommandSpec, HandlerFunc

logger = logging.getLogger("patchright.browser.registry")

PROG = "patchright-browser"

ManagerFactory = Callable[[], AbstractAsyncContextManager[SessionManager]]


class CommandRegistry:
    """Registry for command handlers, in the order they are listed to users."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandSpec] = {}

    def register(
        self, name: str, handler: HandlerFunc, usage: str = "", required: int = 0, *, joins_rest: bool = False
    ) -> None:
        """Register a command handler."""
        self._commands[name] = CommandSpec(
            name=name, handler=handler, usage=usage, required=required, joins_rest=joins_rest
        )

    @property
    def command_names(self) -> list[str]:
        return list(self._commands.keys())

    def __len__(self) -> int:
        return len(self._commands)

    def usage_for(self, name: str) -> str:
        spec = self._commands[name]
        return f"Usage: {PROG} {name} {spec.usage}".rstrip()

    def validate(self, name: str, argv: list[str]) -> CommandSpec:
        """Check the command exists and has its required arguments."""
        spec = self._commands.get(name)
        if spec is None:
            raise UsageError(f"Unknown command: {name}", usage=f"Commands: {', '.join(self.command_names)}")
        leading = spec.required - 1 if spec.joins_rest else spec.required
        if len([a for a in argv[:leading] if a.strip()]) < leading:
            raise UsageError(self.usage_for(name))
        # Joined text only has to be non-empty; " " is a valid thing to type.
        if spec.joins_rest and not " ".join(argv[leading:]):
            raise UsageError(self.usage_for(name))
        return spec

    async def dispatch(self, name: str, argv: list[str], manager_factory: ManagerFactory | None = None) -> CommandResult:
        """
        Run one command inside a fresh driver session.

        Args:
            name: Command name
            argv: Positional arguments after the command name
            manager_factory: Async context manager yielding a SessionManager

        Raises:
            UsageError: Unknown command or missing argument (no browser is touched)
            BrowserToolError: The command failed
        """
        spec = self.validate(name, argv)
        factory = manager_factory or session_manager

        logger.info("command=%s args=%d", name, len(argv))
        try:
            async with factory() as manager:
                return await spec.handler(manager, argv)
        except PlaywrightError as exc:
            raise BrowserToolError(name, exc.message) from exc


def create_default_registry() -> CommandRegistry:
    """Create registry with every CLI command."""
    registry = CommandRegistry()
    registry.register("open", handlers.handle_open, "<url>", required=1)
    registry.register("screenshot", handlers.handle_screenshot, "[url]")
    registry.register("html", handlers.handle_html, "[url]")
    registry.register("text", handlers.handle_text, "[url]")
    registry.register("click", handlers.handle_click, "<selector>", required=1)
    registry.register("type", handlers.handle_type, "<selector> <text>", required=2, joins_rest=True)
    registry.register("eval", handlers.handle_eval, "<javascript>", required=1, joins_rest=True)
    registry.register("close", handlers.handle_close)
    registry.register("status", handlers.handle_status)
    return registry
