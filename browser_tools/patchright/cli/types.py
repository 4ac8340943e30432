"""
Type definitions for command results and handlers.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..session import SessionManager


@dataclass(slots=True)
class CommandResult:
    """Lines a command prints to stdout, plus an optional raw payload for callers and tests."""

    lines: list[str] = field(default_factory=list)
    data: Any | None = None

    @classmethod
    def text(cls, *lines: str, data: Any | None = None) -> CommandResult:
        return cls(lines=list(lines), data=data)

    def render(self) -> str:
        return "\n".join(self.lines)


HandlerFunc = Callable[["SessionManager", list[str]], Awaitable[CommandResult]]


@dataclass(slots=True, frozen=True)
class CommandSpec:
    """Specification for a registered command."""

    name: str
    handler: HandlerFunc
    usage: str = ""  # argument synopsis shown in usage errors
    required: int = 0  # positional arguments that must be present
    joins_rest: bool = False  # the last required argument is the rest of argv joined by spaces
