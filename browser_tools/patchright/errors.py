from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BrowserToolError(Exception):
    """Operational failure of a single command (launch, navigation, selector, script)."""

    command: str
    reason: str
    suggestion: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.command} failed: {self.reason}. Suggestion: {self.suggestion}"
        return f"{self.command} failed: {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "command": self.command,
            "reason": self.reason,
            "suggestion": self.suggestion,
            "details": self.details,
        }


class UsageError(Exception):
    """Missing argument or unknown command; raised before any browser work."""

    def __init__(self, message: str, usage: str | None = None) -> None:
        super().__init__(message)
        self.usage = usage
