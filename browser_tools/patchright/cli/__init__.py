"""Command dispatch for the patchright-browser CLI."""

from .registry import CommandRegistry, create_default_registry
from .types import CommandResult, CommandSpec

__all__ = ["CommandRegistry", "CommandResult", "CommandSpec", "create_default_registry"]
