"""
Command-line entry point for driving a persistent Chromium through patchright.

Each invocation reattaches to the browser recorded in the session state file
(or launches one), runs a single command, and disconnects, leaving the browser
running for the next invocation.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from .cli import create_default_registry
from .cli.registry import PROG
from .errors import BrowserToolError, UsageError

logger = logging.getLogger("patchright.browser")

__all__ = ["main", "run"]


def _configure_logging() -> None:
    level_name = (os.environ.get("PATCHRIGHT_BROWSER_LOG_LEVEL") or "WARNING").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def _print_help(names: list[str]) -> None:
    print(f"Usage: {PROG} <command> [args]")
    print(f"Commands: {', '.join(names)}")


def main(argv: list[str] | None = None) -> int:
    """Run one command. Returns the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    _configure_logging()
    registry = create_default_registry()

    if args and args[0] in ("-h", "--help", "help"):
        _print_help(registry.command_names)
        return 0

    command = args[0] if args else ""
    try:
        result = asyncio.run(registry.dispatch(command, args[1:]))
    except UsageError as e:
        print(str(e), file=sys.stderr)
        if e.usage:
            print(e.usage, file=sys.stderr)
        return 1
    except BrowserToolError as e:
        logger.info("command_failed %s", e.to_dict())
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.debug("command_crashed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    output = result.render()
    if output:
        print(output)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
