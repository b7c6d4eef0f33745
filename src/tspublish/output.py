"""Console output and logging for tspublish.

Pipeline progress is rendered by a single OutputManager:

- Locally: a tree of entry point -> steps, with rich colors and timing
- In GHA: flat `::group::` / `::endgroup::` markers and `::error::` annotations

Library modules log through the standard `logging` module; `configure_logging`
attaches the handler the CLI uses.

Everything here writes to stderr; stdout carries only command results (e.g.
the tag printed by `tspublish get-latest-tag`).
"""

from __future__ import annotations

import logging
import os
import sys
import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console

# Symbols for tree output
SYMBOLS = {
    "entry": "▼",  # Top-level entry point (▼)
    "branch": "├─▶",  # Step (├─▶)
    "pipe": "│",  # Continuation line (│)
    "success": "✓",  # Success (✓)
    "failure": "✗",  # Failure (✗)
}


@dataclass
class ScopeInfo:
    """Information about an open entry-point or step scope."""

    name: str
    start_time: float

    @property
    def elapsed(self) -> float:
        """Elapsed time since scope started."""
        return time.perf_counter() - self.start_time


@dataclass
class OutputManager:
    """
    Centralized output formatting for pipeline runs.

    Command output is never rewritten: each line is printed as captured, only
    prefixed with the tree continuation marker in local mode.
    """

    console: Console = field(default_factory=lambda: Console(stderr=True))
    _scope_stack: list[ScopeInfo] = field(default_factory=list)
    _is_gha: bool = field(default_factory=lambda: os.environ.get("GITHUB_ACTIONS") == "true")

    @property
    def depth(self) -> int:
        """Current nesting depth."""
        return len(self._scope_stack)

    @property
    def in_gha(self) -> bool:
        """Whether running in GitHub Actions."""
        return self._is_gha

    def _get_line_prefix(self) -> str:
        return f"{SYMBOLS['pipe']}    " * self.depth

    def _print_raw(self, message: str, style: str | None = None) -> None:
        if style:
            self.console.print(message, style=style, markup=False, highlight=False)
        else:
            self.console.print(message, markup=False, highlight=False)

    def entrypoint_header(self, name: str) -> None:
        if self._is_gha:
            print(f"::group::{name}", file=sys.stderr, flush=True)
            return
        self._print_raw(f"\n{SYMBOLS['entry']} {name}", style="bold blue")
        self._print_raw(SYMBOLS["pipe"])

    def entrypoint_status(self, name: str, success: bool, elapsed: float) -> None:
        symbol = SYMBOLS["success"] if success else SYMBOLS["failure"]
        status = "succeeded" if success else "failed"
        if self._is_gha:
            print(f"{symbol} {name} {status} in {elapsed:.2f}s", file=sys.stderr, flush=True)
            print("::endgroup::", file=sys.stderr, flush=True)
            return
        style = "bold green" if success else "bold red"
        self._print_raw(f"\n{symbol} {name} {status} in {elapsed:.2f}s", style=style)

    def step_header(self, name: str) -> None:
        if self._is_gha:
            print(f"::group::{name}", file=sys.stderr, flush=True)
            return
        indent = self._get_line_prefix()
        self._print_raw(f"{indent}{SYMBOLS['branch']} {name}", style="bold cyan")

    def step_status(self, name: str, success: bool, elapsed: float) -> None:
        symbol = SYMBOLS["success"] if success else SYMBOLS["failure"]
        if self._is_gha:
            status = "succeeded" if success else "failed"
            print(f"{symbol} {name} {status} in {elapsed:.2f}s", file=sys.stderr, flush=True)
            print("::endgroup::", file=sys.stderr, flush=True)
            return
        self._print_raw(f"{self._get_line_prefix()}{symbol} {elapsed:.2f}s", style="green" if success else "red")

    def command_output(self, stdout: str, stderr: str) -> None:
        """Print captured stdout then stderr, line by line and unmodified."""
        prefix = "" if self._is_gha else self._get_line_prefix()
        for line in stdout.splitlines():
            self._print_raw(f"{prefix}{line}")
        for line in stderr.splitlines():
            self._print_raw(f"{prefix}{line}", style=None if self._is_gha else "yellow")

    def error(self, message: str) -> None:
        """Print an error message."""
        if self._is_gha:
            print(f"::error::{message}", file=sys.stderr, flush=True)
        else:
            self._print_raw(f"Error: {message}", style="bold red")

    @contextmanager
    def entrypoint_scope(self, name: str) -> Generator[ScopeInfo, None, None]:
        """Context manager for a top-level entry point."""
        self.entrypoint_header(name)

        scope = ScopeInfo(name=name, start_time=time.perf_counter())
        self._scope_stack.append(scope)

        success = True
        try:
            yield scope
        except Exception:
            success = False
            raise
        finally:
            self._scope_stack.pop()
            self.entrypoint_status(name, success, scope.elapsed)

    @contextmanager
    def step_scope(self, name: str) -> Generator[ScopeInfo, None, None]:
        """Context manager for one pipeline step (lint, test, build, ...)."""
        self.step_header(name)

        scope = ScopeInfo(name=name, start_time=time.perf_counter())
        self._scope_stack.append(scope)

        success = True
        try:
            yield scope
        except Exception:
            success = False
            raise
        finally:
            self._scope_stack.pop()
            self.step_status(name, success, scope.elapsed)


# Global output manager instance
_output_manager: OutputManager | None = None


def get_output_manager() -> OutputManager:
    """Get the global output manager instance."""
    global _output_manager
    if _output_manager is None:
        _output_manager = OutputManager()
    return _output_manager


def reset_output_manager() -> None:
    """Reset the global output manager (for testing)."""
    global _output_manager
    _output_manager = None


def configure_output(force_color: bool | None = None) -> OutputManager:
    """
    Configure the global output manager.

    Args:
        force_color: Force color output on/off (None for auto-detect)

    """
    global _output_manager

    console_kwargs: dict[str, Any] = {"stderr": True}
    if force_color is not None:
        console_kwargs["force_terminal"] = force_color

    _output_manager = OutputManager(console=Console(**console_kwargs))
    return _output_manager


def configure_logging(debug: bool = False) -> None:
    """Send library logs to stderr (INFO by default, DEBUG with `--debug`)."""
    root = logging.getLogger()
    if not any(getattr(handler, "_tspublish", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        handler._tspublish = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel("DEBUG" if debug else "INFO")
