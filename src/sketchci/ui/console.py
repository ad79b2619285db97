"""Console output formatting utilities for sketchci."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List, Optional

from ..model import Transcript

WIDTH = 80
FIND_FILES_INDENT = 4


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, width: int = WIDTH):
        """
        Initialize console formatter.

        Args:
            debug: If True, show debug lines and full stack traces
            width: Column that status marks are right-aligned to
        """
        self.debug = debug
        self.width = width

    def begin_action(self, line: str, multiline: bool) -> None:
        """
        Print the label of an action before it runs.

        Single-line actions leave the cursor on the label so the mark lands
        on the same line; either way stdout is flushed so the label shows up
        even if the action hangs.
        """
        if multiline:
            print(line)
        else:
            print(line, end="")
        sys.stdout.flush()

    def end_action(self, line: str, mark: str, endline: Optional[str] = None) -> None:
        """Print the mark of a finished action, right-aligned against the label."""
        if endline is not None:
            print(endline, end="")
        print(mark.rjust(self.width - len(line)))

    def print_info(self, message: str = "") -> None:
        """Print informational message."""
        print(message)

    def print_indented(self, text: str, indent: int = 4) -> None:
        margin = " " * indent
        for line in text.splitlines():
            print(f"{margin}{line}")

    def display_files(self, path: Path) -> None:
        """Print every non-hidden file below `path`, one per line, indented."""
        for p in list_visible_files(path):
            print(f"{' ' * FIND_FILES_INDENT}{p}")

    def print_transcript(self, transcript: Transcript, *, with_stdout: bool = True) -> None:
        """Print captured output of the last external command."""
        print(f"Last command: {transcript.message}")
        if with_stdout:
            print(transcript.stdout)
        print(transcript.stderr)

    def print_failures(self, count: int, transcript: Optional[Transcript] = None) -> None:
        """Print the final tally, plus the last transcript when something failed."""
        print(f"Failures: {count}")
        if count and transcript is not None:
            print(f"Last message: {transcript.message}")
            print("========== Stdout:")
            print(transcript.stdout)
            print("========== Stderr:")
            print(transcript.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[List[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


def _is_hidden_below(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def list_visible_files(path: Path) -> List[Path]:
    """
    Files under `path` (following a symlinked root), skipping anything that
    sits in or is a dotfile.
    """
    root = Path(os.path.realpath(path))
    if not root.is_dir():
        return []
    return [
        p for p in sorted(root.rglob("*"))
        if p.is_file() and not _is_hidden_below(p, root)
    ]


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
