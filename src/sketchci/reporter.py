# reporter.py
# Every step of a CI run goes through ActionReporter.perform(): print a
# status line, run the step, mark the outcome, then apply the policy
# (ignore, tally, or tally and abort the run).

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

from .model import PlatformDefinition, Transcript
from .ui.console import Console, get_console

if TYPE_CHECKING:
    from .interfaces import ProjectConfig


FAILED_ASSURANCE_MESSAGE = "This may indicate a problem with sketchci, or your configuration"


# ----------------------------------------------------------------------
# Marks
# ----------------------------------------------------------------------

def is_failure(result: Any) -> bool:
    """Only None and False count as failure; "", 0 and [] are successes."""
    return result is None or result is False


def pass_fail(result: Any) -> str:
    return "✗" if is_failure(result) else "✓"


def identity(result: Any) -> str:
    return "" if result is None else str(result)


def no_mark(result: Any) -> str:
    return ""


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class RunAborted(Exception):
    """A hard precondition failed; nothing after it may run."""
    action: str

    def __str__(self) -> str:
        return f"aborted after failed action: {self.action}"


@dataclass
class SelfTestDetected(Exception):
    """sketchci was pointed at its own source tree instead of a library."""
    path: str

    def __str__(self) -> str:
        return f"refusing to test sketchci's own source tree at {self.path}"


# ----------------------------------------------------------------------
# Policies
# ----------------------------------------------------------------------

class Policy(Enum):
    INFORM = "inform"
    INFORM_MULTILINE = "inform_multiline"
    ATTEMPT = "attempt"
    ATTEMPT_MULTILINE = "attempt_multiline"
    ASSURE = "assure"
    ASSURE_MULTILINE = "assure_multiline"

    @property
    def multiline(self) -> bool:
        return self.value.endswith("_multiline")

    @property
    def tally(self) -> bool:
        return self not in (Policy.INFORM, Policy.INFORM_MULTILINE)

    @property
    def abort(self) -> bool:
        return self in (Policy.ASSURE, Policy.ASSURE_MULTILINE)

    @property
    def mark(self) -> Callable[[Any], str]:
        if self is Policy.INFORM:
            return identity
        if self is Policy.INFORM_MULTILINE:
            return no_mark
        return pass_fail

    @property
    def on_fail_msg(self) -> Optional[str]:
        return FAILED_ASSURANCE_MESSAGE if self.abort else None


# ----------------------------------------------------------------------
# Reporter
# ----------------------------------------------------------------------

class FailureTally:
    """The run's failure counter. Only ActionReporter increments it."""

    def __init__(self) -> None:
        self.count = 0

    def increment(self) -> None:
        self.count += 1

    @property
    def exit_code(self) -> int:
        return 0 if self.count == 0 else 1


class ActionReporter:
    def __init__(self, tally: FailureTally | None = None, console: Console | None = None):
        self.tally = tally if tally is not None else FailureTally()
        self.console = console or get_console()

    def perform(self, message: str, policy: Policy, thunk: Callable[[], Any]) -> Any:
        """
        Run `thunk` once as a reported action and return its result.

        Raises:
            RunAborted: if the result is a failure and the policy aborts
        """
        line = f"{message}... "
        self.console.begin_action(line, policy.multiline)

        result = thunk()

        endline = f"...{message} " if policy.multiline else None
        self.console.end_action(line, policy.mark(result), endline)

        if is_failure(result):
            if policy.on_fail_msg is not None:
                self.console.print_info(policy.on_fail_msg)
            if policy.tally:
                self.tally.increment()
            if policy.abort:
                raise RunAborted(action=message)
        return result

    def inform(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.INFORM, thunk)

    def inform_multiline(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.INFORM_MULTILINE, thunk)

    def attempt(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.ATTEMPT, thunk)

    def attempt_multiline(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.ATTEMPT_MULTILINE, thunk)

    def assure(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.ASSURE, thunk)

    def assure_multiline(self, message: str, thunk: Callable[[], Any]) -> Any:
        return self.perform(message, Policy.ASSURE_MULTILINE, thunk)

    def assured_platform(self, purpose: str, name: str, config: ProjectConfig) -> PlatformDefinition:
        """Look up a platform, aborting the run if the config doesn't define it."""
        definition = config.platform_definition(name)
        self.assure(
            f"Requested {purpose} platform '{name}' is defined in 'platforms' YML",
            lambda: definition is not None,
        )
        return definition

    def final_report(self, transcript: Transcript | None = None) -> int:
        """Print the failure tally and return the process exit status."""
        self.console.print_failures(self.tally.count, transcript)
        return self.tally.exit_code
