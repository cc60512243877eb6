#
# src/phpunit_runner/runner/protocols.py
#
"""
Defines the observer and sink contracts fed by the process runner.
"""
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from phpunit_runner.protocol.events import FailureDetail, TestEvent

if TYPE_CHECKING:
    from phpunit_runner.command import CommandSpec


class TestRunnerObserver:
    """
    Receives everything one runner publishes, in stream order per process.

    Subclasses override only the callbacks they care about.
    """

    __test__ = False

    def command(self, spec: "CommandSpec") -> None:
        """Called once per process, before it is spawned."""

    def event(self, event: TestEvent) -> None:
        """Called for each decoded protocol event."""

    def error(self, text: str) -> None:
        """Called for stderr output and spawn failures."""

    def close(self, exit_code: int | None) -> None:
        """Called once per process after it exited (None if it never started)."""


@runtime_checkable
class TestRun(Protocol):
    """
    Run-report sink of the host UI for a single test run.
    """

    def enqueued(self, item: Any) -> None: ...

    def started(self, item: Any) -> None: ...

    def passed(self, item: Any, duration: int) -> None: ...

    def failed(self, item: Any, message: str, details: Sequence[FailureDetail], duration: int) -> None: ...

    def skipped(self, item: Any) -> None: ...

    def append_output(self, text: str) -> None: ...

    def end(self) -> None: ...


@runtime_checkable
class OutputSink(Protocol):
    """
    Log/output channel the human-readable transcript is written to.
    """

    def append_line(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def show(self) -> None: ...

# 🔼⚙️
