# src/phpunit_runner/runtime/sinks.py
"""
Concrete run-report and output sinks for headless use.
"""
from collections.abc import Sequence
from enum import Enum
from typing import Any

import structlog
from attrs import field, mutable
from rich.console import Console

from phpunit_runner.protocol.events import FailureDetail

log = structlog.get_logger("runtime.sinks")


class TestOutcome(Enum):
    __test__ = False

    ENQUEUED = "enqueued"
    STARTED = "started"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


# Mapping of outcomes to display emojis for the console summary
OUTCOME_EMOJI_MAP = {
    TestOutcome.ENQUEUED: "⏳",
    TestOutcome.STARTED: "🔄",
    TestOutcome.PASSED: "✅",
    TestOutcome.FAILED: "❌",
    TestOutcome.SKIPPED: "➖",
}


@mutable(slots=True)
class TestResultRecord:
    __test__ = False

    id: str
    outcome: TestOutcome = TestOutcome.ENQUEUED
    duration: int | None = None
    message: str | None = None
    details: tuple[FailureDetail, ...] = ()


@mutable(slots=True)
class RecordingTestRun:
    """
    Keeps the latest outcome per test item; satisfies the TestRun protocol.
    """

    results: dict[str, TestResultRecord] = field(factory=dict)
    output: list[str] = field(factory=list)
    ended: bool = field(default=False)

    def _record(self, item: Any) -> TestResultRecord:
        record = self.results.get(item.id)
        if record is None:
            record = self.results[item.id] = TestResultRecord(id=item.id)
        return record

    def enqueued(self, item: Any) -> None:
        self._record(item).outcome = TestOutcome.ENQUEUED

    def started(self, item: Any) -> None:
        self._record(item).outcome = TestOutcome.STARTED

    def passed(self, item: Any, duration: int) -> None:
        record = self._record(item)
        record.outcome = TestOutcome.PASSED
        record.duration = duration

    def failed(self, item: Any, message: str, details: Sequence[FailureDetail], duration: int) -> None:
        record = self._record(item)
        record.outcome = TestOutcome.FAILED
        record.message = message
        record.details = tuple(details)
        record.duration = duration

    def skipped(self, item: Any) -> None:
        self._record(item).outcome = TestOutcome.SKIPPED

    def append_output(self, text: str) -> None:
        self.output.append(text)

    def end(self) -> None:
        self.ended = True
        log.debug("Test run ended", tests=len(self.results), failed=len(self.failures()))

    def failures(self) -> list[TestResultRecord]:
        return [r for r in self.results.values() if r.outcome is TestOutcome.FAILED]


class ConsoleOutput:
    """Writes the run transcript to a rich console; satisfies the OutputSink protocol."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(highlight=False)

    def append_line(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    def clear(self) -> None:
        # Scrollback is left alone; a rule marks where the new run starts.
        self.console.rule()

    def show(self) -> None:
        pass


# 🔼⚙️
