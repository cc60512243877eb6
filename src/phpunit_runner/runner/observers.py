# src/phpunit_runner/runner/observers.py
"""
Observers that apply runner events to a test-run sink and to an output transcript.
"""
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from phpunit_runner.command import CommandSpec
from phpunit_runner.config import RunnerConfig
from phpunit_runner.protocol.events import (
    ConfigurationReported,
    DurationReported,
    OutputLine,
    ProcessesReported,
    RuntimeReported,
    SummaryReported,
    TestEvent,
    TestFailed,
    TestFinished,
    TestIgnored,
    TestStarted,
    VersionReported,
)
from phpunit_runner.runner.protocols import OutputSink, TestRun, TestRunnerObserver
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runner.observers")

INFO_EVENTS = (
    OutputLine,
    VersionReported,
    RuntimeReported,
    ConfigurationReported,
    ProcessesReported,
    DurationReported,
    SummaryReported,
)


class TestResultObserver(TestRunnerObserver):
    """
    Maps test events onto the queued items of a run and reports their outcome.

    An event id matches a queued case exactly, or as one of its data-set rows
    (`<id> with data set #0`), or by namespace suffix when the case id only
    names `Class::method`. Rows and suffix matches are folded together: the item
    starts once and keeps the worst outcome reported for it.
    """

    __test__ = False

    DATA_SET_MARKER = " with data set "
    SEVERITY = {TestFinished: 0, TestIgnored: 1, TestFailed: 2}

    def __init__(self, queue: Sequence[tuple[Any, Any]], run: TestRun):
        self.queue = queue
        self.run = run
        self._started: set[str] = set()
        self._worst: dict[str, int] = {}

    def event(self, event: TestEvent) -> None:
        handler = self._handlers().get(type(event))
        if handler is None:
            return
        match = self._find(event.id)
        if match is None:
            log.debug("Event for unqueued test", id=event.id, kind=type(event).__name__)
            return
        item, case, exact = match
        if not exact and not self._should_report(case.id, event):
            return
        handler(item, event)

    def error(self, text: str) -> None:
        self.run.append_output(f"{text}\r\n")

    def _handlers(self) -> dict[type, Callable[[Any, Any], None]]:
        return {
            TestStarted: lambda item, _event: self.run.started(item),
            TestFinished: lambda item, event: self.run.passed(item, event.duration),
            TestFailed: lambda item, event: self.run.failed(item, event.message, event.details, event.duration),
            TestIgnored: lambda item, _event: self.run.skipped(item),
        }

    def _find(self, test_id: str) -> tuple[Any, Any, bool] | None:
        for item, case in self.queue:
            if case.id == test_id:
                return item, case, True
        base = test_id.partition(self.DATA_SET_MARKER)[0]
        for item, case in self.queue:
            if base == case.id or base.endswith(f"\\{case.id}"):
                return item, case, False
        return None

    def _should_report(self, case_id: str, event: TestEvent) -> bool:
        if isinstance(event, TestStarted):
            if case_id in self._started:
                return False
            self._started.add(case_id)
            return True
        severity = self.SEVERITY[type(event)]
        if severity < self._worst.get(case_id, -1):
            return False
        self._worst[case_id] = severity
        return True


class OutputChannelObserver(TestRunnerObserver):
    """
    Writes a readable transcript of each process to an output sink.

    Honors `clear_output_on_run` and the `show_after_execution` policy.
    """

    def __init__(self, output: OutputSink, config: RunnerConfig):
        self.output = output
        self.config = config
        self._has_failure = False
        self._cleared = False

    def command(self, spec: CommandSpec) -> None:
        # One request may spawn several processes; clear only before the first.
        if self.config.clear_output_on_run and not self._cleared:
            self.output.clear()
            self._cleared = True
        self.output.append_line(" ".join(spec.argv))
        self.output.append_line("")

    def event(self, event: TestEvent) -> None:
        if isinstance(event, INFO_EVENTS):
            self.output.append_line(event.text)
            if isinstance(event, SummaryReported) and not event.success:
                self._has_failure = True
        elif isinstance(event, TestFinished):
            self.output.append_line(f"✅ {event.name} {event.duration} ms")
        elif isinstance(event, TestFailed):
            self._has_failure = True
            self.output.append_line(f"❌ {event.name} {event.duration} ms")
            self._print_block(event.message)
            for detail in event.details:
                self.output.append_line(f"     {detail.file}:{detail.line}")
            self.output.append_line("")
        elif isinstance(event, TestIgnored):
            self.output.append_line(f"➖ {event.name} {event.duration} ms")
            self._print_block(event.message)

    def error(self, text: str) -> None:
        self.output.append_line(text)

    def close(self, exit_code: int | None) -> None:
        policy = self.config.show_after_execution
        failed = self._has_failure or exit_code != 0
        if policy == "always" or (policy == "onFailure" and failed):
            self.output.show()

    def _print_block(self, text: str) -> None:
        lines = [line for line in text.splitlines() if line.strip()]
        for index, line in enumerate(lines):
            self.output.append_line(f"  ┐ {line}" if index == 0 else f"  │ {line}")


# 🔼⚙️
