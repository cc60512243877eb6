#
# src/phpunit_runner/protocol/events.py
#
"""
Typed events decoded from the PHPUnit TeamCity output stream.
"""
from typing import TypeAlias

from attrs import define, field


@define(frozen=True, slots=True)
class FailureDetail:
    """One `file:line` frame from a failure's `details` attribute."""
    file: str
    line: int


# --- Lifecycle events ---
@define(frozen=True, slots=True)
class RunStarted:
    test_count: int
    flow_id: str | None = None


@define(frozen=True, slots=True)
class SuiteStarted:
    id: str
    name: str
    file: str | None = None
    location_hint: str | None = None
    flow_id: str | None = None


@define(frozen=True, slots=True)
class SuiteFinished:
    id: str
    name: str
    file: str | None = None
    duration: int = 0
    flow_id: str | None = None


@define(frozen=True, slots=True)
class TestStarted:
    __test__ = False

    id: str
    name: str
    file: str | None = None
    location_hint: str | None = None
    flow_id: str | None = None


@define(frozen=True, slots=True)
class TestFinished:
    __test__ = False

    id: str
    name: str
    file: str | None = None
    duration: int = 0
    flow_id: str | None = None


@define(frozen=True, slots=True)
class TestFailed:
    __test__ = False

    id: str
    name: str
    message: str
    details: tuple[FailureDetail, ...] = field(default=(), converter=tuple)
    file: str | None = None
    duration: int = 0
    flow_id: str | None = None
    # Only present on comparison failures.
    actual: str | None = None
    expected: str | None = None


@define(frozen=True, slots=True)
class TestIgnored:
    __test__ = False

    id: str
    name: str
    message: str = ""
    file: str | None = None
    duration: int = 0
    flow_id: str | None = None


@define(frozen=True, slots=True)
class RunFinished:
    pass


# --- Informational events (free text the runner prints) ---
@define(frozen=True, slots=True)
class OutputLine:
    text: str


@define(frozen=True, slots=True)
class VersionReported:
    version: str
    text: str


@define(frozen=True, slots=True)
class RuntimeReported:
    runtime: str
    text: str


@define(frozen=True, slots=True)
class ConfigurationReported:
    file: str
    text: str


@define(frozen=True, slots=True)
class ProcessesReported:
    processes: int
    text: str


@define(frozen=True, slots=True)
class DurationReported:
    time: str
    memory: str | None
    text: str


@define(frozen=True, slots=True)
class SummaryReported:
    """Final tally, e.g. `OK (3 tests, 3 assertions)`; keys are lower-cased plural nouns."""
    counts: dict[str, int]
    text: str
    success: bool


StartEvent: TypeAlias = SuiteStarted | TestStarted
TerminalEvent: TypeAlias = SuiteFinished | TestFinished | TestFailed | TestIgnored
InfoEvent: TypeAlias = (
    OutputLine
    | VersionReported
    | RuntimeReported
    | ConfigurationReported
    | ProcessesReported
    | DurationReported
    | SummaryReported
)
TestEvent: TypeAlias = RunStarted | StartEvent | TerminalEvent | RunFinished | InfoEvent

START_EVENTS = (SuiteStarted, TestStarted)
TERMINAL_EVENTS = (SuiteFinished, TestFinished, TestFailed, TestIgnored)

# 🔼⚙️
