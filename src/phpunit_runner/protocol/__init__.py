#
# src/phpunit_runner/protocol/__init__.py
#
"""
TeamCity service-message decoding for PHPUnit output.
"""
from .events import (
    START_EVENTS,
    TERMINAL_EVENTS,
    ConfigurationReported,
    DurationReported,
    FailureDetail,
    OutputLine,
    ProcessesReported,
    RunFinished,
    RunStarted,
    RuntimeReported,
    SuiteFinished,
    SuiteStarted,
    SummaryReported,
    TestEvent,
    TestFailed,
    TestFinished,
    TestIgnored,
    TestStarted,
    VersionReported,
)
from .parser import ProtocolParser, parse_service_message, unescape

__all__ = [
    "START_EVENTS",
    "TERMINAL_EVENTS",
    "ConfigurationReported",
    "DurationReported",
    "FailureDetail",
    "OutputLine",
    "ProcessesReported",
    "ProtocolParser",
    "RunFinished",
    "RunStarted",
    "RuntimeReported",
    "SuiteFinished",
    "SuiteStarted",
    "SummaryReported",
    "TestEvent",
    "TestFailed",
    "TestFinished",
    "TestIgnored",
    "TestStarted",
    "VersionReported",
    "parse_service_message",
    "unescape",
]

# 🔼⚙️
