#
# src/phpunit_runner/runner/__init__.py
#
"""
Process execution sub-package: spawning, streaming and result observers.
"""
from .observers import OutputChannelObserver, TestResultObserver
from .protocols import OutputSink, TestRun, TestRunnerObserver
from .subprocess_runner import RunHandle, TestRunner

__all__ = [
    "OutputChannelObserver",
    "OutputSink",
    "RunHandle",
    "TestResultObserver",
    "TestRun",
    "TestRunner",
    "TestRunnerObserver",
]

# 🔼⚙️
