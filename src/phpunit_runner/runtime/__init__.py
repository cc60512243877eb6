#
# src/phpunit_runner/runtime/__init__.py
#
"""
Run orchestration: the test tree contracts, sinks and the orchestrator.
"""
from .orchestrator import RunOrchestrator, RunState
from .sinks import ConsoleOutput, RecordingTestRun, TestOutcome, TestResultRecord
from .tree import RunRequest, TestCase, TestCollection, TestItem, TestItemLike, TestTree, TestType

__all__ = [
    "ConsoleOutput",
    "RecordingTestRun",
    "RunOrchestrator",
    "RunRequest",
    "RunState",
    "TestCase",
    "TestCollection",
    "TestItem",
    "TestItemLike",
    "TestOutcome",
    "TestResultRecord",
    "TestTree",
    "TestType",
]

# 🔼⚙️
