import asyncio
from unittest.mock import patch

import pytest

from phpunit_runner.config import RunnerConfig

PHPUNIT_OUTPUT = """\
PHPUnit 10.5.20 by Sebastian Bergmann and contributors.

Runtime:       PHP 8.3.4
Configuration: /app/phpunit.xml

##teamcity[testCount count='3' flowId='1234']
##teamcity[testSuiteStarted name='Tests\\Unit\\ExampleTest' locationHint='php_qn:///app/tests/Unit/ExampleTest.php::\\Tests\\Unit\\ExampleTest' flowId='1234']
##teamcity[testStarted name='test_passed' locationHint='php_qn:///app/tests/Unit/ExampleTest.php::\\Tests\\Unit\\ExampleTest::test_passed' flowId='1234']
##teamcity[testFinished name='test_passed' duration='3' flowId='1234']
##teamcity[testStarted name='test_failed' locationHint='php_qn:///app/tests/Unit/ExampleTest.php::\\Tests\\Unit\\ExampleTest::test_failed' flowId='1234']
##teamcity[testFailed name='test_failed' message='Failed asserting that false is true.' details=' /app/tests/Unit/ExampleTest.php:22|n phpvfscomposer:///app/vendor/phpunit/phpunit/phpunit:60 ' duration='5' flowId='1234']
##teamcity[testFinished name='test_failed' duration='5' flowId='1234']
##teamcity[testStarted name='test_skipped' locationHint='php_qn:///app/tests/Unit/ExampleTest.php::\\Tests\\Unit\\ExampleTest::test_skipped' flowId='1234']
##teamcity[testIgnored name='test_skipped' message='The MySQLi extension is not available.' duration='0' flowId='1234']
##teamcity[testFinished name='test_skipped' duration='0' flowId='1234']
##teamcity[testSuiteFinished name='Tests\\Unit\\ExampleTest' flowId='1234']
Time: 00:00.049, Memory: 6.00 MB

FAILURES!
Tests: 3, Assertions: 2, Failures: 1, Skipped: 1.
"""


class FakeProcess:
    """Stands in for asyncio.subprocess.Process, replaying scripted output."""

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        returncode: int = 0,
        hang: bool = False,
        pid: int = 4242,
    ):
        self.pid = pid
        self.returncode: int | None = None
        self.terminate_calls = 0
        self.stdout = asyncio.StreamReader()
        self.stdout.feed_data(stdout)
        self.stderr = asyncio.StreamReader()
        self.stderr.feed_data(stderr)
        self.stderr.feed_eof()
        self._exit_code = returncode
        self._exited = asyncio.Event()
        if not hang:
            self.stdout.feed_eof()
            self._exited.set()

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self._exited.is_set():
            return
        self._exit_code = -15
        self.stdout.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        self.returncode = self._exit_code
        return self.returncode


class FakeProcessFactory:
    """Replacement for asyncio.create_subprocess_exec; scripts are consumed in call order."""

    def __init__(self):
        self.scripts: list[dict | BaseException] = []
        self.calls: list[tuple[tuple[str, ...], dict]] = []
        self.processes: list[FakeProcess] = []

    def add(self, **script) -> None:
        self.scripts.append(script)

    def fail(self, error: BaseException) -> None:
        self.scripts.append(error)

    async def __call__(self, *argv: str, **kwargs) -> FakeProcess:
        self.calls.append((argv, kwargs))
        script = self.scripts.pop(0) if self.scripts else {}
        if isinstance(script, BaseException):
            raise script
        process = FakeProcess(pid=4242 + len(self.processes), **script)
        self.processes.append(process)
        return process


class BufferedOutput:
    """In-memory OutputSink."""

    def __init__(self):
        self.lines: list[str] = []
        self.clear_calls = 0
        self.show_calls = 0

    def append_line(self, text: str) -> None:
        self.lines.append(text)

    def clear(self) -> None:
        self.clear_calls += 1
        self.lines.clear()

    def show(self) -> None:
        self.show_calls += 1


@pytest.fixture
def phpunit_output() -> bytes:
    return PHPUNIT_OUTPUT.encode("utf-8")


@pytest.fixture
def fake_subprocess():
    """Patches process creation in the runner; yields the factory."""
    factory = FakeProcessFactory()
    with patch("phpunit_runner.runner.subprocess_runner.asyncio.create_subprocess_exec", new=factory):
        yield factory


@pytest.fixture
def output() -> BufferedOutput:
    return BufferedOutput()


@pytest.fixture
def remote_config() -> RunnerConfig:
    return RunnerConfig(
        command="docker exec app",
        paths={"/home/dev/project": "/app"},
        args=("-c", "phpunit.xml"),
    )
