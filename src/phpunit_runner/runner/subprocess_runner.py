#
# src/phpunit_runner/runner/subprocess_runner.py
#
"""
Spawns the test runner with asyncio.subprocess and streams its output through the parser.
"""
import asyncio
import codecs
import os
from collections.abc import Iterable

import structlog

from phpunit_runner.command import CommandSpec
from phpunit_runner.exceptions import ProcessSpawnError
from phpunit_runner.protocol.events import TestEvent
from phpunit_runner.protocol.parser import ProtocolParser
from phpunit_runner.runner.protocols import TestRunnerObserver
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runner.subprocess")

READ_CHUNK_SIZE = 4096


class _Broadcast(TestRunnerObserver):
    """Fans callbacks out to every observer; one failing observer does not starve the rest."""

    def __init__(self, observers: list[TestRunnerObserver]):
        self._observers = observers

    def _each(self, callback: str, *args) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, callback)(*args)
            except Exception:
                log.exception("Observer failed", observer=type(observer).__name__, callback=callback)

    def command(self, spec: CommandSpec) -> None:
        self._each("command", spec)

    def event(self, event: TestEvent) -> None:
        self._each("event", event)

    def error(self, text: str) -> None:
        self._each("error", text)

    def close(self, exit_code: int | None) -> None:
        self._each("close", exit_code)


class RunHandle:
    """
    One spawned runner process.

    `kill()` only requests termination; the exit is observed through the same
    path as a normal completion, so callers always `await wait()`.
    """

    def __init__(self, spec: CommandSpec, broadcast: TestRunnerObserver):
        self.spec = spec
        self.exit_code: int | None = None
        self._broadcast = broadcast
        self._parser = ProtocolParser(path_replacer=spec.path_replacer)
        self._process: asyncio.subprocess.Process | None = None
        self._kill_requested = False
        self._task: asyncio.Task[int | None] | None = None
        self._log = log.bind(command=" ".join(spec.argv), cwd=str(spec.cwd or ""))

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def kill_requested(self) -> bool:
        return self._kill_requested

    def start(self) -> "RunHandle":
        if self._task is None:
            self._task = asyncio.create_task(self._execute())
        return self

    async def wait(self) -> int | None:
        """Settles when the process has exited and every event was published."""
        if self._task is None:
            self.start()
        return await self._task

    def kill(self) -> None:
        if self._kill_requested:
            return
        self._kill_requested = True
        self._terminate()

    def _terminate(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        self._log.info("Terminating test runner", pid=process.pid, emoji_key="kill")
        try:
            process.terminate()
        except ProcessLookupError:
            self._log.debug("Process already gone", pid=process.pid)

    async def _execute(self) -> int | None:
        self._broadcast.command(self.spec)
        self._log.info("Executing test command", emoji_key="spawn")

        env = {**os.environ, **self.spec.env} if self.spec.env else None
        try:
            process = await asyncio.create_subprocess_exec(
                *self.spec.argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.spec.cwd,
                env=env,
            )
        except OSError as e:
            error = ProcessSpawnError(self.spec.argv, e)
            self._log.error("Test command could not be started", error=str(e), emoji_key="fail")
            self._broadcast.error(str(error))
            self._broadcast.close(None)
            return None

        self._process = process
        if self._kill_requested:
            self._terminate()

        exit_code: int | None = None
        readers = [
            asyncio.create_task(self._read_stdout(process.stdout)),
            asyncio.create_task(self._read_stderr(process.stderr)),
        ]
        try:
            await asyncio.gather(*readers)
            exit_code = await process.wait()
        except asyncio.CancelledError:
            self._log.warning("Test command task was cancelled.")
            self.kill()
            raise
        except Exception as e:
            self._log.exception("Reading test command output failed", error=str(e), emoji_key="fail")
            self._broadcast.error(f"Reading test output failed: {e}")
            self.kill()
            exit_code = await process.wait()
        finally:
            for reader in readers:
                reader.cancel()
            self._publish(self._parser.finish())
            self.exit_code = exit_code
            self._log.info("Test command finished", exit_code=exit_code, killed=self._kill_requested)
            self._broadcast.close(exit_code)
        return exit_code

    async def _read_stdout(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while chunk := await stream.read(READ_CHUNK_SIZE):
            self._publish(self._parser.feed(decoder.decode(chunk)))
        self._publish(self._parser.feed(decoder.decode(b"", final=True)))

    async def _read_stderr(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while line := await stream.readline():
            self._broadcast.error(line.decode("utf-8", errors="replace").rstrip("\r\n"))

    def _publish(self, events: Iterable[TestEvent]) -> None:
        for event in events:
            self._broadcast.event(event)


class TestRunner:
    """
    Runs command specs and publishes their decoded output to observers.

    Each `run()` gets its own parser, so handles share no mutable state.
    """

    __test__ = False

    def __init__(self) -> None:
        self._observers: list[TestRunnerObserver] = []
        self._broadcast = _Broadcast(self._observers)

    def observe(self, observer: TestRunnerObserver) -> None:
        self._observers.append(observer)

    def run(self, spec: CommandSpec) -> RunHandle:
        """Schedules the process; must be called with a running event loop."""
        return RunHandle(spec, self._broadcast).start()


# 🔼⚙️
