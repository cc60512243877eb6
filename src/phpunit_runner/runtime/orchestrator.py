# src/phpunit_runner/runtime/orchestrator.py

"""
High-level coordinator for a test run.
Discovers queued tests, spawns runner processes and joins them.
"""

import asyncio
from collections.abc import Iterable, Sequence
from enum import Enum, auto
from pathlib import Path

import structlog

from phpunit_runner.command import CommandBuilder, CommandSpec, ExecutionTarget, get_execution_target
from phpunit_runner.config import RunnerConfig
from phpunit_runner.runner import (
    OutputChannelObserver,
    OutputSink,
    RunHandle,
    TestResultObserver,
    TestRun,
    TestRunner,
)
from phpunit_runner.runtime.tree import RunRequest, TestCase, TestItemLike, TestTree
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.orchestrator")


class RunState(Enum):
    """Lifecycle of a single orchestrated run."""

    IDLE = auto()
    DISCOVERING = auto()  # Walking the test tree and enqueueing leaf cases.
    QUEUED = auto()
    RUNNING = auto()  # Processes spawned; waiting for all of them to exit.
    COMPLETED = auto()


class RunOrchestrator:
    """
    Owns the test tree handle and the "last run" of a session.

    Every run waits for all of its processes to settle, including after a
    cancellation, before it is marked COMPLETED.
    """

    def __init__(
        self,
        config: RunnerConfig,
        tree: TestTree,
        output: OutputSink,
        target: ExecutionTarget | None = None,
        cwd: Path | None = None,
    ):
        self.config = config
        self.tree = tree
        self.output = output
        self.builder = CommandBuilder(config=config, target=target or get_execution_target(config))
        self.cwd = cwd or config.cwd or Path.cwd()
        self.state = RunState.IDLE
        self.last_request: RunRequest | None = None

    def _set_state(self, new_state: RunState) -> None:
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        log.debug("Run state changed", old_state=old_state.name, new_state=new_state.name)

    async def start_test_run(self, request: RunRequest, run: TestRun) -> tuple[int | None, ...]:
        """
        Runs the requested tests and reports results to `run`.

        Args:
            request: Items to include (None for all), exclusions and the cancellation event.
            run: The host's run-report sink.

        Returns:
            The exit code of every spawned process (None where spawning failed).
        """
        self._set_state(RunState.DISCOVERING)
        queue: list[tuple[TestItemLike, TestCase]] = []
        roots = request.include if request.include is not None else self.tree.items()
        self._discover(roots, request, run, queue)
        log.info("Tests discovered", queued=len(queue), include_all=request.include is None)

        self._set_state(RunState.QUEUED)
        runner = TestRunner()
        runner.observe(TestResultObserver(queue, run))
        runner.observe(OutputChannelObserver(self.output, self.config))

        self._set_state(RunState.RUNNING)
        handles = [runner.run(spec) for spec in self._command_specs(request)]
        watcher = asyncio.create_task(self._kill_on_cancellation(request.cancellation, handles))

        try:
            results = await asyncio.gather(*(handle.wait() for handle in handles), return_exceptions=True)
        except asyncio.CancelledError:
            log.warning("Test run task was cancelled; killing runner processes.")
            for handle in handles:
                handle.kill()
            raise
        finally:
            watcher.cancel()

        exit_codes = self._process_results(results)
        run.end()
        self._set_state(RunState.COMPLETED)
        self.last_request = request
        log.info(
            "Test run completed",
            processes=len(handles),
            exit_codes=list(exit_codes),
            cancelled=request.cancellation.is_set(),
        )
        return exit_codes

    async def rerun_last(self, run: TestRun) -> tuple[int | None, ...]:
        """Repeats the most recent request with a fresh cancellation event."""
        if self.last_request is None:
            log.warning("No previous test run to repeat.")
            return ()
        previous = self.last_request
        return await self.start_test_run(
            RunRequest(include=previous.include, exclude=previous.exclude),
            run,
        )

    def _discover(
        self,
        items: Iterable[TestItemLike],
        request: RunRequest,
        run: TestRun,
        queue: list[tuple[TestItemLike, TestCase]],
    ) -> None:
        for item in items:
            if request.is_excluded(item):
                continue
            case = self.tree.get_test_case(item)
            if case is not None and case.is_leaf:
                run.enqueued(item)
                queue.append((item, case))
            else:
                self._discover(item.children, request, run, queue)

    def _command_specs(self, request: RunRequest) -> list[CommandSpec]:
        if request.include is None:
            return [self.builder.command_spec(self.cwd)]

        specs = []
        for item in request.include:
            case = self.tree.get_test_case(item)
            if case is None:
                log.warning("Included item has no test case; skipping", id=item.id)
                continue
            specs.append(case.update(self.builder).command_spec(self.cwd))
        return specs

    async def _kill_on_cancellation(self, cancellation: asyncio.Event, handles: Sequence[RunHandle]) -> None:
        await cancellation.wait()
        log.info("Cancellation requested; killing runner processes", count=len(handles))
        for handle in handles:
            handle.kill()

    def _process_results(self, results: Sequence[int | None | BaseException]) -> tuple[int | None, ...]:
        exit_codes: list[int | None] = []
        for result in results:
            if isinstance(result, BaseException):
                log.error("Runner process failed", error=str(result), exc_info=result)
                exit_codes.append(None)
            else:
                exit_codes.append(result)
        return tuple(exit_codes)


# 🔼⚙️
