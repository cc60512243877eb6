# src/phpunit_runner/cli/run_cmds.py

import asyncio
import logging
import sys
from pathlib import Path

import attrs
import click
import structlog

from phpunit_runner.cli.utils import config_option, logging_options, setup_logging_from_context
from phpunit_runner.command import CommandBuilder
from phpunit_runner.config import RunnerConfig, load_config
from phpunit_runner.exceptions import ConfigurationError
from phpunit_runner.runtime import (
    ConsoleOutput,
    RecordingTestRun,
    RunOrchestrator,
    RunRequest,
    TestCase,
    TestCollection,
    TestType,
)
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")

PASSTHROUGH_SETTINGS = {"ignore_unknown_options": True, "allow_interspersed_args": False}


def _load(ctx: click.Context, config_path: Path | None, cwd: Path | None, extra_args: tuple[str, ...]) -> RunnerConfig:
    try:
        config = load_config(config_path, overrides={"cwd": cwd})
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)
    return attrs.evolve(config, args=(*extra_args, *config.args))


def _build_request(test_file: str | None, method: str | None) -> tuple[TestCollection, RunRequest]:
    collection = TestCollection()
    if test_file is None:
        return collection, RunRequest()

    if method:
        # PHPUnit ids are namespaced; the observer matches `Class::method` by suffix.
        case = TestCase(id=f"{Path(test_file).stem}::{method}", type=TestType.METHOD, file=test_file, name=method)
    else:
        case = TestCase(id=test_file, type=TestType.CLASS, file=test_file)
    item = collection.add(case)
    return collection, RunRequest(include=[item])


def _run_headless_orchestrator(orchestrator: RunOrchestrator, request: RunRequest, run: RecordingTestRun) -> int:
    try:
        exit_codes = asyncio.run(orchestrator.start_test_run(request, run))
    except KeyboardInterrupt:
        log.warning("Test run interrupted by KeyboardInterrupt (CTRL-C).")
        return 130
    except Exception:
        log.critical("Test run exited with an unhandled exception.", exc_info=True)
        return 1
    finally:
        logging.shutdown()

    if not exit_codes or any(code != 0 for code in exit_codes):
        return 1
    return 0


@click.command(name="run", context_settings=PASSTHROUGH_SETTINGS)
@config_option
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Working directory for PHPUnit (replaces ${PWD} and ${workspaceFolder}).",
)
@click.option("--file", "test_file", default=None, help="Run only this test file.")
@click.option("--method", default=None, help="Run only this test method of --file.")
@logging_options
@click.argument("phpunit_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run_cli(
    ctx: click.Context,
    config_path: Path | None,
    cwd: Path | None,
    test_file: str | None,
    method: str | None,
    phpunit_args: tuple[str, ...],
    **kwargs,
):
    """Run PHPUnit and report each test; extra ARGS are passed to PHPUnit."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    if method and not test_file:
        raise click.UsageError("--method requires --file.")

    config = _load(ctx, config_path, cwd, phpunit_args)
    collection, request = _build_request(test_file, method)
    orchestrator = RunOrchestrator(config, collection, ConsoleOutput())
    run = RecordingTestRun()

    log.info("Initializing run command...", file=test_file, method=method)
    exit_code = _run_headless_orchestrator(orchestrator, request, run)

    log.info("'run' command finished.", exit_code=exit_code, failures=len(run.failures()))
    if exit_code != 0:
        sys.exit(exit_code)


@click.command(name="command", context_settings=PASSTHROUGH_SETTINGS)
@config_option
@click.option(
    "--cwd",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Working directory used for placeholder substitution.",
)
@logging_options
@click.argument("phpunit_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def command_cli(
    ctx: click.Context,
    config_path: Path | None,
    cwd: Path | None,
    phpunit_args: tuple[str, ...],
    **kwargs,
):
    """Print the command line that `run` would execute, one token per line."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = _load(ctx, config_path, cwd, phpunit_args)
    builder = CommandBuilder.from_config(config)
    for token in builder.build(config.cwd or Path.cwd()):
        click.echo(token)

# 🔼⚙️
