# src/phpunit_runner/cli/main.py

"""
Main CLI entry point for phpunit-runner using Click.
Handles global options like logging level.
"""

import click
import structlog

from phpunit_runner import __version__
from phpunit_runner.cli.config_cmds import config_cli
from phpunit_runner.cli.run_cmds import command_cli, run_cli
from phpunit_runner.cli.utils import logging_options, setup_logging_from_context
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", package_name="phpunit-runner")
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    phpunit-runner: run PHPUnit and report its results.

    Runs PHPUnit locally or through a prefix command such as `docker exec`.
    Configuration precedence: CLI options > Environment Variables > Config File > Defaults.
    """
    ctx.ensure_object(dict)

    ctx.obj["LOG_LEVEL"] = log_level
    ctx.obj["LOG_FILE"] = log_file
    ctx.obj["JSON_LOGS"] = json_logs if json_logs is not None else False

    setup_logging_from_context(ctx)
    log.debug(
        "Main CLI group initialized",
        log_level=log_level,
        log_file=log_file,
        json_logs=json_logs,
    )


cli.add_command(config_cli)
cli.add_command(run_cli)
cli.add_command(command_cli)

if __name__ == "__main__":
    cli()

# 🖥️⚙️
