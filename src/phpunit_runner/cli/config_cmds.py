# src/phpunit_runner/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from phpunit_runner.cli.utils import config_option, logging_options, setup_logging_from_context
from phpunit_runner.config import load_config
from phpunit_runner.exceptions import ConfigurationError
from phpunit_runner.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


@click.group(name="config")
def config_cli():
    """Commands for inspecting configuration."""
    pass


@config_cli.command(name="show")
@config_option
@logging_options
@click.pass_context
def show_config(ctx: click.Context, config_path: Path | None, **kwargs):
    """Load, validate, and display the resolved configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    log.info("Executing 'config show' command", config_path=str(config_path))

    try:
        config = load_config(config_path)
        click.echo(pretty_repr(config, expand_all=True))
        if config.is_remote:
            log.info("Remote execution configured", command=config.command, mappings=len(config.paths))
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)
    except Exception as e:
        log.critical(
            "An unexpected error occurred during 'config show'",
            error=str(e),
            exc_info=True,
        )
        click.echo(f"Error: An unexpected issue occurred: {e}", err=True)
        ctx.exit(2)

# 🔼⚙️
