"""CLI module for mts."""

import logging
from pathlib import Path

import click

from mts.cli.exit_codes import ExitCode
from mts.config import ConfigError, build_logging_config, get_config
from mts.logging import configure_logging

_logging_configured: bool = False

logger = logging.getLogger(__name__)


def _configure_logging(
    ctx: click.Context,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging from the loaded config plus CLI overrides."""
    global _logging_configured
    if _logging_configured:
        return

    config = ctx.obj["config"]
    try:
        logging_config = build_logging_config(
            config.logging,
            level=log_level,
            file=log_file,
            format="json" if log_json else None,
        )
    except ValueError as e:
        click.echo(f"Error: Invalid logging configuration: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)
    configure_logging(logging_config)
    _logging_configured = True


@click.group()
@click.version_option(package_name="mts")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ~/.mts/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Media Transcode Supervisor - resilient ffmpeg transcoding for live streams."""
    ctx.ensure_object(dict)

    # Preserve a config injected by tests
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = get_config(config_path=config_path, strict=True)
        except (ConfigError, ValueError) as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(ExitCode.CONFIG_ERROR)

    _configure_logging(ctx, log_level, log_file, log_json)


# Defer import to avoid circular dependency
def _register_commands():
    from mts.cli.probe import probe_command
    from mts.cli.profiles import profiles_group
    from mts.cli.transcode import transcode_command

    main.add_command(probe_command)
    main.add_command(profiles_group)
    main.add_command(transcode_command)


_register_commands()
