"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.exceptions import ConfigError
from ...core.logging import setup_logging, get_logger, get_stderr_console
from ..config.loader import ConfigLoader
from .pull import register_pull_commands

logger = get_logger(__name__)
stderr_console = get_stderr_console()

app = typer.Typer(
    name="formpull",
    add_completion=False,
    help="Pull forms and submissions from Collect devices and backups",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

register_pull_commands(app)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML configuration file (default: ~/.formpull/config.toml)",
    ),
):
    """
    Formpull - pull forms from Collect storage directories

    Use subcommands to perform different operations:
    - list: Show the forms a source offers
    - pull: Pull selected forms and their submissions
    """
    try:
        config = ConfigLoader().load(config_file, {"log_level": log_level})
    except ConfigError as e:
        stderr_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(level=config.log_level, log_file=log_file)
    logger.debug("Loaded configuration: %s", config)
    ctx.obj = config


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
