"""CLI entry point for prquorum.

Commands:
  check  scan pull requests and print every qualifying version
  in     resolve one version into metadata files and a working copy

Both commands read one JSON request from stdin and write one JSON response
to stdout; logs and progress go to stderr.
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prquorum_cli.commands.check import check_cmd
from prquorum_cli.commands.fetch import in_cmd

console = Console(stderr=True)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prquorum"),
    prog_name="prquorum",
)
@click.option(
    "--config",
    "config_path",
    default=".prquorum.yml",
    show_default=True,
    help="Path to a YAML file with default source settings.",
    envvar="PRQUORUM_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="PRQUORUM_LOG_LEVEL",
    help="Verbosity of the stderr log.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """Gate CI pipelines on pull request approvals and reviews."""
    ctx.ensure_object(dict)
    _configure_logging(log_level)
    ctx.obj["config_path"] = config_path


main.add_command(check_cmd)
main.add_command(in_cmd)
