"""check command: list every pull request version that satisfies the policy."""

from __future__ import annotations

import json

import click
from rich.console import Console

from prquorum_cli.request import load_source, read_request, reported_errors
from prquorum_core.gh.client import GithubClient
from prquorum_core.models import Version
from prquorum_core.scanner import check

console = Console(stderr=True)


@click.command("check")
@click.pass_context
def check_cmd(ctx):
    """Scan all pull requests and print the qualifying versions.

    \b
    Reads {"source": {...}, "version": {...}} from stdin and writes a JSON
    array of versions, oldest matching activity first, to stdout. The given
    version is validated but never used as a cursor: the full current set is
    always returned.
    """
    config_path = ctx.obj["config_path"] if ctx.obj else ".prquorum.yml"

    with reported_errors():
        request = read_request(click.get_text_stream("stdin"), ("source", "version"))
        config = load_source(config_path, request.get("source"))
        if request.get("version") is not None:
            Version.from_dict(request["version"])

        client = GithubClient.from_config(config)
        versions = check(config, client)

    console.print(f"[cyan]{len(versions)} qualifying pull request(s) in {config.repository}.[/cyan]")
    click.echo(json.dumps([v.to_dict() for v in versions]))
