"""in command: resolve one version into metadata files and a working copy."""

from __future__ import annotations

import json
import os

import click
from rich.console import Console

from prquorum_cli.request import load_source, read_request, reported_errors
from prquorum_core.config import parse_params
from prquorum_core.errors import ArtifactError, DecodeError
from prquorum_core.gh.client import GithubClient
from prquorum_core.git.client import GitClient
from prquorum_core.metadata import serialize_fields
from prquorum_core.models import Version
from prquorum_core.resolver import (
    Resolution,
    ResolvedMessage,
    integration_strategy,
    materialize,
    resolve,
    source_directory,
)
from prquorum_store.directory import DirectoryStore
from prquorum_store.models import ArtifactRecord, FieldRecord, MessageRecord

console = Console(stderr=True)


def _message_to_record(resolved: ResolvedMessage) -> MessageRecord:
    return MessageRecord(
        fields=[FieldRecord(name=f.name, value=f.value) for f in serialize_fields(resolved.message)],
        matches=dict(resolved.matches),
    )


def _resolution_to_record(resolution: Resolution) -> ArtifactRecord:
    """Map a core Resolution to the store's ArtifactRecord.

    The CLI owns this mapping. prquorum_core has no store knowledge and
    prquorum_store has no core knowledge.
    """
    return ArtifactRecord(
        version=resolution.version.to_dict(),
        metadata=[FieldRecord(name=f.name, value=f.value) for f in resolution.metadata],
        approvals=[_message_to_record(m) for m in resolution.approvals],
        reviews=[_message_to_record(m) for m in resolution.reviews],
    )


@click.command("in")
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.pass_context
def in_cmd(ctx, output_dir: str):
    """Resolve a version into OUTPUT_DIR.

    \b
    Reads {"source": {...}, "version": {...}, "params": {...}} from stdin,
    writes version.json, metadata.json and one file per metadata field,
    then (unless params.skip_download) checks out the pull request under
    OUTPUT_DIR/<source_path> and integrates it with params.integration_tool
    (rebase, merge or checkout). Prints {"version", "metadata"} to stdout.
    """
    config_path = ctx.obj["config_path"] if ctx.obj else ".prquorum.yml"

    with reported_errors():
        request = read_request(click.get_text_stream("stdin"), ("source", "version", "params"))
        config = load_source(config_path, request.get("source"))
        if request.get("version") is None:
            raise DecodeError("Request is missing the version to fetch.")
        version = Version.from_dict(request["version"])
        params = parse_params(request.get("params"))

        # Reject an unknown integration tool before touching anything.
        strategy = None if params.skip_download else integration_strategy(params)

        client = GithubClient.from_config(config)
        resolution = resolve(config, version, client)

        store = DirectoryStore(output_dir)
        try:
            store.save(_resolution_to_record(resolution), map_metadata=params.map_metadata)
        except OSError as e:
            raise ArtifactError(f"Failed to write artifacts to {output_dir}: {e}") from e
        finally:
            store.close()

        if strategy is not None:
            source_dir = source_directory(output_dir, params)
            try:
                os.makedirs(source_dir, exist_ok=True)
            except OSError as e:
                raise ArtifactError(f"Failed to create source directory {source_dir}: {e}") from e

            console.print(f"Fetching PR #{resolution.pull.number} into {source_dir} ({strategy})")
            git = GitClient(
                source_dir,
                access_token=config.access_token,
                username=config.username,
                password=config.password,
                skip_ssl=config.skip_ssl,
                disable_git_lfs=config.disable_git_lfs,
            )
            materialize(resolution.pull, params, strategy, git)

    console.print(
        f"[green]PR #{resolution.pull.number}: {len(resolution.approvals)} approval(s), "
        f"{len(resolution.reviews)} review(s).[/green]"
    )
    click.echo(json.dumps({"version": version.to_dict(), "metadata": resolution.metadata.to_list()}))
