"""Helpers shared by the check and in commands: stdin decoding, source loading, error mapping."""

from __future__ import annotations

import json
from contextlib import contextmanager

import click

from prquorum_core.config import load_config, parse_source
from prquorum_core.errors import DecodeError, PrquorumError
from prquorum_core.models import PolicyConfig


def read_request(stream, allowed: tuple[str, ...]) -> dict:
    """Decode the single JSON request object the CI system writes to stdin."""
    try:
        request = json.load(stream)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Failed to decode request from stdin: {e}") from e
    if not isinstance(request, dict):
        raise DecodeError(f"Request must be a JSON object, got {type(request).__name__}.")
    unknown = set(request) - set(allowed)
    if unknown:
        raise DecodeError(f"Unknown request field(s): {', '.join(sorted(unknown))}")
    return request


def load_source(config_path: str, source: dict | None) -> PolicyConfig:
    from prquorum_cli.auth import resolve_github_token

    if source is not None and not isinstance(source, dict):
        raise DecodeError(f"source must be an object, got {type(source).__name__}.")
    merged = load_config(config_path, overrides=source)
    if not merged.get("username"):
        merged["access_token"] = resolve_github_token(merged.get("access_token", "")) or ""
    return parse_source(merged)


@contextmanager
def reported_errors():
    """Turn prquorum failures into a ClickException: exit 1, message on stderr, nothing on stdout."""
    try:
        yield
    except PrquorumError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
