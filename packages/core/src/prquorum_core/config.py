import os
from pathlib import Path
from typing import Optional

import yaml

from prquorum_core.errors import ConfigError, DecodeError
from prquorum_core.models import InParams, PolicyConfig

DEFAULT_SOURCE: dict = {
    "repository": "",
    "access_token": "",
    "username": "",
    "password": "",
    "github_endpoint": "",
    "skip_ssl": False,
    "disable_git_lfs": False,
    "only_mergeable": False,
    "states": [],  # empty = only "open"
    "ignore_states": [],
    "labels": [],  # empty = any label
    "ignore_labels": [],
    "approver_comments": [],  # regexes searched in comment/review bodies; empty = any body
    "approver_teams": [],  # "slug" or "org/slug"; empty = anyone
    "min_approvals": 0,
    "reviewer_comments": [],
    "reviewer_teams": [],
    "review_states": [],  # e.g. ["approved", "commented"]; empty = no review qualifies as a reviewer match
    "min_reviews": 0,
    "max_retries": 0,
}

DEFAULT_PARAMS: dict = {
    "source_path": "",
    "git_depth": 0,
    "submodules": False,
    "fetch_tags": False,
    "integration_tool": "",  # "" = rebase
    "skip_download": False,
    "map_metadata": False,
}

_LIST_KEYS = {k for k, v in DEFAULT_SOURCE.items() if isinstance(v, list)}


def load_config(config_path: str = ".prquorum.yml", overrides: Optional[dict] = None) -> dict:
    """
    Load the resource source by merging (in order of precedence):
      1. Built-in defaults
      2. .prquorum.yml in the current directory
      3. The ``source`` object of the request
    """
    config = {k: list(v) if isinstance(v, list) else v for k, v in DEFAULT_SOURCE.items()}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(file_config).__name__}.")
        config.update(file_config)

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config[key] = value

    # Fall back to the environment only when no credentials were configured.
    if not config.get("access_token"):
        config["access_token"] = os.environ.get("GITHUB_TOKEN", "")

    return config


def _check_keys(data: dict, allowed: dict, what: str) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        raise DecodeError(f"Unknown {what} field(s): {', '.join(sorted(unknown))}")
    for key, value in data.items():
        expected = type(allowed[key])
        if expected is int and isinstance(value, bool):
            raise DecodeError(f"{what}.{key} must be an integer, got {value!r}.")
        if not isinstance(value, expected):
            raise DecodeError(f"{what}.{key} must be of type {expected.__name__}, got {value!r}.")
        if key in _LIST_KEYS and not all(isinstance(item, str) for item in value):
            raise DecodeError(f"{what}.{key} must be a list of strings.")


def parse_source(data: dict) -> PolicyConfig:
    """Validate a merged source mapping and build a PolicyConfig."""
    if not isinstance(data, dict):
        raise DecodeError(f"source must be an object, got {type(data).__name__}.")
    _check_keys(data, DEFAULT_SOURCE, "source")
    return PolicyConfig(**data)


def parse_params(data: Optional[dict]) -> InParams:
    if data is None:
        return InParams()
    if not isinstance(data, dict):
        raise DecodeError(f"params must be an object, got {type(data).__name__}.")
    _check_keys(data, DEFAULT_PARAMS, "params")
    return InParams(**data)
