"""In phase: turn one version token back into metadata and a working copy.

The resolver never sees scanner state. Everything it needs comes from the
version (pull request number and the encoded Response lists) plus fresh API
calls: each referenced comment or review is re-fetched and the same regexes
are re-applied to extract named captures.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

from prquorum_core.errors import ConfigError, DecodeError
from prquorum_core.metadata import InMetadata, Metadata, serialize_fields
from prquorum_core.models import (
    INTEGRATION_TOOLS,
    InParams,
    Message,
    PolicyConfig,
    PullRequest,
    Response,
    Version,
    decode_responses,
)
from prquorum_core.policy import extract_captures

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_PATH = "source"


@dataclass
class ResolvedMessage:
    """A re-fetched message and the named captures extracted from its body."""

    message: Message
    matches: dict[str, str] = field(default_factory=dict)


@dataclass
class Resolution:
    version: Version
    pull: PullRequest
    approvals: list[ResolvedMessage]
    reviews: list[ResolvedMessage]
    metadata: Metadata


def integration_strategy(params: InParams) -> str:
    """Return the configured integration tool, raising ConfigError for unknown values."""
    tool = params.integration_tool or "rebase"
    if tool not in INTEGRATION_TOOLS:
        raise ConfigError(
            f"Invalid integration tool specified: {params.integration_tool!r}. "
            f"Choose one of: {', '.join(INTEGRATION_TOOLS)}."
        )
    return tool


def _parse_id(value: str, response: Response) -> int:
    """Empty and non-positive ids mean "not set"."""
    if not value:
        return 0
    try:
        return max(0, int(value))
    except ValueError as e:
        raise DecodeError(f"Invalid response id in {response.to_dict()}.") from e


def resolve_message(client, pr_id: int, response: Response, patterns: list[re.Pattern]) -> ResolvedMessage:
    review_id = _parse_id(response.review_id, response)
    comment_id = _parse_id(response.comment_id, response)

    if review_id and comment_id:
        raise DecodeError(f"Invalid response: both review_id and comment_id are set ({response.to_dict()}).")
    if review_id:
        message = client.get_review(pr_id, review_id)
    elif comment_id:
        message = client.get_comment(pr_id, comment_id)
    else:
        raise DecodeError(f"Invalid response: no comment or review id ({response.to_dict()}).")

    return ResolvedMessage(message=message, matches=extract_captures(patterns, message.body))


def build_metadata(pull: PullRequest, approvals: list[ResolvedMessage], reviews: list[ResolvedMessage]) -> Metadata:
    metadata = serialize_fields(
        InMetadata(
            pr_id=pull.number,
            pr_head_ref=pull.head.ref,
            pr_head_sha=pull.head.sha,
            pr_base_ref=pull.base.ref,
            pr_base_sha=pull.base.sha,
            total_approvals=len(approvals),
            total_reviews=len(reviews),
        )
    )
    for resolved in (approvals, reviews):
        for i, item in enumerate(resolved, 1):
            for name, value in item.matches.items():
                metadata.add(f"{name}_{i}", value)
    return metadata


def resolve(config: PolicyConfig, version: Version, client) -> Resolution:
    """Re-fetch the pull request and every referenced message of a version."""
    pr_id = version.pr_number
    pull = client.get_pull_request(pr_id)

    approved_by = decode_responses(version.approved_by)
    reviewed_by = decode_responses(version.reviewed_by)

    approvals = [resolve_message(client, pr_id, r, config.approver_patterns) for r in approved_by]
    reviews = [resolve_message(client, pr_id, r, config.reviewer_patterns) for r in reviewed_by]
    logger.debug("PR #%d resolved: %d approval(s), %d review(s)", pr_id, len(approvals), len(reviews))

    return Resolution(
        version=version,
        pull=pull,
        approvals=approvals,
        reviews=reviews,
        metadata=build_metadata(pull, approvals, reviews),
    )


def source_directory(output_dir: str, params: InParams) -> str:
    return os.path.join(output_dir, params.source_path or DEFAULT_SOURCE_PATH)


def materialize(pull: PullRequest, params: InParams, strategy: str, git) -> None:
    """Check out the base, fetch the PR head and integrate it with the given strategy."""
    git.init(pull.base.ref)
    git.pull(pull.base.clone_url, pull.base.ref, params.git_depth, params.submodules, params.fetch_tags)
    git.fetch(pull.base.clone_url, pull.number, params.git_depth, params.submodules)

    if strategy == "rebase":
        git.rebase(pull.base.ref, pull.head.sha, params.submodules)
    elif strategy == "merge":
        git.merge(pull.head.sha, params.submodules)
    elif strategy == "checkout":
        git.checkout(pull.head.ref, pull.head.sha, params.submodules)
    else:
        raise ConfigError(f"Invalid integration tool specified: {strategy!r}")
