"""Data models shared by the check and in phases.

Version is the only object that crosses the phase boundary. It is a flat
record of strings: the approval and review Response lists are embedded as
compact JSON so the CI system can round-trip the token opaquely.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime

from prquorum_core.errors import ConfigError, DecodeError

INTEGRATION_TOOLS = ("rebase", "merge", "checkout")


def _compile(patterns: list[str], option: str) -> list[re.Pattern]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigError(f"Invalid regular expression in {option}: {pattern!r} ({e})") from e
    return compiled


@dataclass
class PolicyConfig:
    """Selection and policy settings provided as the resource ``source``."""

    repository: str
    access_token: str = ""
    username: str = ""
    password: str = ""
    github_endpoint: str = ""
    skip_ssl: bool = False
    disable_git_lfs: bool = False
    only_mergeable: bool = False
    states: list[str] = field(default_factory=list)
    ignore_states: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    ignore_labels: list[str] = field(default_factory=list)
    approver_comments: list[str] = field(default_factory=list)
    approver_teams: list[str] = field(default_factory=list)
    min_approvals: int = 0
    reviewer_comments: list[str] = field(default_factory=list)
    reviewer_teams: list[str] = field(default_factory=list)
    review_states: list[str] = field(default_factory=list)
    min_reviews: int = 0
    max_retries: int = 0

    approver_patterns: list[re.Pattern] = field(init=False, repr=False, compare=False)
    reviewer_patterns: list[re.Pattern] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.repository:
            raise ConfigError("source.repository is required (owner/name).")
        self.approver_patterns = _compile(self.approver_comments, "approver_comments")
        self.reviewer_patterns = _compile(self.reviewer_comments, "reviewer_comments")


@dataclass
class InParams:
    """Parameters of the ``in`` step."""

    source_path: str = ""
    git_depth: int = 0
    submodules: bool = False
    fetch_tags: bool = False
    integration_tool: str = ""
    skip_download: bool = False
    map_metadata: bool = False


@dataclass
class Ref:
    ref: str
    sha: str
    clone_url: str = ""


@dataclass
class PullRequest:
    number: int
    state: str
    labels: list[str]
    head: Ref
    base: Ref
    draft: bool = False
    mergeable: bool | None = None  # None until resolved by the client


@dataclass
class Message:
    """A pull request comment or review, as seen by the predicates and the resolver."""

    kind: str  # "comment" | "review"
    id: int
    body: str
    created_at: datetime | None
    user_login: str
    author_association: str = ""
    updated_at: datetime | None = None
    html_url: str = ""
    user_id: int = 0
    user_avatar_url: str = ""
    user_html_url: str = ""
    state: str = ""  # reviews only: APPROVED, CHANGES_REQUESTED, COMMENTED, ...

    @property
    def timestamp(self) -> int:
        return int(self.created_at.timestamp()) if self.created_at else 0

    def fields(self) -> list[tuple[str, object]]:
        return [
            ("comment_id", self.id if self.kind == "comment" else 0),
            ("review_id", self.id if self.kind == "review" else 0),
            ("body", self.body),
            ("created_at", self.created_at),
            ("updated_at", self.updated_at),
            ("author_association", self.author_association),
            ("html_url", self.html_url),
            ("user_login", self.user_login),
            ("user_id", self.user_id),
            ("user_avatar_url", self.user_avatar_url),
            ("user_html_url", self.user_html_url),
        ]


@dataclass
class Response:
    """Minimal reference to a matched message. Never carries the body."""

    review_id: str = ""
    comment_id: str = ""
    created_at: str = ""

    @classmethod
    def for_message(cls, message: Message) -> Response:
        if message.kind == "review":
            return cls(review_id=str(message.id), created_at=str(message.timestamp))
        return cls(comment_id=str(message.id), created_at=str(message.timestamp))

    def to_dict(self) -> dict:
        return {"review_id": self.review_id, "comment_id": self.comment_id, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, d) -> Response:
        if not isinstance(d, dict):
            raise DecodeError(f"Response entry must be an object, got {type(d).__name__}.")
        unknown = set(d) - {"review_id", "comment_id", "created_at"}
        if unknown:
            raise DecodeError(f"Unknown response field(s): {', '.join(sorted(unknown))}")
        values = {}
        for key in ("review_id", "comment_id", "created_at"):
            value = d.get(key, "")
            if not isinstance(value, str):
                raise DecodeError(f"Response field {key!r} must be a string, got {value!r}.")
            values[key] = value
        return cls(**values)


def encode_responses(responses: list[Response]) -> str:
    return json.dumps([r.to_dict() for r in responses], separators=(",", ":"))


def decode_responses(text: str) -> list[Response]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Could not decode response list {text!r}: {e}") from e
    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError(f"Response list must be a JSON array, got {type(data).__name__}.")
    return [Response.from_dict(item) for item in data]


@dataclass
class Version:
    """Opaque token for one qualifying pull request state."""

    pr_id: str
    approved_by: str = ""
    reviewed_by: str = ""
    last_updated: int = field(default=0, compare=False, repr=False)

    def to_dict(self) -> dict:
        return {"pr_id": self.pr_id, "approved_by": self.approved_by, "reviewed_by": self.reviewed_by}

    @classmethod
    def from_dict(cls, d) -> Version:
        if not isinstance(d, dict):
            raise DecodeError(f"Version must be an object, got {type(d).__name__}.")
        unknown = set(d) - {"pr_id", "approved_by", "reviewed_by"}
        if unknown:
            raise DecodeError(f"Unknown version field(s): {', '.join(sorted(unknown))}")
        values = {}
        for key in ("pr_id", "approved_by", "reviewed_by"):
            value = d.get(key, "")
            if not isinstance(value, str):
                raise DecodeError(f"Version field {key!r} must be a string, got {value!r}.")
            values[key] = value
        return cls(**values)

    @property
    def pr_number(self) -> int:
        try:
            return int(self.pr_id)
        except ValueError:
            raise DecodeError(f"Version pr_id is not a pull request number: {self.pr_id!r}")
