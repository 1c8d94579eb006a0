"""Artifact data models.

Decoupled from prquorum_core so the store layer only deals in already
textified name/value pairs. The CLI maps a core Resolution to an
ArtifactRecord before calling store.save().
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FieldRecord:
    """A single name/value pair written as one file."""

    name: str
    value: str


@dataclass
class MessageRecord:
    """One matched comment or review: its own fields plus the named captures of its body."""

    fields: list[FieldRecord] = field(default_factory=list)
    matches: dict[str, str] = field(default_factory=dict)


@dataclass
class ArtifactRecord:
    """Everything the in step persists for later pipeline steps."""

    version: dict
    metadata: list[FieldRecord] = field(default_factory=list)
    approvals: list[MessageRecord] = field(default_factory=list)
    reviews: list[MessageRecord] = field(default_factory=list)
