"""Flat name/value metadata exchanged with the CI system.

Records expose their fields through an explicit ``fields()`` method that
returns ``(name, value)`` pairs in declaration order; serialize_fields turns
those into text. Names are not unique: captures from several messages are
appended side by side and lookup returns the first match.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class MetadataField:
    name: str
    value: str

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


class Metadata(list):
    """Ordered list of MetadataField; duplicate names are allowed."""

    def add(self, name: str, value) -> None:
        self.append(MetadataField(name=name, value=textify(value)))

    def get(self, name: str) -> str:
        for item in self:
            if item.name == name:
                return item.value
        raise KeyError(f"metadata index does not exist: {name}")

    def to_list(self) -> list[dict]:
        return [item.to_dict() for item in self]


def textify(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return str(value)


def serialize_fields(record) -> Metadata:
    metadata = Metadata()
    for name, value in record.fields():
        metadata.add(name, value)
    return metadata


@dataclass
class InMetadata:
    """Fixed metadata emitted by the in step before any capture fields."""

    pr_id: int
    pr_head_ref: str
    pr_head_sha: str
    pr_base_ref: str
    pr_base_sha: str
    total_approvals: int = 0
    total_reviews: int = 0

    def fields(self) -> list[tuple[str, object]]:
        return [
            ("pr_id", self.pr_id),
            ("pr_head_ref", self.pr_head_ref),
            ("pr_head_sha", self.pr_head_sha),
            ("pr_base_ref", self.pr_base_ref),
            ("pr_base_sha", self.pr_base_sha),
            ("total_approvals", self.total_approvals),
            ("total_reviews", self.total_reviews),
        ]
