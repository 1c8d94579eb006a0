"""Check phase: scan every pull request and emit qualifying versions.

The scan is a full re-computation on every run; it never diffs against the
version it was given. Output is ordered by last matching activity so the CI
system sees the newest qualifying state last.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from prquorum_core.errors import TransportError
from prquorum_core.models import Message, PolicyConfig, PullRequest, Response, Version, encode_responses
from prquorum_core.policy import (
    approver_regex_matches,
    labels_match,
    minimum_satisfied,
    review_state_matches,
    reviewer_regex_matches,
    state_matches,
    team_allows,
)

logger = logging.getLogger(__name__)


@dataclass
class _Tally:
    """Running approvals/reviews for one pull request during a scan."""

    pr_id: int
    approved_by: list[Response] = field(default_factory=list)
    reviewed_by: list[Response] = field(default_factory=list)
    last_updated: int = 0

    def record(self, responses: list[Response], message: Message) -> None:
        responses.append(Response.for_message(message))
        self.last_updated = max(self.last_updated, message.timestamp)

    def to_version(self) -> Version:
        return Version(
            pr_id=str(self.pr_id),
            approved_by=encode_responses(self.approved_by),
            reviewed_by=encode_responses(self.reviewed_by),
            last_updated=self.last_updated,
        )


def is_candidate(config: PolicyConfig, client, pr: PullRequest) -> bool:
    """Return True if the pull request passes the per-PR filters.

    Mergeability is asked of the client last, and only when only_mergeable is set.
    """
    if not state_matches(config, pr.state):
        return False
    if not labels_match(config, pr.labels):
        return False
    if pr.draft:
        return False
    if config.only_mergeable:
        pr.mergeable = client.is_mergeable(pr.number)
        if not pr.mergeable:
            return False
    return True


def is_approval(config: PolicyConfig, client, message: Message) -> bool:
    # Approvals are gated by regex and team only, never by review state.
    return approver_regex_matches(config, message.body) and team_allows(
        client, message.user_login, config.approver_teams
    )


def is_review(config: PolicyConfig, client, message: Message) -> bool:
    if message.kind == "review" and not review_state_matches(config, message.state):
        return False
    return reviewer_regex_matches(config, message.body) and team_allows(
        client, message.user_login, config.reviewer_teams
    )


def prewarm_teams(config: PolicyConfig, client) -> None:
    """Cache team member lists ahead of classification. Failures leave the per-login lookup in charge."""
    for team in dict.fromkeys(config.approver_teams + config.reviewer_teams):
        try:
            client.list_team_members(team)
        except TransportError as e:
            logger.warning("Could not pre-load members of team %s: %s", team, e)


def tally_pull_request(config: PolicyConfig, client, pr: PullRequest) -> _Tally:
    """Classify every comment and submitted review of one pull request."""
    tally = _Tally(pr_id=pr.number)

    comments = client.list_comments(pr.number)
    # Pending reviews have no submission time and are invisible to everyone but their author.
    reviews = [r for r in client.list_reviews(pr.number) if r.created_at is not None]

    for message in [*comments, *reviews]:
        if is_approval(config, client, message):
            tally.record(tally.approved_by, message)
        if is_review(config, client, message):
            tally.record(tally.reviewed_by, message)

    logger.debug(
        "PR #%d: %d approval(s), %d review(s)",
        pr.number,
        len(tally.approved_by),
        len(tally.reviewed_by),
    )
    return tally


def check(config: PolicyConfig, client) -> list[Version]:
    """Return every qualifying version, ordered ascending by last matching activity.

    Any client error propagates and aborts the scan; no partial list is returned.
    """
    pulls = client.list_pull_requests()

    if pulls:
        prewarm_teams(config, client)

    versions: list[Version] = []
    for pr in pulls:
        if not is_candidate(config, client, pr):
            logger.debug("Skipping PR #%d (state=%s, draft=%s)", pr.number, pr.state, pr.draft)
            continue

        tally = tally_pull_request(config, client, pr)
        if not minimum_satisfied(len(tally.approved_by), config.min_approvals):
            continue
        if not minimum_satisfied(len(tally.reviewed_by), config.min_reviews):
            continue
        versions.append(tally.to_version())

    # sorted() is stable: ties keep the listing order.
    return sorted(versions, key=lambda v: v.last_updated)
