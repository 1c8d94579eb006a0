"""Policy predicates over pull requests and their messages.

All functions are pure except team_allows, which asks the hosting client
about team membership. Inclusion lists are wildcards when empty; exclusion
lists always win over a matching inclusion.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prquorum_core.models import PolicyConfig

logger = logging.getLogger(__name__)

_DEFAULT_STATES = ("open",)


def state_matches(config: PolicyConfig, state: str) -> bool:
    """Return True if the PR state is requested and not ignored."""
    requested = config.states or _DEFAULT_STATES
    return state in requested and state not in config.ignore_states


def labels_match(config: PolicyConfig, labels: list[str]) -> bool:
    """Return True if any PR label is requested (or none are configured) and none is ignored."""
    if any(label in config.ignore_labels for label in labels):
        return False
    if not config.labels:
        return True
    return any(label in config.labels for label in labels)


def review_state_matches(config: PolicyConfig, state: str) -> bool:
    state = state.lower()
    return any(state == s.lower() for s in config.review_states)


def regex_matches(patterns: list[re.Pattern], body: str) -> bool:
    """Return True if no patterns are configured or any pattern is found anywhere in body."""
    if not patterns:
        return True
    return any(p.search(body) for p in patterns)


def approver_regex_matches(config: PolicyConfig, body: str) -> bool:
    return regex_matches(config.approver_patterns, body)


def reviewer_regex_matches(config: PolicyConfig, body: str) -> bool:
    return regex_matches(config.reviewer_patterns, body)


def team_allows(client, login: str, teams: list[str]) -> bool:
    """Return True if teams is empty (catch all) or login belongs to at least one team."""
    if not teams:
        return True
    for team in teams:
        if client.user_is_team_member(login, team):
            return True
    logger.debug("%s is not a member of any of %s", login, teams)
    return False


def minimum_satisfied(count: int, minimum: int) -> bool:
    """A minimum below 1 is raised to 1: a version always needs at least one match."""
    return count >= max(1, minimum)


def extract_captures(patterns: list[re.Pattern], body: str) -> dict[str, str]:
    """Collect named capture groups from every pattern that matches body.

    Unnamed groups are dropped. On a name collision the later pattern wins.
    A named group that did not participate in the match yields "".
    """
    captures: dict[str, str] = {}
    for pattern in patterns:
        match = pattern.search(body)
        if match is None:
            continue
        captures.update(match.groupdict(default=""))
    return captures
