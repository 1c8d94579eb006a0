"""GitHub hosting client backed by PyGithub.

One client is built per invocation and handed to the scanner, the resolver
and the predicates explicitly. Every PaginatedList is drained before the call
returns so no network I/O leaks past the client boundary, and every
PyGithub failure is re-raised as TransportError.
"""

from __future__ import annotations

import logging
import random
import time

from github import Auth, Github, GithubException, UnknownObjectException

from prquorum_core.errors import TransportError
from prquorum_core.models import Message, PolicyConfig, PullRequest, Ref

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str = "", username: str = "", password: str = "", endpoint: str = "", verify=True):
    kwargs: dict = {"verify": verify}
    if token:
        kwargs["auth"] = Auth.Token(token)
    elif username and password:
        kwargs["auth"] = Auth.Login(username, password)
    if endpoint:
        kwargs["base_url"] = endpoint.rstrip("/")
    gh = Github(**kwargs)
    return gh, gh.get_repo(repo_name, lazy=True)


def _to_pull_request(pr) -> PullRequest:
    head_repo = pr.head.repo
    base_repo = pr.base.repo
    return PullRequest(
        number=pr.number,
        state=pr.state,
        labels=[label.name for label in pr.labels],
        draft=bool(pr.draft),
        head=Ref(ref=pr.head.ref, sha=pr.head.sha, clone_url=head_repo.clone_url if head_repo else ""),
        base=Ref(ref=pr.base.ref, sha=pr.base.sha, clone_url=base_repo.clone_url if base_repo else ""),
    )


def _user_fields(user) -> dict:
    if user is None:
        return {"user_login": ""}
    return {
        "user_login": user.login,
        "user_id": user.id,
        "user_avatar_url": user.avatar_url or "",
        "user_html_url": user.html_url or "",
    }


def _comment_to_message(comment) -> Message:
    return Message(
        kind="comment",
        id=comment.id,
        body=comment.body or "",
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        # Older PyGithub releases do not expose author_association on comments.
        author_association=getattr(comment, "author_association", None) or "",
        html_url=comment.html_url or "",
        **_user_fields(comment.user),
    )


def _review_to_message(review) -> Message:
    return Message(
        kind="review",
        id=review.id,
        body=review.body or "",
        created_at=review.submitted_at,
        author_association=getattr(review, "author_association", None) or "",
        html_url=review.html_url or "",
        state=review.state or "",
        **_user_fields(review.user),
    )


class GithubClient:
    """Read-only view of one repository: pull requests, their discussion, and team membership."""

    BACKOFF_BASE: float = 1.0

    def __init__(self, repository: str, github, repo, max_retries: int = 0):
        self.repository = repository
        self._gh = github
        self._repo = repo
        self._max_retries = max(0, max_retries)
        self._pulls: dict[int, object] = {}
        self._teams: dict[str, object] = {}
        self._members: dict[str, frozenset[str]] = {}
        self._membership: dict[tuple[str, str], bool] = {}

    @classmethod
    def from_config(cls, config: PolicyConfig) -> GithubClient:
        gh, repo = get_repo(
            config.repository,
            token=config.access_token,
            username=config.username,
            password=config.password,
            endpoint=config.github_endpoint,
            verify=not config.skip_ssl,
        )
        return cls(config.repository, gh, repo, max_retries=config.max_retries)

    # ------------------------------------------------------------------ #
    # Pull requests and messages                                           #
    # ------------------------------------------------------------------ #

    def list_pull_requests(self) -> list[PullRequest]:
        """Return every pull request in the repository, in any state.

        Mergeability is left unresolved: the list endpoint does not carry it and
        PyGithub would fetch each pull request again to fill it in.
        """

        def _list():
            pulls = []
            for pr in self._repo.get_pulls(state="all"):
                self._pulls[pr.number] = pr
                pulls.append(_to_pull_request(pr))
            return pulls

        return self._call("list pull requests", _list)

    def get_pull_request(self, pr_id: int) -> PullRequest:
        return self._call(f"get pull request #{pr_id}", lambda: _to_pull_request(self._pull(pr_id)))

    def is_mergeable(self, pr_id: int) -> bool:
        return self._call(f"check mergeability of #{pr_id}", lambda: bool(self._pull(pr_id).mergeable))

    def list_comments(self, pr_id: int) -> list[Message]:
        return self._call(
            f"list comments of #{pr_id}",
            lambda: [_comment_to_message(c) for c in self._pull(pr_id).get_issue_comments()],
        )

    def list_reviews(self, pr_id: int) -> list[Message]:
        return self._call(
            f"list reviews of #{pr_id}",
            lambda: [_review_to_message(r) for r in self._pull(pr_id).get_reviews()],
        )

    def get_comment(self, pr_id: int, comment_id: int) -> Message:
        return self._call(
            f"get comment {comment_id}",
            lambda: _comment_to_message(self._pull(pr_id).get_issue_comment(comment_id)),
        )

    def get_review(self, pr_id: int, review_id: int) -> Message:
        return self._call(
            f"get review {review_id} of #{pr_id}",
            lambda: _review_to_message(self._pull(pr_id).get_review(review_id)),
        )

    def _pull(self, pr_id: int):
        if pr_id not in self._pulls:
            self._pulls[pr_id] = self._repo.get_pull(pr_id)
        return self._pulls[pr_id]

    # ------------------------------------------------------------------ #
    # Teams                                                                #
    # ------------------------------------------------------------------ #

    def list_team_members(self, team: str) -> frozenset[str]:
        """Return the lowercased logins of a team and cache them for membership lookups.

        A team that does not exist has no members, which is also what
        user_is_team_member answers for it.
        """
        if team not in self._members:

            def _list():
                try:
                    return frozenset(m.login.lower() for m in self._team(team).get_members())
                except UnknownObjectException:
                    logger.warning("Team %s not found; treating it as empty.", team)
                    return frozenset()

            self._members[team] = self._call(f"list members of team {team}", _list)
        return self._members[team]

    def user_is_team_member(self, login: str, team: str) -> bool:
        login = login.lower()
        if team in self._members:
            return login in self._members[team]

        key = (team, login)
        if key not in self._membership:

            def _lookup():
                try:
                    return self._team(team).get_team_membership(login).state == "active"
                except UnknownObjectException:
                    return False

            self._membership[key] = self._call(f"check {login} in team {team}", _lookup)
        return self._membership[key]

    def _team(self, team: str):
        if team not in self._teams:
            org, _, slug = team.rpartition("/")
            org = org or self.repository.split("/", 1)[0]
            self._teams[team] = self._gh.get_organization(org).get_team_by_slug(slug)
        return self._teams[team]

    # ------------------------------------------------------------------ #
    # Transport                                                            #
    # ------------------------------------------------------------------ #

    def _call(self, what: str, fn):
        """Run fn, retrying up to max_retries times with jittered exponential backoff.

        With the default max_retries=0 the first failure is final. Missing
        objects (404) are never retried.
        """
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                return fn()
            except (GithubException, OSError) as e:
                retryable = not isinstance(e, UnknownObjectException)
                if attempt == attempts - 1 or not retryable:
                    raise TransportError(f"GitHub API failed to {what}: {e}") from e
                delay = self.BACKOFF_BASE * 2**attempt + random.uniform(0, self.BACKOFF_BASE)
                logger.warning(
                    "GitHub API error while trying to %s (attempt %d/%d): %s. Retrying in %.1fs...",
                    what,
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                time.sleep(delay)
