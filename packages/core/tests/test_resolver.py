"""Tests for the in phase resolver."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, call

import pytest

from prquorum_core.errors import ConfigError, DecodeError, TransportError
from prquorum_core.models import InParams, Message, PolicyConfig, PullRequest, Ref, Response, Version, encode_responses
from prquorum_core.resolver import integration_strategy, materialize, resolve, source_directory
from prquorum_core.scanner import check

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_config(**kwargs):
    return PolicyConfig(repository="owner/repo", **kwargs)


def make_pr(number=5):
    return PullRequest(
        number=number,
        state="open",
        labels=[],
        head=Ref(ref="feature", sha="h" * 40, clone_url="https://github.com/fork/repo.git"),
        base=Ref(ref="main", sha="b" * 40, clone_url="https://github.com/owner/repo.git"),
    )


def comment(id, body, login="alice"):
    return Message(kind="comment", id=id, body=body, created_at=T0, user_login=login)


def review(id, body, state="APPROVED", login="alice"):
    return Message(kind="review", id=id, body=body, created_at=T0, user_login=login, state=state)


class FakeClient:
    def __init__(self, pulls=(), comments=(), reviews=()):
        self.pulls = {pr.number: pr for pr in pulls}
        self.comments = list(comments)
        self.reviews = list(reviews)

    # scan side
    def list_pull_requests(self):
        return list(self.pulls.values())

    def list_comments(self, pr_id):
        return list(self.comments)

    def list_reviews(self, pr_id):
        return list(self.reviews)

    def list_team_members(self, team):
        return frozenset()

    def user_is_team_member(self, login, team):
        return False

    # resolve side
    def get_pull_request(self, pr_id):
        if pr_id not in self.pulls:
            raise TransportError(f"PR #{pr_id} not found")
        return self.pulls[pr_id]

    def get_comment(self, pr_id, comment_id):
        return next(c for c in self.comments if c.id == comment_id)

    def get_review(self, pr_id, review_id):
        return next(r for r in self.reviews if r.id == review_id)


def make_version(approved=(), reviewed=(), pr_id="5"):
    return Version(
        pr_id=pr_id,
        approved_by=encode_responses(list(approved)),
        reviewed_by=encode_responses(list(reviewed)),
    )


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_fixed_metadata_and_captures(self):
        config = make_config(approver_comments=["Approved-by: (?P<approved_by>.*)"])
        client = FakeClient(pulls=[make_pr(5)], comments=[comment(101, "Approved-by: alice")])
        version = make_version(approved=[Response(comment_id="101", created_at="1")])

        resolution = resolve(config, version, client)

        assert resolution.metadata.to_list() == [
            {"name": "pr_id", "value": "5"},
            {"name": "pr_head_ref", "value": "feature"},
            {"name": "pr_head_sha", "value": "h" * 40},
            {"name": "pr_base_ref", "value": "main"},
            {"name": "pr_base_sha", "value": "b" * 40},
            {"name": "total_approvals", "value": "1"},
            {"name": "total_reviews", "value": "0"},
            {"name": "approved_by_1", "value": "alice"},
        ]
        assert resolution.approvals[0].matches == {"approved_by": "alice"}

    def test_reviews_use_reviewer_patterns_and_own_index(self):
        config = make_config(
            approver_comments=["Approved-by: (?P<who>\\w+)"],
            reviewer_comments=["Reviewed-by: (?P<who>\\w+)"],
        )
        client = FakeClient(
            pulls=[make_pr(5)],
            comments=[comment(101, "Approved-by: alice"), comment(102, "Approved-by: bob")],
            reviews=[review(201, "Reviewed-by: carol")],
        )
        version = make_version(
            approved=[Response(comment_id="101"), Response(comment_id="102")],
            reviewed=[Response(review_id="201")],
        )

        metadata = resolve(config, version, client).metadata

        captures = [(f.name, f.value) for f in metadata[7:]]
        assert captures == [("who_1", "alice"), ("who_2", "bob"), ("who_1", "carol")]
        assert metadata.get("who_1") == "alice"
        assert metadata.get("total_approvals") == "2"
        assert metadata.get("total_reviews") == "1"

    def test_unnamed_groups_dropped(self):
        config = make_config(approver_comments=["(Approved)-by: (\\w+)"])
        client = FakeClient(pulls=[make_pr(5)], comments=[comment(101, "Approved-by: alice")])
        resolution = resolve(config, make_version(approved=[Response(comment_id="101")]), client)
        assert len(resolution.metadata) == 7

    def test_message_that_no_longer_matches_has_no_captures(self):
        config = make_config(approver_comments=["Approved-by: (?P<approved_by>\\w+)"])
        client = FakeClient(pulls=[make_pr(5)], comments=[comment(101, "edited away")])
        resolution = resolve(config, make_version(approved=[Response(comment_id="101")]), client)
        assert resolution.approvals[0].matches == {}
        assert resolution.metadata.get("total_approvals") == "1"

    def test_reproduces_scan(self):
        config = make_config(
            approver_comments=["Approved-by: (?P<approved_by>\\w+)"],
            reviewer_comments=["Reviewed-by: (?P<reviewed_by>\\w+)"],
            review_states=["approved"],
        )
        client = FakeClient(
            pulls=[make_pr(5)],
            comments=[comment(101, "Approved-by: alice"), comment(102, "Reviewed-by: bob")],
            reviews=[review(201, "Approved-by: carol\nReviewed-by: carol")],
        )

        [version] = check(config, client)
        resolution = resolve(config, Version.from_dict(version.to_dict()), client)

        assert [m.message.id for m in resolution.approvals] == [101, 201]
        assert [m.message.id for m in resolution.reviews] == [102, 201]
        assert [(f.name, f.value) for f in resolution.metadata[7:]] == [
            ("approved_by_1", "alice"),
            ("approved_by_2", "carol"),
            ("reviewed_by_1", "bob"),
            ("reviewed_by_2", "carol"),
        ]

    def test_missing_pull_request_is_fatal(self):
        with pytest.raises(TransportError):
            resolve(make_config(), make_version(pr_id="404"), FakeClient())

    @pytest.mark.parametrize(
        "response",
        [
            Response(created_at="1"),
            Response(review_id="201", comment_id="101"),
            Response(comment_id="abc"),
        ],
    )
    def test_invalid_response_raises_decode_error(self, response):
        client = FakeClient(pulls=[make_pr(5)], comments=[comment(101, "x")], reviews=[review(201, "x")])
        with pytest.raises(DecodeError):
            resolve(make_config(), make_version(approved=[response]), client)

    @pytest.mark.parametrize(
        "response,expected_id",
        [
            (Response(review_id="0", comment_id="101"), 101),
            (Response(review_id="201", comment_id="0"), 201),
            (Response(review_id="-1", comment_id="101"), 101),
        ],
    )
    def test_zero_id_counts_as_unset(self, response, expected_id):
        client = FakeClient(pulls=[make_pr(5)], comments=[comment(101, "x")], reviews=[review(201, "x")])
        resolution = resolve(make_config(), make_version(approved=[response]), client)
        assert [m.message.id for m in resolution.approvals] == [expected_id]

    def test_both_ids_zero_is_invalid(self):
        client = FakeClient(pulls=[make_pr(5)])
        with pytest.raises(DecodeError, match="no comment or review id"):
            resolve(make_config(), make_version(approved=[Response(review_id="0", comment_id="0")]), client)

    def test_malformed_encoded_list(self):
        client = FakeClient(pulls=[make_pr(5)])
        version = Version(pr_id="5", approved_by="{not json", reviewed_by="[]")
        with pytest.raises(DecodeError):
            resolve(make_config(), version, client)

    def test_non_numeric_pr_id(self):
        with pytest.raises(DecodeError):
            resolve(make_config(), make_version(pr_id="five"), FakeClient())


# ---------------------------------------------------------------------------
# Integration strategy and working copy
# ---------------------------------------------------------------------------


class TestIntegrationStrategy:
    @pytest.mark.parametrize(
        "tool,expected",
        [("", "rebase"), ("rebase", "rebase"), ("merge", "merge"), ("checkout", "checkout")],
    )
    def test_known_tools(self, tool, expected):
        assert integration_strategy(InParams(integration_tool=tool)) == expected

    def test_unknown_tool_raises_config_error(self):
        with pytest.raises(ConfigError, match="squash"):
            integration_strategy(InParams(integration_tool="squash"))


class TestMaterialize:
    def test_rebase(self):
        git = MagicMock()
        params = InParams(git_depth=1, submodules=True, fetch_tags=True)
        materialize(make_pr(5), params, "rebase", git)

        assert git.mock_calls == [
            call.init("main"),
            call.pull("https://github.com/owner/repo.git", "main", 1, True, True),
            call.fetch("https://github.com/owner/repo.git", 5, 1, True),
            call.rebase("main", "h" * 40, True),
        ]

    def test_merge(self):
        git = MagicMock()
        materialize(make_pr(5), InParams(), "merge", git)
        git.merge.assert_called_once_with("h" * 40, False)
        git.rebase.assert_not_called()

    def test_checkout(self):
        git = MagicMock()
        materialize(make_pr(5), InParams(), "checkout", git)
        git.checkout.assert_called_once_with("feature", "h" * 40, False)

    def test_unknown_strategy(self):
        with pytest.raises(ConfigError):
            materialize(make_pr(5), InParams(), "squash", MagicMock())


def test_source_directory_default_and_custom():
    assert source_directory("/out", InParams()) == "/out/source"
    assert source_directory("/out", InParams(source_path="repo")) == "/out/repo"
