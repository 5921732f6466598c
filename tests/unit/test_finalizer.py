"""
Tests for artifact finalization.
"""

import copy

from aclsnap.finalizer import finalize_artifact
from aclsnap.models import (
    Artifact,
    FirewallRuleMeta,
    Group,
    Membership,
    Permissions,
    Source,
    User,
)


def make_artifact() -> Artifact:
    return Artifact(
        metadata=Source(kind="test"),
        users=[
            User(account="carol", role="Admin"),
            User(account="Bob", role="member", permissions=["read"]),
            User(account="alice", role="admin"),
            User(account="hubot"),
        ],
        bots=[User(account="zbot"), User(account="hubot")],
        orgs=[Group(name="b-org"), Group(name="a-org")],
        groups=[
            Group(name="ops", permissions=["deploy", "read", "deploy"], members=["carol"]),
            Group(name="eng", permissions=["write"], members=["alice", "Bob", "alice"]),
        ],
        ingress=[
            FirewallRuleMeta(name="b", priority=1000),
            FirewallRuleMeta(name="a", priority=1000),
            FirewallRuleMeta(name="z", priority=10),
        ],
    )


class TestFinalizeArtifact:
    """Tests for finalize_artifact."""

    def test_sorts_collections(self):
        """Test that lists are sorted into canonical order."""
        artifact = finalize_artifact(make_artifact())

        assert [u.account for u in artifact.users] == ["alice", "Bob", "carol"]
        assert [b.account for b in artifact.bots] == ["hubot", "zbot"]
        assert [o.name for o in artifact.orgs] == ["a-org", "b-org"]
        assert [g.name for g in artifact.groups] == ["eng", "ops"]
        assert [r.name for r in artifact.ingress] == ["z", "a", "b"]

    def test_group_lists_sorted_and_unique(self):
        """Test that group members and permissions are deduplicated."""
        artifact = finalize_artifact(make_artifact())
        groups = {g.name: g for g in artifact.groups}

        assert groups["eng"].members == ["Bob", "alice"]
        assert groups["ops"].permissions == ["deploy", "read"]

    def test_user_also_bot_is_kept_as_bot(self):
        """Test that an account listed in both users and bots stays a bot."""
        artifact = finalize_artifact(make_artifact())

        assert "hubot" not in [u.account for u in artifact.users]
        assert "hubot" in [b.account for b in artifact.bots]

    def test_roles_index_lowercased(self):
        """Test that the roles index folds role case."""
        artifact = finalize_artifact(make_artifact())

        assert artifact.roles == {"admin": ["alice", "carol"], "member": ["Bob"]}
        assert artifact.roles_total == 2
        # user.role stays as emitted
        assert [u.role for u in artifact.users if u.account == "carol"] == ["Admin"]

    def test_permission_index_includes_groups(self):
        """Test that members inherit their groups' permissions."""
        artifact = finalize_artifact(make_artifact())

        assert artifact.by_permission == {
            "deploy": ["carol"],
            "read": ["Bob", "carol"],
            "write": ["Bob", "alice"],
        }

    def test_memberships_linked_once(self):
        """Test that every group member has exactly one membership per group."""
        artifact = make_artifact()
        artifact.users[2].groups = [Membership(name="eng"), Membership(name="eng")]

        finalize_artifact(artifact)

        for group in artifact.groups:
            for member in group.members:
                user = next(u for u in artifact.users if u.account == member)
                assert [m.name for m in user.groups].count(group.name) == 1

        alice = next(u for u in artifact.users if u.account == "alice")
        assert [m.name for m in alice.groups] == ["eng"]

    def test_keyed_groups_link_to_keyed_users(self):
        """Test membership linking for map-keyed principals."""
        artifact = Artifact(
            metadata=Source(kind="gcp"),
            permissions=Permissions(
                users={"alice": User(roles=["viewer"])},
                service_accounts={"deployer@proj.iam": User()},
                groups={"eng": Group(roles=["editor"], members=["deployer@proj.iam", "alice"])},
            ),
        )

        finalize_artifact(artifact)

        alice = artifact.permissions.users["alice"]
        assert alice.groups == [Membership(name="eng", permissions=["editor"])]
        assert artifact.permissions.service_accounts["deployer@proj.iam"].groups[0].name == "eng"
        assert artifact.permissions.groups_total == 1
        assert artifact.permissions.users_total == 1
        assert artifact.permissions.service_accounts_total == 1

    def test_counts(self):
        """Test that count fields are recomputed."""
        artifact = make_artifact()
        artifact.users_total = 99

        finalize_artifact(artifact)

        assert artifact.users_total == 3
        assert artifact.bots_total == 2
        assert artifact.groups_total == 2
        assert artifact.orgs_total == 2

    def test_idempotent(self):
        """Test that finalizing twice changes nothing."""
        once = finalize_artifact(make_artifact())
        twice = finalize_artifact(copy.deepcopy(once))

        assert twice.to_dict() == once.to_dict()

    def test_duplicate_accounts_merged(self):
        """Test that rows sharing an account collapse into the first one."""
        artifact = Artifact(
            metadata=Source(kind="test"),
            users=[
                User(account="alice", role="Admin", permissions=["read"]),
                User(account="alice", name="Alice", role="Viewer", permissions=["write"]),
            ],
            groups=[Group(name="eng", members=["alice"])],
        )

        finalize_artifact(artifact)

        assert artifact.users_total == 1
        alice = artifact.users[0]
        assert (alice.name, alice.role) == ("Alice", "Admin")
        assert alice.permissions == ["read", "write"]
        assert [m.name for m in alice.groups] == ["eng"]
        assert artifact.roles == {"admin": ["alice"]}
