"""
Pytest configuration and fixtures for ACL Snapshot tests.

This module provides common fixtures used across unit tests: a fixed
clock and operator name so artifacts are reproducible, a clean
environment, input file helpers, and an in-memory gcloud fake.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import patch

import pytest

from aclsnap.gcloud import (
    GCPRole,
    GroupMembership,
    IAMBinding,
    IAMPolicyDocument,
    ServiceAccount,
)

FIXED_NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)
FIXED_USER = "auditor"

ENV_VARS = (
    "ACLSNAP_CONFIG_FILE",
    "ACLSNAP_INPUT",
    "ACLSNAP_IN_DIR",
    "ACLSNAP_KIND",
    "ACLSNAP_PROJECT",
    "ACLSNAP_GCP_IDENTITY_PROJECT",
    "ACLSNAP_OUT_DIR",
    "SERVE_MODE",
    "PORT",
)


@pytest.fixture(autouse=True)
def fixed_clock():
    """Pin the ingestion wall clock and operator name."""
    with patch("aclsnap.ingesters.base._now", return_value=FIXED_NOW), patch(
        "aclsnap.ingesters.base._current_user", return_value=FIXED_USER
    ):
        yield FIXED_NOW


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove configuration variables inherited from the caller."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_input(tmp_path) -> Callable[[str, str | bytes], str]:
    """Return a factory writing an input file and returning its path."""

    def _make(name: str, content: str | bytes) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return str(path)

    return _make


# Sample exports


SLACK_CSV = (
    "username,email,status,fullname,displayname\n"
    "hubot,hubot@ex.com,Bot,Hubot,\n"
    "alice,alice@ex.com,Active,Alice,\n"
    "bob,bob@ex.com,Admin,,Bobby\n"
    "carol,carol@ex.com,Deactivated,Carol,\n"
)

AUDIT_CSV = (
    "Audit report [2024-03-15 GMT]\n"
    "User,User account status,Admin status,Admin-defined name\n"
    "alice@example.com,Active,None,Alice\n"
)


@pytest.fixture
def slack_csv() -> str:
    """Return a Slack member export."""
    return SLACK_CSV


@pytest.fixture
def audit_csv() -> str:
    """Return a Google Workspace user audit export."""
    return AUDIT_CSV


# Google Cloud fake


class FakeGCloud:
    """
    In-memory GCloudClient.

    Every call is counted in ``calls``; group expansions are additionally
    counted per group e-mail in ``membership_calls``.
    """

    def __init__(
        self,
        policies: dict[str, list[IAMPolicyDocument]] | None = None,
        memberships: dict[str, list[GroupMembership]] | None = None,
        service_accounts: list[ServiceAccount] | None = None,
        orgs: list[str] | None = None,
        project_numbers: dict[str, str] | None = None,
        roles: dict[str, GCPRole] | None = None,
        firewall_rules: dict[str, list[dict[str, Any]]] | None = None,
    ):
        self.policies = policies or {}
        self.memberships = memberships or {}
        self.service_account_list = service_accounts or []
        self.orgs = orgs if orgs is not None else ["ex.com"]
        self.project_numbers = project_numbers or {}
        self.role_catalogue = roles or {}
        self.rules = firewall_rules or {}
        self.calls: Counter = Counter()
        self.membership_calls: Counter = Counter()
        self.identity_projects: list[str] = []

    def ancestors_iam_policy(self, project: str) -> list[IAMPolicyDocument]:
        self.calls["ancestors_iam_policy"] += 1
        return list(self.policies.get(project, []))

    def group_memberships(
        self, group_email: str, identity_project: str
    ) -> list[GroupMembership]:
        self.calls["group_memberships"] += 1
        self.membership_calls[group_email] += 1
        self.identity_projects.append(identity_project)
        return [
            GroupMembership(member_id=m.member_id, roles=list(m.roles))
            for m in self.memberships.get(group_email, [])
        ]

    def service_accounts(self, project: str) -> list[ServiceAccount]:
        self.calls["service_accounts"] += 1
        return list(self.service_account_list)

    def organizations(self) -> list[str]:
        self.calls["organizations"] += 1
        return list(self.orgs)

    def project_number(self, project: str) -> str:
        self.calls["project_number"] += 1
        for number, project_id in self.project_numbers.items():
            if project_id == project:
                return number
        return ""

    def projects_by_number(self) -> dict[str, str]:
        self.calls["projects_by_number"] += 1
        return dict(self.project_numbers)

    def roles(self, project: str) -> dict[str, GCPRole]:
        self.calls["roles"] += 1
        return dict(self.role_catalogue)

    def firewall_rules(self, project: str) -> list[dict[str, Any]]:
        self.calls["firewall_rules"] += 1
        return list(self.rules.get(project, []))


def policy(
    resource_id: str, bindings: dict[str, list[str]], type: str = "project"
) -> IAMPolicyDocument:
    """Build an IAM policy document from a role to members mapping."""
    return IAMPolicyDocument(
        id=resource_id,
        type=type,
        bindings=[IAMBinding(role=r, members=list(m)) for r, m in bindings.items()],
    )


ROLE_CATALOGUE = {
    "roles/editor": GCPRole(
        name="roles/editor",
        title="Editor",
        description="Edit access to all resources.",
    ),
    "roles/viewer": GCPRole(
        name="roles/viewer",
        title="Viewer",
        description="Read-only access to all resources in the project.",
    ),
}

EDITOR_LABEL = "editor (Edit access to resources)"
VIEWER_LABEL = "viewer (read access to resources in the project)"


@pytest.fixture
def make_gcloud() -> Callable[..., FakeGCloud]:
    """Return a FakeGCloud factory preloaded with a role catalogue and one org."""

    def _make(**kwargs: Any) -> FakeGCloud:
        kwargs.setdefault("roles", ROLE_CATALOGUE)
        kwargs.setdefault("project_numbers", {"123": "proj-a", "456": "proj-b"})
        return FakeGCloud(**kwargs)

    return _make


@pytest.fixture
def make_policy() -> Callable[..., IAMPolicyDocument]:
    """Return the IAM policy document builder."""
    return policy


@pytest.fixture
def labels() -> dict[str, str]:
    """Return the short labels of the catalogue roles."""
    return {"roles/editor": EDITOR_LABEL, "roles/viewer": VIEWER_LABEL}
