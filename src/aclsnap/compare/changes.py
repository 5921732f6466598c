"""
Change summaries between two snapshots of the same platform.

Compares two finalized Artifacts and lists what happened to users,
group memberships and group permissions in between. Absence is itself a
change, so comparisons never fail on missing entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Change:
    """
    One difference between two snapshots.

    Attributes:
        kind: Ingester kind of the compared artifacts
        id: Artifact scope, defaulting to kind
        entity: Account or group the change applies to
        mod: Short human description of the change
        from_date: Source date of the older artifact
        to_date: Source date of the newer artifact
    """

    kind: str
    id: str
    entity: str
    mod: str
    from_date: str
    to_date: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind,
            "id": self.id,
            "entity": self.entity,
            "mod": self.mod,
            "from_date": self.from_date,
            "to_date": self.to_date,
        }


def _principals(artifact: Artifact) -> dict[str, User]:
    """Collect every principal of an artifact keyed by account."""
    principals: dict[str, User] = {}
    for user in artifact.all_users():
        principals[user.account] = user
    for section in (artifact.permissions.service_accounts, artifact.permissions.users):
        for key, user in section.items():
            principals.setdefault(user.account or key, user)
    return principals


def _user_permissions(user: User) -> list[str]:
    return list(user.permissions) + [r for r in user.roles if r not in user.permissions]


def _group_members(artifact: Artifact) -> dict[str, list[str]]:
    """Map group names to members, from groups and from user memberships."""
    members: dict[str, list[str]] = {}

    def add(group: str, member: str) -> None:
        listed = members.setdefault(group, [])
        if member not in listed:
            listed.append(member)

    for group in artifact.groups:
        for member in group.members:
            add(group.name, member)
    for name, group in artifact.permissions.groups.items():
        for member in group.members:
            add(group.name or name, member)
    for account, user in _principals(artifact).items():
        for membership in user.groups:
            add(membership.name, account)
    return members


def _group_permissions(artifact: Artifact) -> dict[str, list[str]]:
    permissions: dict[str, list[str]] = {}
    groups = [(g.name, g) for g in artifact.groups]
    groups += [(g.name or name, g) for name, g in artifact.permissions.groups.items()]
    for name, group in groups:
        listed = permissions.setdefault(name, [])
        for p in list(group.permissions) + list(group.roles):
            if p not in listed:
                listed.append(p)
    return permissions


def summarize(from_artifact: Artifact, to_artifact: Artifact) -> list[Change]:
    """
    Summarize the changes between two finalized artifacts.

    Changes are emitted in a fixed order: added users, then per existing
    user (sorted by account) removal or status, role and permission
    changes, then group membership changes, then group permission changes.

    Args:
        from_artifact: Older snapshot
        to_artifact: Newer snapshot

    Returns:
        Ordered list of changes (empty when nothing changed)
    """
    kind = to_artifact.metadata.kind
    if from_artifact.metadata.kind and from_artifact.metadata.kind != kind:
        logger.warning(
            f"Comparing artifacts of different kinds: "
            f"{from_artifact.metadata.kind} and {kind}"
        )
    scope = to_artifact.metadata.id or kind
    from_date = from_artifact.metadata.source_date
    to_date = to_artifact.metadata.source_date

    changes: list[Change] = []

    def emit(entity: str, mod: str) -> None:
        changes.append(Change(kind, scope, entity, mod, from_date, to_date))

    from_users = _principals(from_artifact)
    to_users = _principals(to_artifact)

    for account in to_users:
        if account not in from_users:
            emit(account, "add user")

    for account in sorted(from_users):
        before = from_users[account]
        after = to_users.get(account)
        if after is None:
            emit(account, "remove user")
            continue

        if before.status != after.status:
            if not before.status:
                emit(account, f"new status: {after.status}")
            else:
                emit(account, f'status change: "{before.status}" to "{after.status}"')
        if before.role != after.role:
            emit(account, f'role change: "{before.role}" to "{after.role}"')

        before_perms = _user_permissions(before)
        after_perms = _user_permissions(after)
        for p in before_perms:
            if p not in after_perms:
                emit(account, f"remove permission: {p}")
        for p in after_perms:
            if p not in before_perms:
                emit(account, f"add permission: {p}")

    from_members = _group_members(from_artifact)
    to_members = _group_members(to_artifact)
    for name in sorted(from_members):
        for member in from_members[name]:
            if member not in to_members.get(name, []):
                emit(member, f"left group: {name}")
    for name in sorted(to_members):
        for member in to_members[name]:
            if member not in from_members.get(name, []):
                emit(member, f"joined group: {name}")

    from_perms = _group_permissions(from_artifact)
    to_perms = _group_permissions(to_artifact)
    for name in sorted(from_perms):
        for p in from_perms[name]:
            if p not in to_perms.get(name, []):
                emit(name, f"lost permission: {p}")
    for name in sorted(to_perms):
        for p in to_perms[name]:
            if p not in from_perms.get(name, []):
                emit(name, f"gained permission: {p}")

    logger.info(f"Found {len(changes)} changes for {scope}")
    return changes
