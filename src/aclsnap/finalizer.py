"""
Artifact finalization for ACL Snapshot.

A single deterministic pass applied to every Artifact before it is
serialized or compared: collections are sorted, derived indexes are
rebuilt from scratch, and counts are recomputed. Running it twice
yields the same artifact.
"""

from __future__ import annotations

import logging

from aclsnap.models import Artifact, Group, Membership, User

logger = logging.getLogger(__name__)


def _account_key(user: User) -> tuple[str, str]:
    return (user.account.lower(), user.account)


def _sorted_unique(values: list[str]) -> list[str]:
    return sorted(set(values))


def _merge_duplicates(users: list[User], section: str) -> list[User]:
    """
    Collapse principals sharing an account into the first one seen.

    The first entry keeps its scalar fields (empty ones are filled from the
    later entries); roles, permissions and group memberships are unioned.
    """
    merged: dict[str, User] = {}
    duplicates: set[str] = set()
    for user in users:
        first = merged.get(user.account)
        if first is None:
            merged[user.account] = user
            continue

        duplicates.add(user.account)
        for name in ("name", "email", "role", "project", "status", "org", "sso"):
            if not getattr(first, name):
                setattr(first, name, getattr(user, name))
        first.deleted = first.deleted or user.deleted
        first.two_factor_disabled = first.two_factor_disabled or user.two_factor_disabled
        first.roles += [r for r in user.roles if r not in first.roles]
        first.permissions += [p for p in user.permissions if p not in first.permissions]
        known = {m.name for m in first.groups}
        first.groups += [m for m in user.groups if m.name not in known]

    if duplicates:
        logger.warning(f"Merged {section} sharing an account: {sorted(duplicates)}")
    return list(merged.values())


def _link_memberships(groups: dict[str, Group], users: dict[str, User]) -> None:
    """
    Give every group member exactly one Membership for that group.

    Args:
        groups: Groups keyed by group name
        users: Principals keyed by account
    """
    for user in users.values():
        seen: set[str] = set()
        unique = []
        for membership in user.groups:
            if membership.name in seen:
                continue
            seen.add(membership.name)
            unique.append(membership)
        user.groups = unique

    for name, group in groups.items():
        for member in group.members:
            user = users.get(member)
            if user is None:
                continue
            if any(m.name == name for m in user.groups):
                continue
            user.groups.append(
                Membership(
                    name=name,
                    description=group.description,
                    permissions=list(group.permissions) + list(group.roles),
                )
            )

    for user in users.values():
        user.groups.sort(key=lambda m: m.name)


def _build_permission_index(artifact: Artifact) -> dict[str, list[str]]:
    """Index accounts by permission, including permissions inherited via groups."""
    index: dict[str, list[str]] = {}
    seen: set[tuple[str, str]] = set()

    def add(permission: str, account: str) -> None:
        if (permission, account) in seen:
            return
        seen.add((permission, account))
        index.setdefault(permission, []).append(account)

    for user in artifact.all_users():
        for permission in user.permissions:
            add(permission, user.account)

    for group in artifact.groups:
        for member in group.members:
            for permission in group.permissions:
                add(permission, member)

    return {k: sorted(index[k]) for k in sorted(index)}


def finalize_artifact(artifact: Artifact) -> Artifact:
    """
    Normalize an artifact for consistent, comparable output.

    Args:
        artifact: Artifact to finalize (modified in place)

    Returns:
        The same artifact, for chaining
    """
    bot_accounts = {b.account for b in artifact.bots}
    overlap = [u.account for u in artifact.users if u.account in bot_accounts]
    if overlap:
        logger.warning(f"Accounts listed as both user and bot, keeping bot: {overlap}")
        artifact.users = [u for u in artifact.users if u.account not in bot_accounts]
    artifact.users = _merge_duplicates(artifact.users, "users")
    artifact.bots = _merge_duplicates(artifact.bots, "bots")

    artifact.users.sort(key=_account_key)
    artifact.bots.sort(key=_account_key)
    artifact.orgs.sort(key=lambda g: g.name)
    artifact.groups.sort(key=lambda g: g.name)
    artifact.ingress.sort(key=lambda r: (r.priority, r.name))
    artifact.egress.sort(key=lambda r: (r.priority, r.name))

    for group in list(artifact.groups) + list(artifact.permissions.groups.values()):
        group.members = _sorted_unique(group.members)
        group.permissions = _sorted_unique(group.permissions)
        group.roles = _sorted_unique(group.roles)

    _link_memberships(
        {g.name: g for g in artifact.groups},
        {u.account: u for u in artifact.all_users()},
    )
    keyed_principals = dict(artifact.permissions.service_accounts)
    keyed_principals.update(artifact.permissions.users)
    _link_memberships(artifact.permissions.groups, keyed_principals)

    roles: dict[str, list[str]] = {}
    for user in artifact.all_users():
        if user.role:
            roles.setdefault(user.role.lower(), []).append(user.account)
    artifact.roles = {k: _sorted_unique(roles[k]) for k in sorted(roles)}

    artifact.by_permission = _build_permission_index(artifact)

    artifact.permissions.users = dict(sorted(artifact.permissions.users.items()))
    artifact.permissions.service_accounts = dict(
        sorted(artifact.permissions.service_accounts.items())
    )
    artifact.permissions.groups = dict(sorted(artifact.permissions.groups.items()))
    artifact.service_accounts = dict(sorted(artifact.service_accounts.items()))
    artifact.memberships = dict(sorted(artifact.memberships.items()))

    artifact.users_total = len(artifact.users)
    artifact.bots_total = len(artifact.bots)
    artifact.service_accounts_total = len(artifact.service_accounts)
    artifact.groups_total = len(artifact.groups)
    artifact.orgs_total = len(artifact.orgs)
    artifact.roles_total = len(artifact.roles)
    artifact.permissions.users_total = len(artifact.permissions.users)
    artifact.permissions.service_accounts_total = len(
        artifact.permissions.service_accounts
    )
    artifact.permissions.groups_total = len(artifact.permissions.groups)

    logger.debug(
        f"Finalized {artifact.kind}: {artifact.users_total} users, "
        f"{artifact.bots_total} bots, {artifact.groups_total} groups"
    )
    return artifact
