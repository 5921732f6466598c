"""
Data models for ACL Snapshot.

This package provides the canonical access model shared by every
ingester, the finalizer and the diff engine:

- Artifact: One snapshot of one platform, with its Source header
- User, Group, Membership: Principals and the groups they belong to
- FirewallRuleMeta, FirewallRule: Firewall rule sets
- Permissions: Map views of principals keyed by short name
"""

from aclsnap.models.artifact import (
    Artifact,
    DIRECT_MEMBERSHIP,
    FirewallRule,
    FirewallRuleMeta,
    Group,
    Membership,
    Permissions,
    SOURCE_DATE_FORMAT,
    Source,
    User,
)

__all__ = [
    "Artifact",
    "DIRECT_MEMBERSHIP",
    "FirewallRule",
    "FirewallRuleMeta",
    "Group",
    "Membership",
    "Permissions",
    "SOURCE_DATE_FORMAT",
    "Source",
    "User",
]
