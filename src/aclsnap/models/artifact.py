"""
Access model for ACL Snapshot.

This module defines the canonical entities every ingester produces:
Artifact (one snapshot of one platform), its Source header, and the
User, Group, Membership and firewall rule types it contains.

All ``to_dict()`` methods omit empty fields so that rendered snapshots
stay short and diff-able; ``from_dict()`` tolerates missing keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

# Format used for Source.source_date
SOURCE_DATE_FORMAT = "%Y-%m-%d"

# Membership token for a principal bound to a role without a group
DIRECT_MEMBERSHIP = "DIRECT"


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop empty values (None, "", 0, False, empty collections)."""
    return {k: v for k, v in data.items() if v not in (None, "", 0, False, [], {})}


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


@dataclass
class Membership:
    """
    A principal's view of one group.

    Attributes:
        name: Group name
        description: Group description
        role: The principal's role within the group (e.g. OWNER, ADMIN)
        permissions: Permissions inherited via the group, after deduplication
    """

    name: str = ""
    description: str = ""
    role: str = ""
    permissions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "name": self.name,
            "description": self.description,
            "role": self.role,
            "permissions": list(self.permissions),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Membership:
        """Create from dictionary."""
        return cls(
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            role=data.get("role", "") or "",
            permissions=_str_list(data.get("permissions")),
        )


@dataclass
class User:
    """
    A human or machine principal within one platform.

    Attributes:
        account: Primary identifier within the platform
        name: Display name
        email: E-mail address, when distinct from account
        role: Single-valued role
        roles: Multi-valued roles (cloud IAM)
        permissions: Permission labels
        project: Owning project (service accounts)
        status: Free-text status when not active
        groups: Groups this user belongs to
        org: Owning organization
        deleted: Whether the principal has been deleted
        two_factor_disabled: Whether 2FA is off for this principal
        sso: Single sign-on provider or state
    """

    account: str = ""
    name: str = ""
    email: str = ""
    role: str = ""
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    project: str = ""
    status: str = ""
    groups: list[Membership] = field(default_factory=list)
    org: str = ""
    deleted: bool = False
    two_factor_disabled: bool = False
    sso: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "account": self.account,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "roles": list(self.roles),
            "permissions": list(self.permissions),
            "project": self.project,
            "status": self.status,
            "groups": [g.to_dict() for g in self.groups],
            "org": self.org,
            "deleted": self.deleted,
            "two_factor_disabled": self.two_factor_disabled,
            "sso": self.sso,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Create from dictionary."""
        return cls(
            account=str(data.get("account", "") or ""),
            name=data.get("name", "") or "",
            email=data.get("email", "") or "",
            role=data.get("role", "") or "",
            roles=_str_list(data.get("roles")),
            permissions=_str_list(data.get("permissions")),
            project=data.get("project", "") or "",
            status=data.get("status", "") or "",
            groups=[Membership.from_dict(g) for g in data.get("groups") or []],
            org=data.get("org", "") or "",
            deleted=bool(data.get("deleted", False)),
            two_factor_disabled=bool(data.get("two_factor_disabled", False)),
            sso=data.get("sso", "") or "",
        )


@dataclass
class Group:
    """
    A set of principals sharing a permission set.

    Attributes:
        name: Group name (empty when the group is keyed by name in a map)
        description: Group description
        permissions: Permission labels granted to members
        roles: Named IAM roles granted to the group
        members: Account identifiers of members
    """

    name: str = ""
    description: str = ""
    permissions: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    members: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "name": self.name,
            "description": self.description,
            "permissions": list(self.permissions),
            "roles": list(self.roles),
            "members": list(self.members),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Group:
        """Create from dictionary."""
        return cls(
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            permissions=_str_list(data.get("permissions")),
            roles=_str_list(data.get("roles")),
            members=_str_list(data.get("members")),
        )


@dataclass
class FirewallRule:
    """
    The matching part of a firewall rule.

    All fields are strings; lists are comma-joined in canonical order.
    """

    allow: str = ""
    deny: str = ""
    network: str = ""
    sources: str = ""
    destinations: str = ""
    source_tags: str = ""
    target_tags: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "allow": self.allow,
            "deny": self.deny,
            "network": self.network,
            "sources": self.sources,
            "destinations": self.destinations,
            "source_tags": self.source_tags,
            "target_tags": self.target_tags,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FirewallRule:
        """Create from dictionary."""
        return cls(**{k: str(data.get(k, "") or "") for k in (
            "allow", "deny", "network", "sources", "destinations",
            "source_tags", "target_tags",
        )})


@dataclass
class FirewallRuleMeta:
    """
    A named, prioritized firewall rule.

    Attributes:
        name: Rule name
        description: Rule description
        logging: Whether rule logging is enabled
        priority: Rule priority (lower evaluates first)
        rule: The rule itself
    """

    name: str = ""
    description: str = ""
    logging: bool = False
    priority: int = 0
    rule: FirewallRule = field(default_factory=FirewallRule)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = _compact({
            "name": self.name,
            "description": self.description,
            "logging": self.logging,
            "priority": self.priority,
        })
        data["rule"] = self.rule.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FirewallRuleMeta:
        """Create from dictionary."""
        return cls(
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            logging=bool(data.get("logging", False)),
            priority=int(data.get("priority", 0) or 0),
            rule=FirewallRule.from_dict(data.get("rule") or {}),
        )


@dataclass
class Permissions:
    """
    Map views of principals, keyed by short name.

    Used by cloud IAM snapshots where principals are naturally keyed
    by identity rather than listed.
    """

    users_total: int = 0
    users: dict[str, User] = field(default_factory=dict)
    service_accounts_total: int = 0
    service_accounts: dict[str, User] = field(default_factory=dict)
    groups_total: int = 0
    groups: dict[str, Group] = field(default_factory=dict)

    def is_empty(self) -> bool:
        """Check whether no principal is recorded."""
        return not (self.users or self.service_accounts or self.groups)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "users_total": self.users_total,
            "users": {k: v.to_dict() for k, v in self.users.items()},
            "service_accounts_total": self.service_accounts_total,
            "service_accounts": {
                k: v.to_dict() for k, v in self.service_accounts.items()
            },
            "groups_total": self.groups_total,
            "groups": {k: v.to_dict() for k, v in self.groups.items()},
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Permissions:
        """Create from dictionary."""
        return cls(
            users_total=int(data.get("users_total", 0) or 0),
            users={
                str(k): User.from_dict(v or {})
                for k, v in (data.get("users") or {}).items()
            },
            service_accounts_total=int(data.get("service_accounts_total", 0) or 0),
            service_accounts={
                str(k): User.from_dict(v or {})
                for k, v in (data.get("service_accounts") or {}).items()
            },
            groups_total=int(data.get("groups_total", 0) or 0),
            groups={
                str(k): Group.from_dict(v or {})
                for k, v in (data.get("groups") or {}).items()
            },
        )


@dataclass
class Source:
    """
    Provenance header of an Artifact.

    Attributes:
        kind: Stable ingester identifier
        name: Human title
        id: Optional scope (e.g. GCP project)
        source_date: Date of the input (YYYY-MM-DD)
        generated_at: Wall clock at ingestion
        generated_by: OS username of the operator
        process: Rendered operator instructions
        content: Raw input bytes (never serialized)
    """

    kind: str = ""
    name: str = ""
    id: str = ""
    source_date: str = ""
    generated_at: datetime | None = None
    generated_by: str = ""
    process: list[str] = field(default_factory=list)
    content: bytes = field(default=b"", repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return _compact({
            "kind": self.kind,
            "name": self.name,
            "id": self.id,
            "source_date": self.source_date,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "generated_by": self.generated_by,
            "process": list(self.process),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        """Create from dictionary."""
        generated_at = data.get("generated_at")
        if isinstance(generated_at, str) and generated_at:
            generated_at = datetime.fromisoformat(generated_at)
        elif not isinstance(generated_at, datetime):
            generated_at = None

        source_date = data.get("source_date", "") or ""
        if isinstance(source_date, date):
            source_date = source_date.strftime(SOURCE_DATE_FORMAT)

        return cls(
            kind=data.get("kind", "") or "",
            name=data.get("name", "") or "",
            id=str(data.get("id", "") or ""),
            source_date=source_date,
            generated_at=generated_at,
            generated_by=data.get("generated_by", "") or "",
            process=_str_list(data.get("process")),
        )


@dataclass
class Artifact:
    """
    One snapshot of one platform's access state plus provenance.

    An Artifact is created by exactly one ingester run, mutated only during
    that run and the finalization pass, then treated as immutable.

    Count fields are derived by the finalizer and never used as input.
    """

    metadata: Source = field(default_factory=Source)
    users_total: int = 0
    users: list[User] = field(default_factory=list)
    ingress: list[FirewallRuleMeta] = field(default_factory=list)
    egress: list[FirewallRuleMeta] = field(default_factory=list)
    bots_total: int = 0
    bots: list[User] = field(default_factory=list)
    service_accounts_total: int = 0
    service_accounts: dict[str, User] = field(default_factory=dict)
    groups_total: int = 0
    groups: list[Group] = field(default_factory=list)
    orgs_total: int = 0
    orgs: list[Group] = field(default_factory=list)
    roles_total: int = 0
    roles: dict[str, list[str]] = field(default_factory=dict)
    by_permission: dict[str, list[str]] = field(default_factory=dict)
    permissions: Permissions = field(default_factory=Permissions)
    memberships: dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        """Get the ingester kind that produced this artifact."""
        return self.metadata.kind

    def all_users(self) -> list[User]:
        """Get users followed by bots."""
        return list(self.users) + list(self.bots)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert artifact to dictionary representation.

        Returns:
            Ordered dictionary suitable for YAML or JSON serialization
        """
        data: dict[str, Any] = {"metadata": self.metadata.to_dict()}
        data.update(_compact({
            "users_total": self.users_total,
            "users": [u.to_dict() for u in self.users],
            "ingress": [r.to_dict() for r in self.ingress],
            "egress": [r.to_dict() for r in self.egress],
            "bots_total": self.bots_total,
            "bots": [u.to_dict() for u in self.bots],
            "service_accounts_total": self.service_accounts_total,
            "service_accounts": {
                k: v.to_dict() for k, v in self.service_accounts.items()
            },
            "groups_total": self.groups_total,
            "groups": [g.to_dict() for g in self.groups],
            "orgs_total": self.orgs_total,
            "orgs": [g.to_dict() for g in self.orgs],
            "roles_total": self.roles_total,
            "roles": {k: list(v) for k, v in self.roles.items()},
            "by_permission": {k: list(v) for k, v in self.by_permission.items()},
            "permissions": self.permissions.to_dict(),
            "memberships": dict(self.memberships),
        }))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        """
        Create an Artifact from a dictionary.

        Args:
            data: Dictionary as produced by to_dict()

        Returns:
            New Artifact instance
        """
        return cls(
            metadata=Source.from_dict(data.get("metadata") or {}),
            users_total=int(data.get("users_total", 0) or 0),
            users=[User.from_dict(u) for u in data.get("users") or []],
            ingress=[FirewallRuleMeta.from_dict(r) for r in data.get("ingress") or []],
            egress=[FirewallRuleMeta.from_dict(r) for r in data.get("egress") or []],
            bots_total=int(data.get("bots_total", 0) or 0),
            bots=[User.from_dict(u) for u in data.get("bots") or []],
            service_accounts_total=int(data.get("service_accounts_total", 0) or 0),
            service_accounts={
                str(k): User.from_dict(v or {})
                for k, v in (data.get("service_accounts") or {}).items()
            },
            groups_total=int(data.get("groups_total", 0) or 0),
            groups=[Group.from_dict(g) for g in data.get("groups") or []],
            orgs_total=int(data.get("orgs_total", 0) or 0),
            orgs=[Group.from_dict(g) for g in data.get("orgs") or []],
            roles_total=int(data.get("roles_total", 0) or 0),
            roles={
                str(k): _str_list(v) for k, v in (data.get("roles") or {}).items()
            },
            by_permission={
                str(k): _str_list(v)
                for k, v in (data.get("by_permission") or {}).items()
            },
            permissions=Permissions.from_dict(data.get("permissions") or {}),
            memberships={
                str(k): str(v) for k, v in (data.get("memberships") or {}).items()
            },
        )
