"""
Google Cloud project IAM ingester.

Walks the IAM policies of a project and its ancestors (folders and the
organization), expands group principals into their members, and records
for every principal the roles it holds directly or through a group.

A note on naming: Google Groups give each member a single group role
(OWNER, ADMIN, MEMBER), which is recorded as a Membership role. GCP IAM
roles (roles/viewer, ...) granted through bindings are recorded as
``roles`` on users, service accounts and groups.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from aclsnap.errors import NoInputError, SchemaError
from aclsnap.gcloud import (
    GCloudCLI,
    GCloudClient,
    GCPMemberCache,
    GCPRole,
    GroupMembership,
    ServiceAccount,
)
from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.models import DIRECT_MEMBERSHIP, Artifact, Group, Membership, User

logger = logging.getLogger(__name__)

# Roles every organization member has, or that are internal to GCP
HIDDEN_ROLES = (
    "roles/billing.costsManager",
    "roles/billing.creator",
    "roles/billing.user",
    "roles/billing.viewer",
    "roles/dlp.orgdriver",
    "roles/project.Creator",
    "roles/recommender.exporter",
    "roles/resourcemanager.folderViewer",
    "roles/resourcemanager.organizationViewer",
    "roles/resourcemanager.projectCreator",
)

# Applied in order, first occurrence only
DESCRIPTION_REWRITES = (
    ("Access to ", ""),
    ("Read-only ", "read "),
    ("Read only ", "read "),
    ("Create and manage ", "Manage "),
    ("The permission to ", ""),
    ("Authorized to ", ""),
    ("Grants access to ", ""),
    ("Allows users to ", ""),
    ("Access and administer ", "Administer "),
    (" to all ", " to "),
    ("administer all ", "administer "),
    (" to get and list ", " to "),
    ("Admin(super user)", "Admin "),
    ("the Kubernetes Engine service account in the host \t", "GKE SA "),
    ("standard (non-administrator) ", "standard "),
    ("(applicable for GCP Customer Care and Maps support)", ""),
)

# Removed only when the description starts with them
LEADING_PREFIXES = ("Can ", "Allows ")

CUSTOM_ROLE_DESCRIPTION = "Custom"

# MEMBER < ADMIN < OWNER
GROUP_ROLE_RANK = {"MEMBER": 0, "ADMIN": 1, "OWNER": 2}
DEFAULT_GROUP_ROLE = "MEMBER"

SERVICE_ACCOUNT_DOMAIN = "gserviceaccount.com"
IAM_SERVICE_ACCOUNT_SUFFIX = ".iam.gserviceaccount.com"

PRINCIPAL_KINDS = ("user", "group", "serviceAccount", "domain")

_GOOGLE_MANAGED_SA = re.compile(r"^service-\d+@[\w.-]+\.iam\.gserviceaccount\.com$")
_PROJECT_NUMBER_PREFIX = re.compile(r"^(?:service-)?(\d+)")


@dataclass
class Principal:
    """
    A parsed principal reference (``kind:name@domain``).

    Attributes:
        kind: user, group, serviceAccount, domain (or the raw prefix if unknown)
        username: Part before the @
        domain: Part after the @
        deleted: Whether the reference carried a ``deleted:`` prefix
    """

    kind: str
    username: str
    domain: str = ""
    deleted: bool = False

    @property
    def email(self) -> str:
        if not self.domain:
            return self.username
        return f"{self.username}@{self.domain}"


def parse_principal(reference: str) -> Principal:
    """
    Parse a principal reference such as ``deleted:user:bob@example.com?uid=1``.

    References in a gserviceaccount.com domain are service accounts
    regardless of their prefix.
    """
    deleted = reference.startswith("deleted:")
    kind = "unknown"
    identity = reference

    sep = reference.rfind(":")
    if sep > 0:
        kind = reference[:sep]
        identity = reference[sep + 1:]
    if deleted:
        kind = kind[len("deleted:"):]

    identity = identity.split("?uid=", 1)[0]
    username, _, domain = identity.partition("@")

    if domain.endswith(SERVICE_ACCOUNT_DOMAIN):
        kind = "serviceAccount"

    return Principal(kind=kind, username=username, domain=domain, deleted=deleted)


def short_name(principal: Principal, orgs: list[str]) -> str:
    """
    Get the readable key for a principal.

    Single-organization installs drop the organization domain; service
    accounts additionally drop ``.gserviceaccount.com``.
    """
    name = principal.email
    if len(orgs) == 1 and name.endswith(f"@{orgs[0]}"):
        name = name[: -len(orgs[0]) - 1]
    if principal.kind == "serviceAccount" and name.endswith(f".{SERVICE_ACCOUNT_DOMAIN}"):
        name = name[: -len(SERVICE_ACCOUNT_DOMAIN) - 1]
    return name


def is_internal_service_account(email: str, project_number: str) -> bool:
    """Check for Google-managed service accounts GCP hides by default."""
    if _GOOGLE_MANAGED_SA.match(email):
        return True
    return bool(project_number) and email == (
        f"{project_number}@cloudservices.{SERVICE_ACCOUNT_DOMAIN}"
    )


def service_account_project(principal: Principal, projects_by_number: dict[str, str]) -> str:
    """Guess which project a service account belongs to."""
    match = _PROJECT_NUMBER_PREFIX.match(principal.username)
    if match and match.group(1) in projects_by_number:
        return projects_by_number[match.group(1)]
    if principal.domain.endswith(IAM_SERVICE_ACCOUNT_SUFFIX):
        return principal.domain[: -len(IAM_SERVICE_ACCOUNT_SUFFIX)]
    return ""


def highest_group_role(roles: list[str]) -> str:
    """
    Collapse a group membership's roles to the highest one.

    Returns:
        OWNER or ADMIN, or "" for plain members
    """
    highest = ""
    for role in roles:
        role = role.upper()
        if not highest or GROUP_ROLE_RANK.get(role, -1) > GROUP_ROLE_RANK.get(highest, -1):
            highest = role
    if highest == DEFAULT_GROUP_ROLE:
        return ""
    return highest


def short_role_label(role: GCPRole) -> str:
    """
    Render a compact label for an IAM role.

    Example:
        roles/viewer with "Read-only access to all resources in the project."
        becomes "viewer (read access to resources in the project)".
    """
    short_id = role.name.replace("roles/", "")
    desc = role.description.split(".", 1)[0]
    if not desc:
        desc = role.title

    for old, new in DESCRIPTION_REWRITES:
        desc = desc.replace(old, new, 1)
    for prefix in LEADING_PREFIXES:
        if desc.startswith(prefix):
            desc = desc[len(prefix):]

    desc = desc.replace("  ", " ")
    desc = desc.removesuffix(".").strip()

    logger.debug(f"Short label for {role.name}: {short_id} ({desc})")
    if not desc:
        return short_id
    return f"{short_id} ({desc})"


def role_label(name: str, catalogue: dict[str, GCPRole]) -> str:
    """Label a bound role, treating roles missing from the catalogue as custom."""
    role = catalogue.get(name)
    if role is None:
        logger.info(f"{name!r} not in role list")
        role = GCPRole(name=name, description=CUSTOM_ROLE_DESCRIPTION)
    return short_role_label(role)


def expand_group(
    reference: str,
    principal: Principal,
    identity_project: str,
    cache: GCPMemberCache,
    gcloud: GCloudClient,
) -> list[GroupMembership]:
    """
    Expand a group principal into its members, at most once per reference.

    Args:
        reference: Raw principal reference, used as the cache key
        principal: Parsed reference
        identity_project: Project used for Cloud Identity lookups
        cache: Shared expansion cache
        gcloud: Google Cloud adapter

    Returns:
        Expanded memberships
    """
    cached = cache.get(reference)
    if cached is not None:
        logger.info(f"Using cached members of {reference}")
        return cached

    memberships = gcloud.group_memberships(principal.email, identity_project)
    for m in memberships:
        m.expanded = True
    cache.put(reference, memberships)
    return memberships


@dataclass
class _PolicyAssembly:
    """Mutable state while walking IAM policy documents."""

    orgs: list[str]
    project_number: str
    projects_by_number: dict[str, str]
    service_account_meta: dict[str, ServiceAccount]
    users: dict[str, User] = field(default_factory=dict)
    service_accounts: dict[str, User] = field(default_factory=dict)
    groups: dict[str, Group] = field(default_factory=dict)
    group_roles: dict[str, dict[str, str]] = field(default_factory=dict)
    memberships: dict[str, set[str]] = field(default_factory=dict)

    def add_direct(self, key: str) -> None:
        self.memberships.setdefault(key, set()).add(DIRECT_MEMBERSHIP)

    def add_service_account(self, principal: Principal, label: str) -> None:
        if is_internal_service_account(principal.email, self.project_number):
            logger.debug(f"Skipping internal service account {principal.email}")
            return

        key = short_name(principal, self.orgs)
        account = self.service_accounts.get(key)
        if account is None:
            meta = self.service_account_meta.get(principal.email)
            display_name = meta.display_name if meta is not None else ""
            account = User(
                name="" if display_name == principal.username else display_name,
                email=principal.email,
                project=service_account_project(principal, self.projects_by_number),
            )
            self.service_accounts[key] = account
        if principal.deleted:
            account.deleted = True
        account.roles.append(label)
        self.add_direct(key)

    def add_user(self, principal: Principal, label: str) -> None:
        key = short_name(principal, self.orgs)
        user = self.users.setdefault(key, User(email=principal.email))
        if principal.deleted:
            user.deleted = True
        user.roles.append(label)
        self.add_direct(key)

    def add_group(
        self, principal: Principal, label: str, members: list[GroupMembership]
    ) -> None:
        group_key = short_name(principal, self.orgs)
        group = self.groups.setdefault(group_key, Group())
        group.roles.append(label)
        roles_in_group = self.group_roles.setdefault(group_key, {})

        for membership in members:
            member = parse_principal(f"user:{membership.member_id}")
            if member.kind == "serviceAccount" and is_internal_service_account(
                member.email, self.project_number
            ):
                continue
            member_key = short_name(member, self.orgs)
            group.members.append(member_key)
            self.memberships.setdefault(member_key, set()).add(group_key)
            roles_in_group[member_key] = highest_group_role(membership.roles)


class GoogleCloudProjectIAM:
    """Converts the IAM policies of a GCP project into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="gcp",
            name="Google Cloud Project IAM Policies",
            steps=("Execute 'aclsnap --kind={kind} --project={project}'",),
            no_input_required=True,
            filter={"role": HIDDEN_ROLES},
        )

    def process(self, config: IngesterConfig) -> Artifact:
        if not config.project:
            raise NoInputError("kind gcp requires a project")

        artifact = new_artifact(config, self.description())
        gcloud = config.gcloud or GCloudCLI()
        project = config.project
        identity_project = config.gcp_identity_project or project

        docs = gcloud.ancestors_iam_policy(project)
        catalogue = gcloud.roles(project)
        logger.debug(f"Found {len(catalogue)} roles")
        sa_meta = {sa.email: sa for sa in gcloud.service_accounts(project)}
        orgs = gcloud.organizations()
        project_number = gcloud.project_number(project)
        logger.debug(f"Project number: {project_number} - orgs: {orgs}")
        projects_by_number = gcloud.projects_by_number()

        state = _PolicyAssembly(
            orgs=orgs,
            project_number=project_number,
            projects_by_number=projects_by_number,
            service_account_meta=sa_meta,
        )

        for doc in docs:
            if not artifact.metadata.id:
                artifact.metadata.id = doc.id
                artifact.metadata.name = f"Google Cloud IAM Policy for {doc.id}"

            for binding in doc.bindings:
                if binding.role in HIDDEN_ROLES:
                    logger.debug(f"Filtered role {binding.role} for {binding.members}")
                    continue

                label = role_label(binding.role, catalogue)
                for reference in binding.members:
                    principal = parse_principal(reference)
                    if principal.kind == "domain":
                        continue
                    if principal.kind == "serviceAccount":
                        state.add_service_account(principal, label)
                    elif principal.kind == "user":
                        state.add_user(principal, label)
                    elif principal.kind == "group":
                        members = expand_group(
                            reference,
                            principal,
                            identity_project,
                            config.gcp_member_cache,
                            gcloud,
                        )
                        state.add_group(principal, label, members)
                    else:
                        raise SchemaError(
                            f"unknown binding type {principal.kind!r}: {reference}"
                        )

        self._assemble(artifact, state)
        logger.info(
            f"IAM policy for {project}: {len(state.users)} users, "
            f"{len(state.service_accounts)} service accounts, "
            f"{len(state.groups)} groups"
        )
        return artifact

    def _assemble(self, artifact: Artifact, state: _PolicyAssembly) -> None:
        """Move assembled principals into the artifact, deduplicated and sorted."""
        artifact.orgs = [Group(name=o) for o in state.orgs if o]

        for key in sorted(state.groups):
            group = state.groups[key]
            artifact.permissions.groups[key] = Group(
                roles=sorted(set(group.roles)),
                members=sorted(set(group.members)),
            )

        for key in sorted(state.users):
            user = state.users[key]
            user.roles = sorted(set(user.roles))
            artifact.permissions.users[key] = user

        for key in sorted(state.service_accounts):
            account = state.service_accounts[key]
            account.roles = sorted(set(account.roles))
            artifact.permissions.service_accounts[key] = account

        principals = dict(artifact.permissions.service_accounts)
        principals.update(artifact.permissions.users)
        for key, principal in principals.items():
            # roles already shown directly or via an earlier group are hidden
            seen = set(principal.roles)
            for group_key, group in artifact.permissions.groups.items():
                if key not in group.members:
                    continue
                inherited = [r for r in group.roles if r not in seen]
                seen.update(inherited)
                principal.groups.append(
                    Membership(
                        name=group_key,
                        role=state.group_roles.get(group_key, {}).get(key, ""),
                        permissions=inherited,
                    )
                )

        for key in sorted(state.memberships):
            artifact.memberships[key] = ",".join(sorted(state.memberships[key]))
