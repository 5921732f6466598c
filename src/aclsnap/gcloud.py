"""
Google Cloud adapter for ACL Snapshot.

The GCP ingesters never talk to Google Cloud directly. They call a
GCloudClient, which returns already-parsed structures. GCloudCLI is the
production implementation: it shells out to the ``gcloud`` CLI using the
operator's ambient credentials. Tests inject a fake implementing the same
methods.

Installation:
    https://cloud.google.com/sdk/docs/install

Usage:
    client = GCloudCLI()
    docs = client.ancestors_iam_policy("my-project")
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, Protocol

import yaml

from aclsnap.errors import ExternalToolError, ParseError, SchemaError

logger = logging.getLogger(__name__)


@dataclass
class IAMBinding:
    """Relation of one role to a set of principal references."""

    role: str
    members: list[str] = field(default_factory=list)


@dataclass
class IAMPolicyDocument:
    """
    IAM policy attached to one resource in a project's ancestry.

    Attributes:
        id: Resource identifier (project ID, folder or organization number)
        type: Resource type (project, folder, organization)
        bindings: Role bindings of the policy
    """

    id: str
    type: str = ""
    bindings: list[IAMBinding] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IAMPolicyDocument:
        """Create from a decoded get-ancestors-iam-policy document."""
        if not isinstance(data, dict):
            raise SchemaError(f"expected IAM policy document, got {type(data).__name__}")
        policy = data.get("policy") or {}
        bindings = [
            IAMBinding(role=b.get("role", ""), members=list(b.get("members") or []))
            for b in policy.get("bindings") or []
        ]
        return cls(
            id=str(data.get("id", "")),
            type=data.get("type", ""),
            bindings=bindings,
        )


@dataclass
class GroupMembership:
    """
    One member of a Cloud Identity group.

    Attributes:
        member_id: Member e-mail (the preferred member key)
        roles: Group roles held by the member (MEMBER, ADMIN, OWNER)
        expanded: Whether this entry came from a group expansion
    """

    member_id: str
    roles: list[str] = field(default_factory=list)
    expanded: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroupMembership:
        """Create from a decoded memberships-list document."""
        if not isinstance(data, dict):
            raise SchemaError(f"expected group membership, got {type(data).__name__}")
        key = data.get("preferredMemberKey") or {}
        return cls(
            member_id=key.get("id", ""),
            roles=[r.get("name", "") for r in data.get("roles") or []],
            expanded=True,
        )


@dataclass
class ServiceAccount:
    """Service account metadata."""

    email: str
    display_name: str = ""
    disabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceAccount:
        """Create from a decoded service-accounts-list entry."""
        if not isinstance(data, dict):
            raise SchemaError(f"expected service account, got {type(data).__name__}")
        return cls(
            email=data.get("email", ""),
            display_name=(data.get("displayName") or "").strip(),
            disabled=bool(data.get("disabled", False)),
        )


@dataclass
class GCPRole:
    """
    IAM role catalogue entry.

    Attributes:
        name: Role name (e.g. roles/viewer)
        title: Role title
        description: Role description
    """

    name: str
    title: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GCPRole:
        """Create from a decoded roles-list document."""
        if not isinstance(data, dict):
            raise SchemaError(f"expected IAM role, got {type(data).__name__}")
        return cls(
            name=data.get("name", ""),
            title=data.get("title", "") or "",
            description=data.get("description", "") or "",
        )


class GCloudClient(Protocol):
    """Protocol for the Google Cloud data sources used by the GCP ingesters."""

    def ancestors_iam_policy(self, project: str) -> list[IAMPolicyDocument]:
        """Get IAM policies from project to folder to organization."""
        ...

    def group_memberships(
        self, group_email: str, identity_project: str
    ) -> list[GroupMembership]:
        """List the members of a Cloud Identity group."""
        ...

    def service_accounts(self, project: str) -> list[ServiceAccount]:
        """List service accounts of a project."""
        ...

    def organizations(self) -> list[str]:
        """List organization display names."""
        ...

    def project_number(self, project: str) -> str:
        """Get the numeric identifier of a project."""
        ...

    def projects_by_number(self) -> dict[str, str]:
        """Map project numbers to project IDs."""
        ...

    def roles(self, project: str) -> dict[str, GCPRole]:
        """Get the union of global and project-local IAM roles keyed by name."""
        ...

    def firewall_rules(self, project: str) -> list[dict[str, Any]]:
        """List the raw firewall rules of a project."""
        ...


class GCPMemberCache:
    """
    Group expansion cache shared by every GCP ingester run in one process.

    Keys are raw principal references (e.g. ``group:eng@example.com``);
    values are the expanded membership lists. Lookups never fail.
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[GroupMembership]] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, reference: str) -> bool:
        return reference in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, reference: str) -> list[GroupMembership] | None:
        """
        Look up a cached expansion.

        Args:
            reference: Raw principal reference

        Returns:
            Cached memberships, or None on a miss
        """
        entry = self._entries.get(reference)
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        return entry

    def put(self, reference: str, memberships: list[GroupMembership]) -> None:
        """Store an expansion."""
        self._entries[reference] = list(memberships)


class GCloudCLI:
    """
    GCloudClient implementation backed by the ``gcloud`` CLI.

    Each call runs one process to completion and releases it before the
    next call. Standard error is captured and included in failures.
    """

    def __init__(self, gcloud_path: str | None = None):
        """
        Initialize the adapter.

        Args:
            gcloud_path: Path to the gcloud binary (auto-detected if None)
        """
        self._gcloud_path = gcloud_path

    def _get_gcloud_path(self) -> str:
        """Get the path to the gcloud binary."""
        if self._gcloud_path:
            return self._gcloud_path
        return shutil.which("gcloud") or "gcloud"

    def _run(self, args: list[str]) -> str:
        """
        Run gcloud and return its standard output.

        Raises:
            ExternalToolError: If gcloud cannot be started or exits non-zero
        """
        cmd = [self._get_gcloud_path(), *args]
        logger.info(f"Executing {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            raise ExternalToolError(cmd, message="gcloud binary not found")
        except OSError as e:
            raise ExternalToolError(cmd, message=f"failed to run gcloud: {e}")

        if result.returncode != 0:
            raise ExternalToolError(
                cmd, result.stderr or "", f"exit status {result.returncode}"
            )

        logger.debug(f"Output: {result.stdout}")
        return result.stdout

    def _json(self, args: list[str]) -> Any:
        """Run gcloud with JSON output and decode it."""
        stdout = self._run([*args, "--format=json"])
        try:
            return json.loads(stdout or "null")
        except json.JSONDecodeError as e:
            raise ParseError(f"gcloud {' '.join(args)}: decode: {e}") from e

    def _documents(self, args: list[str]) -> list[Any]:
        """Run gcloud with its default multi-document YAML output and decode it."""
        stdout = self._run(args)
        try:
            return [doc for doc in yaml.safe_load_all(stdout) if doc is not None]
        except yaml.YAMLError as e:
            raise ParseError(f"gcloud {' '.join(args)}: decode: {e}") from e

    def _records(self, args: list[str], what: str) -> list[dict[str, Any]]:
        """Run a JSON list command and check that every entry is an object."""
        data = self._json(args)
        if data is None:
            return []
        if not isinstance(data, list):
            raise SchemaError(f"expected {what} list, got {type(data).__name__}")
        for entry in data:
            if not isinstance(entry, dict):
                raise SchemaError(f"expected {what}, got {type(entry).__name__}")
        return data

    def ancestors_iam_policy(self, project: str) -> list[IAMPolicyDocument]:
        docs = self._documents(["projects", "get-ancestors-iam-policy", project])
        return [IAMPolicyDocument.from_dict(d) for d in docs]

    def group_memberships(
        self, group_email: str, identity_project: str
    ) -> list[GroupMembership]:
        docs = self._documents([
            "identity", "groups", "memberships", "list",
            f"--group-email={group_email}",
            f"--project={identity_project}",
        ])
        return [GroupMembership.from_dict(d) for d in docs]

    def service_accounts(self, project: str) -> list[ServiceAccount]:
        data = self._records(
            ["iam", "service-accounts", "list", f"--project={project}"], "service account"
        )
        return [ServiceAccount.from_dict(s) for s in data]

    def organizations(self) -> list[str]:
        data = self._records(["organizations", "list"], "organization")
        return [o.get("displayName", "") for o in data]

    def project_number(self, project: str) -> str:
        data = self._json(["projects", "describe", project]) or {}
        if not isinstance(data, dict):
            raise SchemaError(f"expected project, got {type(data).__name__}")
        return str(data.get("projectNumber", ""))

    def projects_by_number(self) -> dict[str, str]:
        data = self._records(["projects", "list"], "project")
        return {str(p.get("projectNumber", "")): p.get("projectId", "") for p in data}

    def roles(self, project: str) -> dict[str, GCPRole]:
        roles: dict[str, GCPRole] = {}
        # global roles, then project-local custom roles
        for args in (
            ["iam", "roles", "list"],
            ["iam", "roles", "list", f"--project={project}"],
        ):
            for doc in self._documents(args):
                role = GCPRole.from_dict(doc)
                roles[role.name] = role
        return roles

    def firewall_rules(self, project: str) -> list[dict[str, Any]]:
        return self._records(
            ["compute", "firewall-rules", "list", "--project", project], "firewall rule"
        )
