"""
Ingesters for ACL Snapshot.

Each ingester converts one platform's export into an Artifact. The
registry below maps a kind string to an ingester instance; descriptions
can be consulted without running anything (filename guessing, help text).

Available kinds:
- cloudflare: Saved Cloudflare members page
- gcp: Google Cloud project IAM policies (via gcloud)
- gcp-firewalls: Google Cloud project firewall rules (via gcloud)
- ghost: Saved Ghost staff page
- google-workspace-audit: Google Workspace user audit CSV
- google-workspace-users: Google Workspace user export CSV
- pulumi: Saved Pulumi people page
- secureframe: Secureframe personnel CSV
- slack: Slack members CSV
- vercel: Saved Vercel team members page
- webflow: Saved Webflow members page
"""

from __future__ import annotations

import logging
import os

from aclsnap.errors import NoInputError, UnknownKindError
from aclsnap.finalizer import finalize_artifact
from aclsnap.ingesters.base import (
    Ingester,
    IngesterConfig,
    IngesterDescription,
    new_artifact,
    new_source,
    render_steps,
)
from aclsnap.ingesters.cloudflare import CloudflareMembers
from aclsnap.ingesters.gcp_firewall import GoogleCloudProjectFirewall
from aclsnap.ingesters.gcp_iam import GoogleCloudProjectIAM
from aclsnap.ingesters.ghost import GhostStaff
from aclsnap.ingesters.google_workspace_audit import GoogleWorkspaceUserAudit
from aclsnap.ingesters.google_workspace_users import GoogleWorkspaceUsers
from aclsnap.ingesters.pulumi import PulumiPeople
from aclsnap.ingesters.secureframe import SecureframePersonnel
from aclsnap.ingesters.slack import SlackMembers
from aclsnap.ingesters.vercel import VercelMembers
from aclsnap.ingesters.webflow import WebflowMembers
from aclsnap.models import Artifact

logger = logging.getLogger(__name__)


def available() -> list[Ingester]:
    """Get one instance of every registered ingester, alphabetical by kind."""
    ingesters: list[Ingester] = [
        CloudflareMembers(),
        GoogleCloudProjectIAM(),
        GoogleCloudProjectFirewall(),
        GhostStaff(),
        GoogleWorkspaceUserAudit(),
        GoogleWorkspaceUsers(),
        PulumiPeople(),
        SecureframePersonnel(),
        SlackMembers(),
        VercelMembers(),
        WebflowMembers(),
    ]
    return sorted(ingesters, key=lambda i: i.description().kind)


def available_kinds() -> list[str]:
    """Get the sorted list of registered kinds."""
    return sorted(i.description().kind for i in available())


def new(kind: str) -> Ingester:
    """
    Get the ingester registered for a kind.

    Raises:
        UnknownKindError: If no ingester has this kind
    """
    for ingester in available():
        if ingester.description().kind == kind:
            return ingester
    raise UnknownKindError(f"unknown kind: {kind!r}")


def suggest_kind(path: str) -> str:
    """
    Guess the kind of an input file from its name.

    Filename patterns win over kind prefixes; among prefixes the longest
    matching kind wins, so gcp-firewalls.json is not taken for gcp.

    Raises:
        UnknownKindError: If no ingester recognizes the file name
    """
    base = os.path.basename(path)
    descriptions = [i.description() for i in available()]

    for desc in descriptions:
        if desc.matching_filename is not None and desc.matching_filename.search(base):
            return desc.kind

    prefixed = [d.kind for d in descriptions if base.startswith(d.kind)]
    if prefixed:
        return max(prefixed, key=len)

    raise UnknownKindError(f"unable to find kind for {path!r}")


def ingest(config: IngesterConfig) -> Artifact:
    """
    Run the ingester for a configuration and finalize its artifact.

    The kind is taken from the configuration, or guessed from the input
    path when empty.

    Raises:
        NoInputError: If neither a kind nor an input path is given
        UnknownKindError: If the kind is unknown or cannot be guessed
    """
    kind = config.kind
    if not kind:
        if not config.path:
            raise NoInputError("an input path or a kind is required")
        kind = suggest_kind(config.path)
        config.kind = kind

    ingester = new(kind)
    logger.info(f"Processing {config.path or '<no input>'} as {kind}")
    return finalize_artifact(ingester.process(config))


def kind_help(config: IngesterConfig | None = None) -> str:
    """
    Render the operator instructions of every kind.

    Args:
        config: Configuration used to fill in path and project (optional)

    Returns:
        Multi-line help text
    """
    config = config or IngesterConfig()
    lines = []
    for ingester in available():
        desc = ingester.description()
        lines.append(f"{desc.kind}: {desc.name}")
        for i, step in enumerate(render_steps(desc.steps, config, desc.kind), 1):
            lines.append(f"  {i}. {step}")
        lines.append("")
    return "\n".join(lines)


__all__ = [
    "CloudflareMembers",
    "GhostStaff",
    "GoogleCloudProjectFirewall",
    "GoogleCloudProjectIAM",
    "GoogleWorkspaceUserAudit",
    "GoogleWorkspaceUsers",
    "Ingester",
    "IngesterConfig",
    "IngesterDescription",
    "PulumiPeople",
    "SecureframePersonnel",
    "SlackMembers",
    "VercelMembers",
    "WebflowMembers",
    "available",
    "available_kinds",
    "ingest",
    "kind_help",
    "new",
    "new_artifact",
    "new_source",
    "suggest_kind",
]
