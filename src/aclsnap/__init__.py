"""
ACL Snapshot - who has access to what, as reviewable YAML

Collects identity and access information from SaaS and cloud platforms,
normalizes it into one declarative artifact format, and renders it as
YAML suitable for version control. Comparing two snapshots answers
"what changed since last time?".

Quick Start:
    >>> from aclsnap.ingesters import IngesterConfig, ingest
    >>> from aclsnap.export import render_artifact
    >>>
    >>> artifact = ingest(IngesterConfig(path="slack-members.csv"))
    >>> print(render_artifact(artifact))
"""

from __future__ import annotations

__version__ = "0.1.0"

from aclsnap.errors import (
    AclSnapError,
    ExternalToolError,
    InputError,
    NoInputError,
    ParseError,
    SchemaError,
    UnknownKindError,
)
from aclsnap.models import (
    Artifact,
    FirewallRule,
    FirewallRuleMeta,
    Group,
    Membership,
    Permissions,
    Source,
    User,
)
from aclsnap.finalizer import finalize_artifact

__all__ = [
    "__version__",
    # Errors
    "AclSnapError",
    "ExternalToolError",
    "InputError",
    "NoInputError",
    "ParseError",
    "SchemaError",
    "UnknownKindError",
    # Models
    "Artifact",
    "FirewallRule",
    "FirewallRuleMeta",
    "Group",
    "Membership",
    "Permissions",
    "Source",
    "User",
    # Finalization
    "finalize_artifact",
]
