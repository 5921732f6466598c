"""
Ingester framework for ACL Snapshot.

Every ingester exposes a static description (pure data, usable for
filename guessing and help text without running anything) and a single
``process(config)`` operation returning an Artifact. This module holds
those shared types and the Source factory that builds the provenance
header of every artifact.
"""

from __future__ import annotations

import getpass
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Protocol

from aclsnap.errors import InputError
from aclsnap.gcloud import GCloudClient, GCPMemberCache
from aclsnap.models import SOURCE_DATE_FORMAT, Artifact, Source

logger = logging.getLogger(__name__)

# Placeholders rendered into operator instructions
PATH_PLACEHOLDER = "{path}"
PROJECT_PLACEHOLDER = "{project}"
KIND_PLACEHOLDER = "{kind}"


@dataclass(frozen=True)
class IngesterDescription:
    """
    Static description of an ingester.

    Attributes:
        kind: Stable identifier
        name: Display name
        steps: Operator instructions, may contain {path}/{project}/{kind}
        matching_filename: Pattern matched against input basenames
        no_input_required: Whether the ingester runs without an input file
        filter: Values filtered out of the output, by field
    """

    kind: str
    name: str
    steps: tuple[str, ...] = ()
    matching_filename: re.Pattern[str] | None = None
    no_input_required: bool = False
    filter: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass
class IngesterConfig:
    """
    Per-run configuration handed to an ingester.

    Attributes:
        path: Input file path (optional)
        reader: Binary stream with the input (optional)
        project: Project identifier (GCP)
        kind: Requested kind
        gcp_identity_project: Project used for Cloud Identity lookups
        gcp_member_cache: Group expansion cache shared across runs
        gcloud: Google Cloud adapter (defaults to the gcloud CLI)
    """

    path: str = ""
    reader: IO[bytes] | None = None
    project: str = ""
    kind: str = ""
    gcp_identity_project: str = ""
    gcp_member_cache: GCPMemberCache = field(default_factory=GCPMemberCache)
    gcloud: GCloudClient | None = None


class Ingester(Protocol):
    """Protocol implemented by every ingester."""

    def description(self) -> IngesterDescription:
        """Get the static description of this ingester."""
        ...

    def process(self, config: IngesterConfig) -> Artifact:
        """Convert one platform export into an Artifact."""
        ...


def _now() -> datetime:
    """Get current local timestamp."""
    return datetime.now().astimezone()


def _current_user() -> str:
    """Get the OS account name of the current process."""
    try:
        return getpass.getuser()
    except (KeyError, OSError) as e:
        raise InputError(f"user: {e}") from e


def render_steps(
    steps: tuple[str, ...] | list[str], config: IngesterConfig, kind: str = ""
) -> list[str]:
    """
    Substitute placeholders in operator instructions.

    Empty values render as <path> / <project> so the instructions stay
    readable.

    Args:
        steps: Instruction templates
        config: Run configuration providing path and project
        kind: Kind to substitute for {kind}

    Returns:
        Rendered instructions
    """
    path = config.path or "<path>"
    project = config.project or "<project>"
    kind = kind or config.kind or "<kind>"

    rendered = []
    for step in steps:
        step = step.replace(PATH_PLACEHOLDER, path)
        step = step.replace(PROJECT_PLACEHOLDER, project)
        step = step.replace(KIND_PLACEHOLDER, kind)
        rendered.append(step)
    return rendered


def new_source(config: IngesterConfig, description: IngesterDescription) -> Source:
    """
    Build the Source header for an ingester run.

    Reads all bytes from the configured reader (or the path, when no reader
    is given) and stats the path to derive the source date.

    Args:
        config: Run configuration
        description: Description of the running ingester

    Returns:
        Populated Source with the raw content attached

    Raises:
        InputError: If the input cannot be read or stat'd
    """
    content = b""
    try:
        if config.reader is not None:
            content = config.reader.read()
        elif config.path:
            with open(config.path, "rb") as f:
                content = f.read()
    except OSError as e:
        raise InputError(f"read {config.path or '<stream>'}: {e}") from e

    if isinstance(content, str):
        content = content.encode("utf-8")

    now = _now()
    source_date = now.strftime(SOURCE_DATE_FORMAT)
    if config.path:
        try:
            mtime = os.stat(config.path).st_mtime
        except OSError as e:
            raise InputError(f"stat {config.path}: {e}") from e
        source_date = datetime.fromtimestamp(mtime).strftime(SOURCE_DATE_FORMAT)

    logger.debug(
        f"Source for {description.kind}: {len(content)} bytes, dated {source_date}"
    )

    return Source(
        kind=description.kind,
        name=description.name,
        source_date=source_date,
        generated_at=now,
        generated_by=_current_user(),
        process=render_steps(description.steps, config, description.kind),
        content=content,
    )


def new_artifact(config: IngesterConfig, description: IngesterDescription) -> Artifact:
    """Start an artifact with a populated Source header."""
    return Artifact(metadata=new_source(config, description))


def local_part(email: str) -> str:
    """Strip the domain from an e-mail-shaped account."""
    return email.strip().split("@", 1)[0]
