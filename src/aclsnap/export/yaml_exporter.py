"""
YAML rendering and loading of artifacts.

Artifacts render with keys in model order and empty fields omitted. A
blank line separates the entries of user and bot lists so individual
principals stand out in reviews and diffs.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from aclsnap.errors import InputError, ParseError, SchemaError
from aclsnap.models import Artifact

logger = logging.getLogger(__name__)

ACCOUNT_ENTRY = "- account:"


class _IndentedDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences under their parent key."""

    def increase_indent(self, flow: bool = False, indentless: bool = False):
        return super().increase_indent(flow, False)


def _separate_accounts(text: str) -> str:
    lines = []
    for i, line in enumerate(text.splitlines()):
        if i > 0 and line.lstrip().startswith(ACCOUNT_ENTRY):
            lines.append("")
        lines.append(line)
    return "\n".join(lines) + "\n"


def render_artifact(artifact: Artifact) -> str:
    """
    Render an artifact as a YAML document.

    Args:
        artifact: Finalized artifact

    Returns:
        YAML text
    """
    text = yaml.dump(
        artifact.to_dict(),
        Dumper=_IndentedDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    return _separate_accounts(text)


def load_artifact(content: str | bytes) -> Artifact:
    """
    Load an artifact from YAML text.

    Raises:
        ParseError: If the text is not valid YAML
        SchemaError: If the document is not a mapping
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ParseError(f"artifact: {e}") from e

    if not isinstance(data, dict):
        raise SchemaError(f"expected artifact mapping, got {type(data).__name__}")
    return Artifact.from_dict(data)


def load_artifact_file(path: str | Path) -> Artifact:
    """
    Load an artifact from a YAML file.

    Raises:
        InputError: If the file cannot be read
    """
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as e:
        raise InputError(f"read {path}: {e}") from e

    logger.debug(f"Loading artifact from {path}")
    return load_artifact(content)


def artifact_filename(artifact: Artifact) -> str:
    """Get the output file name: <kind>.yaml, or <kind>_<id>.yaml when scoped."""
    if artifact.metadata.id:
        return f"{artifact.kind}_{artifact.metadata.id}.yaml"
    return f"{artifact.kind}.yaml"
