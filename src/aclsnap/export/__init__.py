"""
Export module for ACL Snapshot.

Renders artifacts as YAML documents and change lists as CSV, and loads
previously rendered artifacts back for comparison.
"""

from aclsnap.export.csv_exporter import CHANGE_HEADERS, render_changes
from aclsnap.export.yaml_exporter import (
    artifact_filename,
    load_artifact,
    load_artifact_file,
    render_artifact,
)

__all__ = [
    "CHANGE_HEADERS",
    "artifact_filename",
    "load_artifact",
    "load_artifact_file",
    "render_artifact",
    "render_changes",
]
