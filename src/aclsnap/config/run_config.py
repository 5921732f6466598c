"""
Run configuration for ACL Snapshot.

Settings for one invocation come from, lowest to highest precedence:
built-in defaults, a JSON or YAML configuration file, environment
variables and command-line flags.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any

import yaml

from aclsnap.errors import InputError, ParseError, SchemaError

DEFAULT_PORT = 8080


@dataclass
class RunConfiguration:
    """
    Settings for one invocation.

    Attributes:
        input: Input file to ingest
        in_dir: Directory whose files are all ingested
        kind: Ingester kind (guessed from file names when empty)
        project: GCP project for the gcloud-backed kinds
        gcp_identity_project: Project used for Cloud Identity lookups
        out_dir: Directory to write artifacts to (stdout when empty)
        compare: Artifact file or directory to compare against
        serve: Whether to start the upload UI
        port: Port the upload UI listens on
    """

    input: str = ""
    in_dir: str = ""
    kind: str = ""
    project: str = ""
    gcp_identity_project: str = ""
    out_dir: str = ""
    compare: str = ""
    serve: bool = False
    port: int = DEFAULT_PORT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "input": self.input,
            "in_dir": self.in_dir,
            "kind": self.kind,
            "project": self.project,
            "gcp_identity_project": self.gcp_identity_project,
            "out_dir": self.out_dir,
            "compare": self.compare,
            "serve": self.serve,
            "port": self.port,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunConfiguration:
        """Create from dictionary."""
        try:
            port = int(data.get("port", DEFAULT_PORT) or DEFAULT_PORT)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"invalid port: {data.get('port')!r}") from e
        return cls(
            input=data.get("input", "") or "",
            in_dir=data.get("in_dir", "") or "",
            kind=data.get("kind", "") or "",
            project=data.get("project", "") or "",
            gcp_identity_project=data.get("gcp_identity_project", "") or "",
            out_dir=data.get("out_dir", "") or "",
            compare=data.get("compare", "") or "",
            serve=bool(data.get("serve", False)),
            port=port,
        )

    @classmethod
    def from_file(cls, path: str) -> RunConfiguration:
        """
        Load configuration from a JSON or YAML file.

        Raises:
            InputError: If the file cannot be read
            ParseError: If the file is not valid JSON or YAML
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except OSError as e:
            raise InputError(f"read {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ParseError(f"config {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SchemaError(f"config {path}: expected a mapping")
        return cls.from_dict(data)

    def with_overrides(self, **values: Any) -> RunConfiguration:
        """
        Get a copy with every non-empty value applied.

        Unknown names and empty values (None, "", False, 0) are ignored so
        unset command-line flags never clear configured settings.
        """
        names = {f.name for f in fields(self)}
        changes = {k: v for k, v in values.items() if k in names and v}
        return replace(self, **changes)


def load_config_from_env() -> RunConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        ACLSNAP_CONFIG_FILE: Path to configuration file (JSON or YAML)
        ACLSNAP_INPUT: Input file
        ACLSNAP_IN_DIR: Input directory
        ACLSNAP_KIND: Ingester kind
        ACLSNAP_PROJECT: GCP project
        ACLSNAP_GCP_IDENTITY_PROJECT: GCP project for Cloud Identity lookups
        ACLSNAP_OUT_DIR: Output directory
        SERVE_MODE: Set to 1 to start the upload UI
        PORT: Port for the upload UI

    Returns:
        RunConfiguration instance
    """
    config = RunConfiguration()

    config_file = os.getenv("ACLSNAP_CONFIG_FILE")
    if config_file:
        config = RunConfiguration.from_file(config_file)

    port = os.getenv("PORT")
    if port:
        try:
            config.port = int(port)
        except ValueError as e:
            raise SchemaError(f"invalid PORT: {port!r}") from e

    return config.with_overrides(
        input=os.getenv("ACLSNAP_INPUT"),
        in_dir=os.getenv("ACLSNAP_IN_DIR"),
        kind=os.getenv("ACLSNAP_KIND"),
        project=os.getenv("ACLSNAP_PROJECT"),
        gcp_identity_project=os.getenv("ACLSNAP_GCP_IDENTITY_PROJECT"),
        out_dir=os.getenv("ACLSNAP_OUT_DIR"),
        serve=os.getenv("SERVE_MODE") == "1",
    )
