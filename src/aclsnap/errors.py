"""
Error types for ACL Snapshot.

Every failure an ingester, the external-tool adapter or the driver can
report is one of the classes below. Each carries a stable ``kind`` string
so callers (CLI, web UI, tests) can branch on the failure category without
matching message text.
"""

from __future__ import annotations


class AclSnapError(Exception):
    """Base exception for ACL Snapshot errors."""

    kind: str = "error"


class InputError(AclSnapError):
    """Raised when an input path cannot be opened or stat'd, or a stream cannot be read."""

    kind = "io-error"


class ParseError(AclSnapError):
    """Raised when a CSV, HTML, JSON or YAML payload is malformed."""

    kind = "parse-error"


class SchemaError(AclSnapError):
    """Raised when an expected field is missing or an enumerant is unknown."""

    kind = "schema-error"


class ExternalToolError(AclSnapError):
    """Raised when the companion CLI exits non-zero or cannot be started."""

    kind = "external-tool-error"

    def __init__(self, command: list[str], stderr: str = "", message: str = ""):
        self.command = list(command)
        self.stderr = stderr
        rendered = " ".join(self.command)
        text = f"{rendered}: {message or 'command failed'}"
        if stderr:
            text += f"\nstderr: {stderr.strip()}"
        super().__init__(text)


class UnknownKindError(AclSnapError):
    """Raised when a requested ingester kind is not registered."""

    kind = "unknown-kind"


class NoInputError(AclSnapError):
    """Raised when an ingester needs input and none was supplied."""

    kind = "no-input"
