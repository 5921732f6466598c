"""
Google Workspace users ingester.

Parses the CSV downloaded from the Admin console users page.
"""

from __future__ import annotations

from aclsnap.ingesters.base import (
    IngesterConfig,
    IngesterDescription,
    local_part,
    new_artifact,
)
from aclsnap.ingesters.tabular import decode_content, normalize_status, read_records
from aclsnap.models import Artifact, User

COLUMNS = {
    "Email Address [Required]": "email",
    "Status [READ ONLY]": "status",
    "First Name [Required]": "first_name",
    "Last Name [Required]": "last_name",
    "Last Sign In [READ ONLY]": "last_sign_in",
    "2sv Enforced [READ ONLY]": "two_factor_enforced",
}

REQUIRED_COLUMNS = ("Email Address [Required]", "Status [READ ONLY]")


class GoogleWorkspaceUsers:
    """Converts a Google Workspace users CSV into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="google-workspace-users",
            name="Google Workspace Users",
            steps=(
                "Open https://admin.google.com/ac/users",
                "Click Download users",
                "Select 'All user info Columns'",
                "Select 'Comma-separated values (.csv)'",
                "Download resulting CSV file for analysis",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        records = read_records(
            decode_content(artifact.metadata.content), COLUMNS, REQUIRED_COLUMNS
        )

        for r in records:
            account = local_part(r["email"])
            if not account:
                continue
            artifact.users.append(
                User(
                    account=account,
                    name=f"{r['first_name']} {r['last_name']}".strip(),
                    status=normalize_status(r["status"]),
                    two_factor_disabled=r["two_factor_enforced"].lower() == "false",
                )
            )

        return artifact
