"""
Google Workspace user audit ingester.

Parses the CSV downloaded from the Admin console user accounts report.
The export stamps its audit date into the first line as
`` [YYYY-MM-DD GMT]``; that date becomes the artifact's source date and the
token is removed before CSV parsing.
"""

from __future__ import annotations

import logging
import re

from aclsnap.ingesters.base import (
    IngesterConfig,
    IngesterDescription,
    local_part,
    new_artifact,
)
from aclsnap.ingesters.tabular import decode_content, normalize_status, read_records
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

AUDIT_DATE_PATTERN = re.compile(r" \[(\d{4}-\d{2}-\d{2}) GMT\]")

COLUMNS = {
    "User": "user",
    "User account status": "status",
    "Admin status": "admin_status",
    "Admin-defined name": "name",
}

REQUIRED_COLUMNS = ("User", "User account status", "Admin status")

NO_ADMIN_STATUS = "None"


def extract_audit_date(text: str) -> tuple[str, str]:
    """
    Pull the audit date out of the first line of an audit export.

    Args:
        text: Raw export text

    Returns:
        Tuple of (text with the date token removed from line one, date or "")
    """
    first, sep, rest = text.partition("\n")

    audit_date = ""
    match = AUDIT_DATE_PATTERN.search(first)
    if match:
        audit_date = match.group(1)
        logger.debug(f"Found audit date {audit_date}")
    return AUDIT_DATE_PATTERN.sub("", first) + sep + rest, audit_date


class GoogleWorkspaceUserAudit:
    """Converts a Google Workspace user audit CSV into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="google-workspace-audit",
            name="Google Workspace User Audit",
            steps=(
                "Open https://admin.google.com/ac/reporting/report/user/accounts",
                "Click Download icon",
                "Select All Columns",
                "Click CSV",
                "Download resulting CSV file for analysis",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())

        text, audit_date = extract_audit_date(decode_content(artifact.metadata.content))
        if audit_date:
            artifact.metadata.source_date = audit_date

        for r in read_records(text, COLUMNS, REQUIRED_COLUMNS):
            account = local_part(r["user"])
            if not account:
                continue

            # The audit is about privileges; display names are left out
            user = User(account=account, status=normalize_status(r["status"]))
            if r["admin_status"] != NO_ADMIN_STATUS:
                user.role = r["admin_status"]
            artifact.users.append(user)

        return artifact
