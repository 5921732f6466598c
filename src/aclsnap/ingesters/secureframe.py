"""
Secureframe personnel ingester.

Parses the CSV exported from the Secureframe personnel page.
"""

from __future__ import annotations

import logging

from aclsnap.ingesters.base import (
    IngesterConfig,
    IngesterDescription,
    local_part,
    new_artifact,
)
from aclsnap.ingesters.tabular import decode_content, read_records
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

COLUMNS = {
    "Name (email)": "email",
    "Access role": "role",
}

REQUIRED_COLUMNS = tuple(COLUMNS)


class SecureframePersonnel:
    """Converts a Secureframe personnel export into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="secureframe",
            name="Secureframe Personnel",
            steps=(
                "Open https://app.secureframe.com/personnel",
                "Deselect any active filters",
                "Click Export...",
                "Select 'Direct Download'",
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
            # personnel without an access role cannot log in
            if not r["role"]:
                logger.debug(f"Skipping {r['email']}: no access role")
                continue
            account = local_part(r["email"])
            if not account:
                continue
            artifact.users.append(User(account=account, role=r["role"]))

        return artifact
