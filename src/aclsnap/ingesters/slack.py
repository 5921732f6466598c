"""
Slack member list ingester.

Parses the CSV produced by Slack's "Export Member List" admin action.
"""

from __future__ import annotations

import logging

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.tabular import decode_content, read_records
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

COLUMNS = {
    "username": "username",
    "email": "email",
    "status": "status",
    "fullname": "fullname",
    "displayname": "displayname",
}

REQUIRED_COLUMNS = ("username", "email", "status")

# Status values that carry no role information
PLAIN_MEMBER_STATUSES = {"Member", "Active"}

BOT_STATUS = "Bot"
DEACTIVATED_STATUS = "Deactivated"


class SlackMembers:
    """Converts a Slack member export into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="slack",
            name="Slack Members",
            steps=(
                "Open Slack",
                "Click <org name>▼",
                "Select 'Settings & Administration'",
                "Select 'Manage Members'",
                "Select 'Export Member List'",
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
            if r["status"] == DEACTIVATED_STATUS:
                logger.debug(f"Skipping deactivated member {r['username']}")
                continue

            name = r["fullname"] or r["displayname"]

            if r["status"] == BOT_STATUS:
                artifact.bots.append(
                    User(account=f"{r['username']}!{r['email']}", name=name)
                )
                continue

            if not r["email"]:
                logger.debug(f"Skipping member without e-mail: {r['username']}")
                continue

            role = "" if r["status"] in PLAIN_MEMBER_STATUSES else r["status"]
            artifact.users.append(User(account=r["email"], name=name, role=role))

        return artifact
