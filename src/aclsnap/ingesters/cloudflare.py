"""
Cloudflare account members ingester.

Parses a saved copy of the Cloudflare account "Members" page. Each member
row holds cells with either the e-mail address or the role, followed by
badges for account status and two-factor state.
"""

from __future__ import annotations

import logging
import re

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.scraped import parse_html
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

ACTIVE_BADGE = "Active"
TWO_FACTOR_ENABLED_BADGE = "Enabled"


class CloudflareMembers:
    """Converts a saved Cloudflare members page into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="cloudflare",
            name="Cloudflare Site Permissions",
            steps=(
                "Open https://dash.cloudflare.com/",
                "Select your account",
                "Click 'Manage Account'",
                "Click 'Members'",
                "Save this page (Complete)",
                "Collect resulting .html file for analysis (the other files are not necessary)",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
            matching_filename=re.compile(r".*Cloudflare.*\.html$"),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        doc = parse_html(artifact.metadata.content)

        for row in doc.select("div[role=row]"):
            user = User()
            for cell in row.select("div.c_sx"):
                value = cell.get_text().strip()
                if "@" in value:
                    user.account = value
                    continue
                user.role = value.split(" - ", 1)[0].strip()

            badges = [b.get_text().strip() for b in row.select("span.c_lf")]
            if len(badges) > 0 and badges[0] != ACTIVE_BADGE:
                user.deleted = True
            if len(badges) > 1 and badges[1] != TWO_FACTOR_ENABLED_BADGE:
                user.two_factor_disabled = True

            if not user.account:
                continue
            artifact.users.append(user)

        logger.debug(f"Found {len(artifact.users)} Cloudflare members")
        return artifact
