"""
Pulumi organization people ingester.

Parses a saved copy of the Pulumi Cloud organization "People" page.
"""

from __future__ import annotations

import re

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.scraped import parse_html, select_text
from aclsnap.models import Artifact, User

MEMBER_ROLE = "member"


class PulumiPeople:
    """Converts a saved Pulumi people page into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="pulumi",
            name="Pulumi Site Permissions",
            steps=(
                "Open https://app.pulumi.com/",
                "Select your company/team",
                "Click 'Settings'",
                "Click 'People'",
                "Save this page (Complete)",
                "Collect resulting .html file for analysis (the other files are not necessary)",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
            matching_filename=re.compile(r"Pulumi.*\.html$"),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        doc = parse_html(artifact.metadata.content)

        for row in doc.select(".cdk-row"):
            email = select_text(row, "a.login")
            if not email:
                continue

            role = select_text(row, "span.ng-star-inserted")
            # the role drop-down repeats its option labels
            if role.startswith(MEMBER_ROLE):
                role = MEMBER_ROLE

            artifact.users.append(
                User(
                    account=email,
                    name=select_text(row, "p.name"),
                    role=role,
                    status=select_text(row, "div.invite-status-container"),
                )
            )

        return artifact
