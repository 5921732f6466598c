"""
Webflow site members ingester.

Parses a saved copy of a Webflow site's "Members" dashboard page, where
each member row reads ``Full Name (user@example.com)``.
"""

from __future__ import annotations

import re

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.scraped import parse_html, select_text
from aclsnap.models import Artifact, User

MEMBER_PATTERN = re.compile(r"(.*?) \((.*?@.*?)\)")


class WebflowMembers:
    """Converts a saved Webflow members page into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="webflow",
            name="Webflow Site Permissions",
            steps=(
                "Open https://webflow.com/dashboard/sites/<site>/members",
                "Save this page (Complete)",
                "Collect resulting .html file for analysis (the other files are not necessary)",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        doc = parse_html(artifact.metadata.content)

        for row in doc.select("tr.member"):
            match = MEMBER_PATTERN.search(select_text(row, "div.ng-binding"))
            if not match:
                continue
            artifact.users.append(
                User(
                    account=match.group(2),
                    name=match.group(1).strip(),
                    role=select_text(row, "span.ng-binding"),
                )
            )

        return artifact
