"""
Ghost blog staff ingester.

Parses a saved copy of the Ghost admin "Staff" settings page. Every link
to ``/staff/<slug>`` is a staff member.
"""

from __future__ import annotations

import logging
import re

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.scraped import parse_html, select_text
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

STAFF_LINK_PATTERN = re.compile(r"/staff/([\w-]+)")


class GhostStaff:
    """Converts a saved Ghost staff page into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="ghost",
            name="Ghost Blog Permissions",
            steps=(
                "Open the corporate Ghost blog",
                "Click 'Settings'",
                "Click 'Staff'",
                "Zoom out so that all users are visible on one screen",
                "Save this page (Complete)",
                "Collect resulting .html file for analysis (the other files are not necessary)",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        doc = parse_html(artifact.metadata.content)

        for link in doc.find_all("a"):
            match = STAFF_LINK_PATTERN.search(link.get("href", ""))
            if not match:
                continue
            logger.debug(f"Found staff link: {link.get('href')}")

            artifact.users.append(
                User(
                    account=match.group(1),
                    name=select_text(link, "h3"),
                    role=select_text(link, "span.gh-badge"),
                )
            )

        return artifact
