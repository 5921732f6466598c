"""
Vercel team members ingester.

Parses a saved copy of the Vercel team "Members" settings page.
"""

from __future__ import annotations

import logging
import re

from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.ingesters.scraped import join_candidates, parse_html, select_text, select_texts
from aclsnap.models import Artifact, User

logger = logging.getLogger(__name__)

VERCEL_ROLES = ("owner", "member", "developer", "billing", "viewer")


def _role_candidates(texts: list[str]) -> list[str]:
    """Case-fold texts and keep known roles, in order, without repeats."""
    found: list[str] = []
    for text in texts:
        role = text.strip().lower()
        if role in VERCEL_ROLES and role not in found:
            found.append(role)
    return found


class VercelMembers:
    """Converts a saved Vercel members page into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="vercel",
            name="Vercel Site Permissions",
            steps=(
                "Open https://vercel.com/",
                "Select your company/team",
                "Click 'Settings'",
                "Click 'Members'",
                "Save this page (Complete)",
                "Collect resulting .html file for analysis (the other files are not necessary)",
                "Execute 'aclsnap --kind={kind} --input={path}'",
            ),
            matching_filename=re.compile(r"Vercel.html|Members - Team Settings.*?html$"),
        )

    def process(self, config: IngesterConfig) -> Artifact:
        artifact = new_artifact(config, self.description())
        doc = parse_html(artifact.metadata.content)

        for entity in doc.select("div[data-geist-entity]"):
            email = select_text(entity, "p[type=secondary]")
            if not email:
                logger.debug("Skipping member entry without e-mail")
                continue

            # editable members expose their role as <option>s
            roles = _role_candidates(select_texts(entity, "option[selected]"))
            if not roles:
                roles = _role_candidates(select_texts(entity, "option"))
            if not roles:
                roles = _role_candidates(
                    select_texts(entity, "span") + select_texts(entity, "p")
                )

            artifact.users.append(User(account=email, role=join_candidates(roles)))

        return artifact
