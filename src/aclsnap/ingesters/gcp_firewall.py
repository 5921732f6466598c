"""
Google Cloud project firewall ingester.

Lists the VPC firewall rules of a project and records enabled rules as
ingress or egress FirewallRuleMeta entries. The implied GCP default rules
are appended so the snapshot documents the complete evaluation order.

See https://cloud.google.com/firewall/docs/firewalls#default_firewall_rules
"""

from __future__ import annotations

import logging
from typing import Any

from aclsnap.errors import NoInputError, SchemaError
from aclsnap.gcloud import GCloudCLI
from aclsnap.ingesters.base import IngesterConfig, IngesterDescription, new_artifact
from aclsnap.models import Artifact, FirewallRule, FirewallRuleMeta

logger = logging.getLogger(__name__)

FALLBACK_PRIORITY = 65535
DEFAULT_NETWORK = "default"
ANY_ADDRESS = "0.0.0.0/0"


def targets_string(targets: list[dict[str, Any]] | None) -> str:
    """
    Render allowed or denied targets as sorted ``proto:port`` pairs.

    Example:
        [{"IPProtocol": "tcp", "ports": ["443", "80"]}, {"IPProtocol": "icmp"}]
        becomes "icmp,tcp:443,tcp:80".
    """
    rendered = []
    for target in targets or []:
        protocol = target.get("IPProtocol", "")
        ports = target.get("ports") or []
        if not ports:
            rendered.append(protocol)
            continue
        for port in ports:
            rendered.append(f"{protocol}:{port}")
    return ",".join(sorted(rendered))


def network_name(network_url: str) -> str:
    """Get the network name from its URL, or "" for the default network."""
    name = network_url.rsplit("/", 1)[-1]
    if name == DEFAULT_NETWORK:
        return ""
    return name


def rule_from_gcloud(entry: dict[str, Any]) -> FirewallRuleMeta:
    """Convert one firewall-rules list entry."""
    log_config = entry.get("logConfig") or {}
    return FirewallRuleMeta(
        name=entry.get("name", ""),
        description=entry.get("description", "") or "",
        logging=bool(log_config.get("enable", False)),
        priority=int(entry.get("priority", 0) or 0),
        rule=FirewallRule(
            allow=targets_string(entry.get("allowed")),
            deny=targets_string(entry.get("denied")),
            network=network_name(entry.get("network", "") or ""),
            sources=",".join(sorted(entry.get("sourceRanges") or [])),
            destinations=",".join(sorted(entry.get("destinationRanges") or [])),
            source_tags=",".join(sorted(entry.get("sourceTags") or [])),
            target_tags=",".join(sorted(entry.get("targetTags") or [])),
        ),
    )


class GoogleCloudProjectFirewall:
    """Converts the firewall rules of a GCP project into an Artifact."""

    def description(self) -> IngesterDescription:
        return IngesterDescription(
            kind="gcp-firewalls",
            name="Google Cloud Project Firewalls",
            steps=("Execute 'aclsnap --kind={kind} --project={project}'",),
            no_input_required=True,
        )

    def process(self, config: IngesterConfig) -> Artifact:
        if not config.project:
            raise NoInputError("kind gcp-firewalls requires a project")

        artifact = new_artifact(config, self.description())
        artifact.metadata.id = config.project
        gcloud = config.gcloud or GCloudCLI()

        for entry in gcloud.firewall_rules(config.project):
            if not isinstance(entry, dict):
                raise SchemaError(f"expected firewall rule, got {type(entry).__name__}")
            if entry.get("disabled"):
                logger.debug(f"Skipping disabled rule {entry.get('name')}")
                continue

            rule = rule_from_gcloud(entry)
            direction = entry.get("direction", "")
            if direction == "INGRESS":
                artifact.ingress.append(rule)
            elif direction == "EGRESS":
                artifact.egress.append(rule)
            else:
                raise SchemaError(f"unexpected direction: {direction!r}")

        artifact.ingress.append(
            FirewallRuleMeta(
                name="gcp-ingress-fallback",
                description="GCP Implied Ingress Fallback",
                priority=FALLBACK_PRIORITY,
                rule=FirewallRule(sources=ANY_ADDRESS, deny="all"),
            )
        )
        artifact.egress.append(
            FirewallRuleMeta(
                name="gcp-egress-fallback",
                description="GCP Implied Egress Fallback",
                priority=FALLBACK_PRIORITY,
                rule=FirewallRule(destinations=ANY_ADDRESS, allow="all"),
            )
        )

        logger.info(
            f"Firewall rules for {config.project}: {len(artifact.ingress)} ingress, "
            f"{len(artifact.egress)} egress"
        )
        return artifact
