"""
Tests for the Google Cloud project firewall ingester.
"""

import pytest

from aclsnap.errors import NoInputError, SchemaError
from aclsnap.ingesters import IngesterConfig, ingest
from aclsnap.ingesters.gcp_firewall import network_name, rule_from_gcloud, targets_string
from aclsnap.models import FirewallRule

NETWORK_URL = "https://www.googleapis.com/compute/v1/projects/proj-a/global/networks/"

RULES = [
    {
        "name": "allow-web",
        "direction": "INGRESS",
        "priority": 900,
        "network": NETWORK_URL + "prod",
        "sourceRanges": ["0.0.0.0/0"],
        "targetTags": ["web"],
        "allowed": [{"IPProtocol": "tcp", "ports": ["80", "443"]}, {"IPProtocol": "icmp"}],
        "logConfig": {"enable": True},
    },
    {
        "name": "allow-ssh",
        "direction": "INGRESS",
        "priority": 1000,
        "network": NETWORK_URL + "default",
        "sourceRanges": ["192.168.0.0/16", "10.0.0.0/8"],
        "allowed": [{"IPProtocol": "tcp", "ports": ["22"]}],
    },
    {
        "name": "old-rule",
        "direction": "INGRESS",
        "priority": 1,
        "disabled": True,
        "allowed": [{"IPProtocol": "all"}],
    },
    {
        "name": "deny-smtp",
        "direction": "EGRESS",
        "priority": 1000,
        "description": "No outbound mail",
        "destinationRanges": ["0.0.0.0/0"],
        "denied": [{"IPProtocol": "tcp", "ports": ["25"]}],
    },
]


def run_firewall(gcloud, project="proj-a"):
    return ingest(IngesterConfig(kind="gcp-firewalls", project=project, gcloud=gcloud))


class TestHelpers:
    """Tests for rule conversion helpers."""

    def test_targets_string(self):
        """Test rendering sorted protocol and port pairs."""
        targets = [{"IPProtocol": "tcp", "ports": ["443", "80"]}, {"IPProtocol": "icmp"}]

        assert targets_string(targets) == "icmp,tcp:443,tcp:80"
        assert targets_string(None) == ""

    def test_network_name(self):
        """Test that the default network is left blank."""
        assert network_name(NETWORK_URL + "prod") == "prod"
        assert network_name(NETWORK_URL + "default") == ""

    def test_rule_lists_sorted(self):
        """Test that ranges and tags do not depend on gcloud's ordering."""
        meta = rule_from_gcloud({
            "name": "r",
            "destinationRanges": ["10.2.0.0/16", "10.1.0.0/16"],
            "sourceTags": ["web", "api"],
            "targetTags": ["db", "cache"],
        })

        assert meta.rule.destinations == "10.1.0.0/16,10.2.0.0/16"
        assert meta.rule.source_tags == "api,web"
        assert meta.rule.target_tags == "cache,db"


class TestGoogleCloudProjectFirewall:
    """Tests for the firewall ingester."""

    def test_empty_project_has_fallbacks(self, make_gcloud):
        """Test that the implied rules are always present."""
        artifact = run_firewall(make_gcloud())

        assert len(artifact.ingress) == 1
        ingress = artifact.ingress[0]
        assert ingress.name == "gcp-ingress-fallback"
        assert ingress.priority == 65535
        assert ingress.rule == FirewallRule(sources="0.0.0.0/0", deny="all")

        assert len(artifact.egress) == 1
        egress = artifact.egress[0]
        assert egress.name == "gcp-egress-fallback"
        assert egress.priority == 65535
        assert egress.rule.allow == "all"
        assert egress.rule.destinations == "0.0.0.0/0"

    def test_rules(self, make_gcloud):
        """Test rule conversion, ordering and disabled rules."""
        artifact = run_firewall(make_gcloud(firewall_rules={"proj-a": RULES}))

        assert artifact.metadata.id == "proj-a"
        assert [r.name for r in artifact.ingress] == [
            "allow-web",
            "allow-ssh",
            "gcp-ingress-fallback",
        ]
        web = artifact.ingress[0]
        assert web.logging is True
        assert web.rule == FirewallRule(
            allow="icmp,tcp:443,tcp:80",
            network="prod",
            sources="0.0.0.0/0",
            target_tags="web",
        )
        assert artifact.ingress[1].rule.sources == "10.0.0.0/8,192.168.0.0/16"
        assert artifact.ingress[1].rule.network == ""

        smtp = artifact.egress[0]
        assert (smtp.name, smtp.description) == ("deny-smtp", "No outbound mail")
        assert smtp.rule.deny == "tcp:25"

    def test_unexpected_direction(self, make_gcloud):
        """Test that unknown directions are schema errors."""
        rules = [{"name": "odd", "direction": "SIDEWAYS"}]

        with pytest.raises(SchemaError):
            run_firewall(make_gcloud(firewall_rules={"proj-a": rules}))

    def test_requires_project(self, make_gcloud):
        """Test that a project is mandatory."""
        with pytest.raises(NoInputError):
            run_firewall(make_gcloud(), project="")
