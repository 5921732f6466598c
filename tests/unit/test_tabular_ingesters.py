"""
Tests for the CSV-based ingesters.
"""

import io

import pytest

from aclsnap.errors import ParseError, SchemaError
from aclsnap.finalizer import finalize_artifact
from aclsnap.ingesters import IngesterConfig
from aclsnap.ingesters.google_workspace_audit import (
    GoogleWorkspaceUserAudit,
    extract_audit_date,
)
from aclsnap.ingesters.google_workspace_users import GoogleWorkspaceUsers
from aclsnap.ingesters.secureframe import SecureframePersonnel
from aclsnap.ingesters.slack import SlackMembers
from aclsnap.ingesters.tabular import normalize_status, read_records


def run(ingester, content: str):
    config = IngesterConfig(reader=io.BytesIO(content.encode("utf-8")))
    return finalize_artifact(ingester.process(config))


class TestReadRecords:
    """Tests for the shared CSV reader."""

    def test_maps_columns(self):
        """Test mapping headers to field names."""
        records = read_records(
            "Name,Role\n alice , admin\n",
            {"Name": "name", "Role": "role", "Missing": "missing"},
            ("Name",),
        )
        assert records == [{"name": "alice", "role": "admin", "missing": ""}]

    def test_missing_required_column(self):
        """Test that a missing required column is a schema error."""
        with pytest.raises(SchemaError) as exc_info:
            read_records("Name\nalice\n", {"Name": "name"}, ("Name", "Role"))
        assert "Role" in str(exc_info.value)

    def test_malformed_csv(self):
        """Test that malformed quoting is a parse error."""
        with pytest.raises(ParseError):
            read_records('Name,Role\n"alice"x,admin\n', {"Name": "name"}, ("Name",))

    def test_skips_preamble(self):
        """Test skipping report lines above the header."""
        records = read_records(
            "Report\n\nName,Role\nalice,admin\n", {"Name": "name"}, ("Name", "Role")
        )
        assert records == [{"name": "alice"}]

    def test_line_separators_inside_quoted_fields(self):
        """Test that quoted fields keep \\u2028 and \\r\\n intact."""
        records = read_records(
            'Name,Role\r\n"Al\u2028Smith","admin\r\nowner"\r\n',
            {"Name": "name", "Role": "role"},
            ("Name", "Role"),
        )
        assert records == [{"name": "Al\u2028Smith", "role": "admin\r\nowner"}]

    def test_normalize_status(self):
        """Test mapping Active to an empty status."""
        assert normalize_status("Active") == ""
        assert normalize_status("Suspended") == "Suspended"


class TestSlackMembers:
    """Tests for the Slack ingester."""

    def test_bot_routing(self, slack_csv):
        """Test that bots are listed separately under a composite account."""
        artifact = run(SlackMembers(), slack_csv)

        assert [b.account for b in artifact.bots] == ["hubot!hubot@ex.com"]
        assert artifact.bots[0].role == ""
        assert artifact.bots[0].name == "Hubot"

    def test_members(self, slack_csv):
        """Test member roles, names and deactivated members."""
        artifact = run(SlackMembers(), slack_csv)
        users = {u.account: u for u in artifact.users}

        assert sorted(users) == ["alice@ex.com", "bob@ex.com"]
        assert users["alice@ex.com"].role == ""
        assert users["alice@ex.com"].name == "Alice"
        assert users["bob@ex.com"].role == "Admin"
        assert users["bob@ex.com"].name == "Bobby"
        assert artifact.roles == {"admin": ["bob@ex.com"]}

    def test_missing_columns(self):
        """Test rejecting an export without a status column."""
        with pytest.raises(SchemaError):
            run(SlackMembers(), "username,email\nalice,alice@ex.com\n")

    def test_undecodable_input(self):
        """Test rejecting bytes that are not UTF-8."""
        config = IngesterConfig(reader=io.BytesIO(b"\xff\xfe\xfa"))
        with pytest.raises(ParseError):
            SlackMembers().process(config)


class TestGoogleWorkspaceUserAudit:
    """Tests for the Google Workspace audit ingester."""

    def test_extract_audit_date(self):
        """Test removing the date token from the first line."""
        text, audit_date = extract_audit_date("Report [2024-03-15 GMT]\na,b\n")

        assert audit_date == "2024-03-15"
        assert text == "Report\na,b\n"

    def test_audit_date_becomes_source_date(self, audit_csv):
        """Test the audit date extraction end to end."""
        artifact = run(GoogleWorkspaceUserAudit(), audit_csv)

        assert artifact.metadata.source_date == "2024-03-15"
        assert len(artifact.users) == 1
        alice = artifact.users[0]
        assert (alice.account, alice.role, alice.status) == ("alice", "", "")
        assert artifact.roles == {}

    def test_admins_and_suspended(self):
        """Test admin roles and non-active statuses."""
        artifact = run(
            GoogleWorkspaceUserAudit(),
            "User,User account status,Admin status,Admin-defined name\n"
            "bob@example.com,Suspended,Super Admin,Bob\n",
        )

        bob = artifact.users[0]
        assert bob.role == "Super Admin"
        assert bob.status == "Suspended"
        assert artifact.roles == {"super admin": ["bob"]}

    def test_without_audit_date(self, fixed_clock):
        """Test falling back to the ingestion date."""
        artifact = run(
            GoogleWorkspaceUserAudit(),
            "User,User account status,Admin status\nbob@example.com,Active,None\n",
        )
        assert artifact.metadata.source_date == "2024-03-20"


class TestGoogleWorkspaceUsers:
    """Tests for the Google Workspace users ingester."""

    def test_users(self):
        """Test names, statuses and two-factor state."""
        artifact = run(
            GoogleWorkspaceUsers(),
            "First Name [Required],Last Name [Required],Email Address [Required],"
            "Status [READ ONLY],Last Sign In [READ ONLY],2sv Enforced [READ ONLY]\n"
            "Alice,Smith,alice@example.com,Active,2024/03/01,True\n"
            "Bob,Jones,bob@example.com,Suspended,Never logged in,False\n",
        )

        alice, bob = artifact.users
        assert (alice.account, alice.name, alice.status) == ("alice", "Alice Smith", "")
        assert alice.two_factor_disabled is False
        assert (bob.account, bob.status) == ("bob", "Suspended")
        assert bob.two_factor_disabled is True


class TestSecureframePersonnel:
    """Tests for the Secureframe ingester."""

    def test_skips_personnel_without_role(self):
        """Test that only personnel with an access role are listed."""
        artifact = run(
            SecureframePersonnel(),
            "Name (email),Access role\nalice@ex.com,Admin\nbob@ex.com,\n",
        )

        assert [(u.account, u.role) for u in artifact.users] == [("alice", "Admin")]

    def test_local_part_collision(self):
        """Test that addresses with the same local part become one user."""
        artifact = run(
            SecureframePersonnel(),
            "Name (email),Access role\nalice@a.com,Admin\nalice@b.com,Viewer\n",
        )

        assert [(u.account, u.role) for u in artifact.users] == [("alice", "Admin")]
        assert artifact.users_total == 1
