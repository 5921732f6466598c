"""
Tests for artifact and change list export.
"""

import pytest

from aclsnap.compare import Change
from aclsnap.errors import InputError, ParseError, SchemaError
from aclsnap.export import (
    CHANGE_HEADERS,
    artifact_filename,
    load_artifact,
    load_artifact_file,
    render_artifact,
    render_changes,
)
from aclsnap.ingesters import IngesterConfig, ingest
from aclsnap.models import Artifact, Source


@pytest.fixture
def slack_artifact(make_input, slack_csv):
    """Return a finalized Slack artifact."""
    return ingest(IngesterConfig(path=make_input("slack-members.csv", slack_csv)))


class TestRenderArtifact:
    """Tests for YAML rendering."""

    def test_layout(self, slack_artifact):
        """Test key order, indentation and blank lines between accounts."""
        text = render_artifact(slack_artifact)

        assert text.startswith("metadata:\n  kind: slack\n")
        assert "\nusers_total: 2\nusers:\n\n  - account: alice@ex.com\n" in text
        assert "\n\n  - account: bob@ex.com\n" in text
        assert "content" not in text
        assert text.endswith("\n")

    def test_round_trip(self, slack_artifact):
        """Test loading a rendered artifact back."""
        loaded = load_artifact(render_artifact(slack_artifact))

        assert loaded.to_dict() == slack_artifact.to_dict()

    def test_source_date_stays_a_string(self, slack_artifact):
        """Test that dates survive as plain YYYY-MM-DD strings."""
        loaded = load_artifact(render_artifact(slack_artifact))
        assert loaded.metadata.source_date == slack_artifact.metadata.source_date


class TestLoadArtifact:
    """Tests for artifact loading."""

    def test_invalid_yaml(self):
        """Test that malformed YAML is a parse error."""
        with pytest.raises(ParseError):
            load_artifact("metadata: [unclosed")

    def test_not_a_mapping(self):
        """Test that a non-mapping document is a schema error."""
        with pytest.raises(SchemaError):
            load_artifact("- just\n- a list\n")

    def test_missing_file(self, tmp_path):
        """Test that unreadable files are io errors."""
        with pytest.raises(InputError):
            load_artifact_file(tmp_path / "missing.yaml")

    def test_load_file(self, make_input):
        """Test loading from disk."""
        path = make_input("slack.yaml", "metadata:\n  kind: slack\n  source_date: 2024-03-01\n")

        artifact = load_artifact_file(path)

        assert artifact.kind == "slack"
        assert artifact.metadata.source_date == "2024-03-01"


class TestArtifactFilename:
    """Tests for output file naming."""

    def test_with_and_without_id(self):
        """Test kind and id based names."""
        assert artifact_filename(Artifact(metadata=Source(kind="slack"))) == "slack.yaml"
        assert (
            artifact_filename(Artifact(metadata=Source(kind="gcp", id="proj-a")))
            == "gcp_proj-a.yaml"
        )


class TestRenderChanges:
    """Tests for CSV rendering of changes."""

    def test_render(self):
        """Test header and quoting."""
        changes = [
            Change("slack", "slack", "bob", 'role change: "admin" to "owner"', "2024-03-01", "2024-03-15"),
        ]

        text = render_changes(changes)

        assert text.splitlines() == [
            ",".join(CHANGE_HEADERS),
            'slack,slack,bob,"role change: ""admin"" to ""owner""",2024-03-01,2024-03-15',
        ]

    def test_without_header(self):
        """Test omitting the header row."""
        assert render_changes([], include_header=False) == ""
