"""Unit tests for the topicflow CLI."""

import json
import zipfile

import pytest
from typer.testing import CliRunner

from topicflow import __version__
from topicflow.cli import app
from topicflow.models.diagram import Project
from topicflow.snapshot import Workspace, dump_snapshot

runner = CliRunner()


@pytest.fixture
def invalid_snapshot(tmp_path, project_data):
    """Snapshot whose only project has no instrument type."""
    project_data["instrument"]["type"] = ""
    workspace = Workspace(projects=[Project.model_validate(project_data)])
    path = tmp_path / "invalid.json"
    path.write_text(dump_snapshot(workspace), encoding="utf-8")
    return path


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"topicflow version {__version__}" in result.stdout


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_snapshot(self, snapshot_file, quiet_config):
        result = runner.invoke(app, ["validate", str(snapshot_file), "--config", str(quiet_config)])

        assert result.exit_code == 0
        assert "PASS" in result.stdout

    def test_json_output_and_exit_code(self, invalid_snapshot, quiet_config):
        result = runner.invoke(app, [
            "validate", str(invalid_snapshot), "--format", "json", "--config", str(quiet_config)
        ])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload[0]["projectId"] == "p1"
        assert payload[0]["status"] == "fail"
        assert any(issue["message"] == "Instrument type is required" for issue in payload[0]["issues"])

    def test_invalid_format(self, snapshot_file):
        result = runner.invoke(app, ["validate", str(snapshot_file), "--format", "xml"])

        assert result.exit_code == 1
        assert "Invalid format" in result.stdout

    def test_unknown_project(self, snapshot_file, quiet_config):
        result = runner.invoke(app, [
            "validate", str(snapshot_file), "--project", "nope", "--config", str(quiet_config)
        ])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_unreadable_snapshot(self, tmp_path, quiet_config):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["validate", str(broken), "--config", str(quiet_config)])

        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_malformed_unversioned_snapshot(self, tmp_path, quiet_config):
        malformed = tmp_path / "malformed.json"
        malformed.write_text(json.dumps({
            "instrument": {"type": "I", "revision": "R1"},
            "topics": [{"topic": {"id": "T"}, "transitions": [{"id": "t", "from": [1], "to": "a"}]}],
        }), encoding="utf-8")

        result = runner.invoke(app, ["validate", str(malformed), "--config", str(quiet_config)])

        assert result.exit_code == 1
        assert "Error:" in result.stdout
        assert result.exception is None or isinstance(result.exception, SystemExit)


class TestRenderCommands:
    """Test the topic and aggregate commands."""

    def test_topic_to_stdout(self, snapshot_file, quiet_config):
        result = runner.invoke(app, ["topic", str(snapshot_file), "SUB", "--config", str(quiet_config)])

        assert result.exit_code == 0
        assert result.stdout.startswith("@startuml")
        assert "@enduml" in result.stdout

    def test_unknown_topic(self, snapshot_file, quiet_config):
        result = runner.invoke(app, ["topic", str(snapshot_file), "NOPE", "--config", str(quiet_config)])

        assert result.exit_code == 1
        assert "Topic 'NOPE' not found." in result.stdout

    def test_aggregate_to_file(self, tmp_path, snapshot_file, quiet_config):
        out = tmp_path / "diagrams" / "complete.puml"
        result = runner.invoke(app, [
            "aggregate", str(snapshot_file), "--out", str(out), "--config", str(quiet_config)
        ])

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8").startswith("@startuml")

    def test_aggregate_without_root(self, tmp_path, project_data, quiet_config):
        project_data["topics"][0]["topic"]["kind"] = "normal"
        path = tmp_path / "noroot.json"
        path.write_text(dump_snapshot(Workspace.model_validate({"projects": [project_data]})), encoding="utf-8")

        result = runner.invoke(app, ["aggregate", str(path), "--config", str(quiet_config)])

        assert result.exit_code == 1
        assert "no root topic" in result.stdout


class TestExportCommand:
    """Test the export command."""

    def test_export(self, tmp_path, snapshot_file, quiet_config):
        out = tmp_path / "bundle.zip"
        result = runner.invoke(app, ["export", str(snapshot_file), str(out), "--config", str(quiet_config)])

        assert result.exit_code == 0
        assert "R1/I/complete.puml" in zipfile.ZipFile(out).namelist()

    def test_export_blocked_by_errors(self, tmp_path, invalid_snapshot, quiet_config):
        out = tmp_path / "bundle.zip"
        result = runner.invoke(app, ["export", str(invalid_snapshot), str(out), "--config", str(quiet_config)])

        assert result.exit_code == 1
        assert "--force" in result.stdout
        assert not out.exists()

    def test_export_forced(self, tmp_path, invalid_snapshot, quiet_config):
        out = tmp_path / "bundle.zip"
        result = runner.invoke(app, [
            "export", str(invalid_snapshot), str(out), "--force", "--config", str(quiet_config)
        ])

        assert result.exit_code == 0
        assert out.exists()


class TestNormalizeCommand:
    """Test the normalize command."""

    def test_normalize_legacy_project(self, tmp_path, legacy_project_data, quiet_config):
        source = tmp_path / "legacy.json"
        source.write_text(json.dumps(legacy_project_data), encoding="utf-8")
        out = tmp_path / "normalized.json"

        result = runner.invoke(app, [
            "normalize", str(source), "--out", str(out), "--config", str(quiet_config)
        ])

        assert result.exit_code == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["schemaVersion"] == 2
        topic = data["projects"][0]["topics"][0]
        assert [s["id"] for s in topic["states"]] == ["TopicStart", "state-1"]
        assert topic["states"][1]["topicEndKind"] == "positive"


def test_schema():
    result = runner.invoke(app, ["schema"])

    assert result.exit_code == 0
    schema = json.loads(result.stdout)
    assert schema["title"]
    assert "projects" in schema["properties"]
