"""Tests for workspace snapshots and the project store."""

import json

import pytest

from topicflow import commands
from topicflow.models.diagram import TopicEndKind
from topicflow.snapshot import (
    SNAPSHOT_SCHEMA_VERSION,
    SnapshotError,
    Workspace,
    dump_snapshot,
    load_snapshot,
    parse_snapshot,
    snapshot_json_schema,
)
from topicflow.store import ProjectStore

INSTRUMENT = {"type": "I", "revision": "R1"}


@pytest.fixture
def built_project():
    project = commands.create_project("pacs_008", "R1", name="Payments", project_id="p1")
    project = commands.create_topic(project, "TOPIC_A", label="Topic A")
    project = commands.add_state(project, "TOPIC_A", "Customer", state_id="customer")
    return commands.add_transition(project, "TOPIC_A", "TopicStart", "customer", "pacs008", "B2B",
                                   transition_id="t1")


class TestParseSnapshot:
    """Test parse_snapshot and dump_snapshot."""

    def test_round_trip(self, built_project):
        workspace = Workspace(projects=[built_project], active_project_id="p1")
        parsed = parse_snapshot(dump_snapshot(workspace))

        assert parsed.projects[0].to_json_data() == built_project.to_json_data()
        assert parsed.active_project_id == "p1"

    def test_dump_is_camel_case_and_versioned(self, workspace):
        data = json.loads(dump_snapshot(workspace))

        assert data["schemaVersion"] == SNAPSHOT_SCHEMA_VERSION
        assert data["activeProjectId"] == "p1"
        transition = data["projects"][0]["topics"][0]["transitions"][0]
        assert transition["from"] == "NewInstrument"
        assert transition["messageType"] == "MSG"

    def test_bare_project_is_wrapped(self, project_data):
        workspace = parse_snapshot(json.dumps(project_data))

        assert len(workspace.projects) == 1
        assert workspace.active_project.id == "p1"

    def test_unversioned_snapshot_is_normalized(self, legacy_project_data):
        text = json.dumps({"projects": [legacy_project_data], "activeProjectId": "project-1"})
        topic = parse_snapshot(text).active_project.topics[0]

        assert topic.find_state("EndTopic") is None
        assert topic.find_state("state-1").topic_end_kind == TopicEndKind.POSITIVE
        assert topic.find_transition("transition-1") is None
        assert topic.find_transition("transition-2").kind.value == "startTopic"

    def test_editor_state_keys_are_ignored(self, project_data):
        text = json.dumps({
            "schemaVersion": 2,
            "projects": [project_data],
            "viewMode": "topic",
            "transitionVisibility": {"t1": True},
        })
        assert parse_snapshot(text).projects[0].id == "p1"

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        json.dumps({"schemaVersion": 99, "projects": []}),
        json.dumps({"schemaVersion": "two", "projects": []}),
        json.dumps({"schemaVersion": 2, "projects": [{"name": "no instrument"}]}),
        json.dumps({"projects": [{"instrument": INSTRUMENT, "topics": [1]}]}),
        json.dumps({"projects": [{"instrument": INSTRUMENT, "topics": [{"topic": {"id": "T"}, "states": ["x"]}]}]}),
        json.dumps({"instrument": INSTRUMENT, "topics": [{
            "topic": {"id": "T"},
            "transitions": [{"id": "t", "from": [1], "to": "a"}],
        }]}),
        json.dumps({"projects": ["p1"]}),
    ])
    def test_invalid_snapshots(self, text):
        with pytest.raises(SnapshotError):
            parse_snapshot(text)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(SnapshotError, match="Cannot read snapshot"):
            load_snapshot(tmp_path / "missing.json")

    def test_schema(self):
        schema = snapshot_json_schema()

        assert schema["$id"].endswith("workspace.schema.json")
        assert "schemaVersion" in schema["properties"]
        assert "activeProjectId" in schema["properties"]


class TestWorkspace:
    """Test Workspace helpers."""

    def test_active_project_falls_back_to_first(self, aggregate_project):
        workspace = Workspace(projects=[aggregate_project], active_project_id="missing")
        assert workspace.active_project is aggregate_project

    def test_replace_project(self, aggregate_project):
        workspace = Workspace(projects=[aggregate_project])
        renamed = aggregate_project.model_copy(update={"name": "Renamed"})

        replaced = workspace.replace_project(renamed)

        assert replaced.projects[0].name == "Renamed"
        assert workspace.projects[0].name == "Sample"


class TestProjectStore:
    """Test ProjectStore."""

    def test_import_failure_leaves_workspace_unchanged(self, workspace):
        store = ProjectStore(workspace)

        assert store.import_json("{broken") is False
        assert store.import_json(json.dumps({"schemaVersion": 99})) is False
        assert store.import_json(json.dumps({"projects": [{"instrument": INSTRUMENT, "topics": [1]}]})) is False
        assert store.import_json(json.dumps({"instrument": INSTRUMENT, "topics": [{
            "topic": {"id": "T"}, "states": [{"id": "a"}], "transitions": [{"id": "t", "from": [1], "to": "a"}],
        }]})) is False
        assert store.workspace is workspace

    def test_export_import_round_trip(self, built_project):
        store = ProjectStore()
        store.add_project(built_project)
        exported = store.export_json()

        other = ProjectStore()
        assert other.import_json(exported) is True
        project = other.active_project
        assert project.instrument.type == "pacs_008"
        assert project.topics[0].topic.id == "TOPIC_A"
        assert len(project.topics[0].transitions) == 1

    def test_apply_edits_active_project(self, built_project):
        store = ProjectStore()
        store.add_project(built_project)

        updated = store.apply(commands.add_state, "TOPIC_A", "Done", state_id="done")

        assert store.active_project is updated
        assert updated.find_topic("TOPIC_A").find_state("done") is not None

    def test_apply_without_project(self):
        with pytest.raises(commands.CommandError, match="No active project"):
            ProjectStore().apply(commands.delete_topic, "X")

    def test_select_unknown_project(self, workspace):
        with pytest.raises(commands.CommandError):
            ProjectStore(workspace).select_project("nope")
