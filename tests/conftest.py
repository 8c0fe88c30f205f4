"""Shared fixtures: small instrument projects in their persisted camelCase form."""

import json

import pytest

from topicflow.models.diagram import Project
from topicflow.snapshot import Workspace


def system_state(node_type, state_id=None, label=None):
    return {
        "id": state_id or node_type,
        "label": label or node_type,
        "isSystemNode": True,
        "systemNodeType": node_type,
    }


@pytest.fixture
def root_topic_data():
    """Root topic: NewInstrument -> Ready -> Completed (positive end marker)."""
    return {
        "topic": {"id": "ROOT", "kind": "root"},
        "states": [
            system_state("NewInstrument", label="New Instrument"),
            {"id": "s-ready", "label": "Ready"},
            {"id": "s-completed", "label": "Completed", "topicEndKind": "positive"},
        ],
        "transitions": [
            {"id": "t1", "from": "NewInstrument", "to": "s-ready", "kind": "startInstrument",
             "messageType": "MSG", "flowType": "B2B"},
            {"id": "t2", "from": "s-ready", "to": "s-completed", "kind": "normal",
             "messageType": "DONE", "flowType": "C2C"},
        ],
    }


@pytest.fixture
def normal_topic_data():
    """Normal topic: TopicStart -> Check -> TopicEnd."""
    return {
        "topic": {"id": "SUB", "kind": "normal", "label": "Sub flow"},
        "states": [
            system_state("TopicStart", label="Topic Start"),
            {"id": "s-check", "label": "Check"},
            system_state("TopicEnd", label="Topic End"),
        ],
        "transitions": [
            {"id": "t10", "from": "TopicStart", "to": "s-check", "kind": "startTopic",
             "messageType": "CHK", "flowType": "B2B"},
            {"id": "t11", "from": "s-check", "to": "TopicEnd", "kind": "endTopic"},
        ],
    }


@pytest.fixture
def project_data(root_topic_data):
    return {
        "id": "p1",
        "name": "Sample",
        "instrument": {"type": "I", "revision": "R1"},
        "topics": [root_topic_data],
    }


@pytest.fixture
def project(project_data):
    """Single root topic project for instrument I."""
    return Project.model_validate(project_data)


@pytest.fixture
def aggregate_project(project_data, normal_topic_data):
    """Root topic plus one normal topic."""
    project_data["topics"].append(normal_topic_data)
    return Project.model_validate(project_data)


@pytest.fixture
def workspace(aggregate_project):
    return Workspace(projects=[aggregate_project], active_project_id=aggregate_project.id)


@pytest.fixture
def legacy_project_data():
    """Project with a legacy EndTopic node, as written by older editor versions."""
    return {
        "id": "project-1",
        "name": "Legacy",
        "instrument": {"type": "pacs_008", "revision": "R1"},
        "selectedTopicId": "topic-1",
        "topics": [
            {
                "topic": {"id": "topic-1", "kind": "normal"},
                "states": [
                    {"id": "TopicStart", "label": "Topic Start", "stereotype": "Start",
                     "position": {"x": 0, "y": 0}, "isSystemNode": True, "systemNodeType": "TopicStart"},
                    {"id": "state-1", "label": "State 1", "position": {"x": 100, "y": 100},
                     "isSystemNode": False},
                    {"id": "EndTopic", "label": "EndTopic", "position": {"x": 200, "y": 200},
                     "isSystemNode": True, "systemNodeType": "TopicEnd"},
                ],
                "transitions": [
                    {"id": "transition-1", "from": "state-1", "to": "EndTopic", "kind": "endTopic"},
                    {"id": "transition-2", "from": "TopicStart", "to": "state-1", "kind": "endTopic"},
                ],
            }
        ],
    }


@pytest.fixture
def snapshot_file(tmp_path, workspace):
    """Workspace snapshot written to disk."""
    from topicflow.snapshot import dump_snapshot

    path = tmp_path / "snapshot.json"
    path.write_text(dump_snapshot(workspace), encoding="utf-8")
    return path


@pytest.fixture
def quiet_config(tmp_path):
    """Config file that keeps CLI log output to errors only."""
    path = tmp_path / ".topicflow.json"
    path.write_text(json.dumps({"logging": {"level": "error"}}), encoding="utf-8")
    return path
