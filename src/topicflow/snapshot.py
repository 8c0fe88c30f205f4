"""Workspace snapshots: the persisted JSON form of one or more projects.

Snapshots are versioned. Documents without a ``schemaVersion`` predate the
topic-end marker and are upgraded through :mod:`topicflow.legacy` before they
are validated into models.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from topicflow.config import FieldConfig
from topicflow.legacy import normalize_project_data
from topicflow.models.diagram import Project

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 2
SCHEMA_ID = "https://topicflow.dev/schemas/workspace.schema.json"


class SnapshotError(ValueError):
    """Raised when a snapshot cannot be read or does not match the schema."""


class Workspace(BaseModel):
    """Persisted editor workspace: projects plus the active selection."""
    schema_version: int = Field(alias="schemaVersion", default=SNAPSHOT_SCHEMA_VERSION)
    projects: list[Project] = Field(default_factory=list)
    active_project_id: str | None = Field(alias="activeProjectId", default=None)
    field_config: FieldConfig | None = Field(alias="fieldConfig", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def find_project(self, project_id: str) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    @property
    def active_project(self) -> Project | None:
        """The active project, falling back to the first one."""
        if self.active_project_id:
            project = self.find_project(self.active_project_id)
            if project is not None:
                return project
        return self.projects[0] if self.projects else None

    def replace_project(self, project: Project) -> "Workspace":
        """Return a workspace with ``project`` replacing the one with its id.

        Unknown project ids are appended.
        """
        projects = list(self.projects)
        for index, existing in enumerate(projects):
            if existing.id == project.id:
                projects[index] = project
                break
        else:
            projects.append(project)
        return self.model_copy(update={"projects": projects})


def _check_legacy_shape(project: Any, index: int) -> None:
    """Reject unversioned project data the legacy normalizer cannot walk."""
    where = f"projects[{index}]"
    if not isinstance(project, dict):
        raise SnapshotError(f"{where} must be an object")

    topics = project.get("topics") or []
    if not isinstance(topics, list):
        raise SnapshotError(f"{where}.topics must be a list")

    for t, topic_data in enumerate(topics):
        if not isinstance(topic_data, dict):
            raise SnapshotError(f"{where}.topics[{t}] must be an object")
        for key, fields in (("states", ("id",)), ("transitions", ("id", "from", "to"))):
            items = topic_data.get(key) or []
            if not isinstance(items, list):
                raise SnapshotError(f"{where}.topics[{t}].{key} must be a list")
            for i, item in enumerate(items):
                if not isinstance(item, dict):
                    raise SnapshotError(f"{where}.topics[{t}].{key}[{i}] must be an object")
                for field in fields:
                    if not isinstance(item.get(field), str):
                        raise SnapshotError(f"{where}.topics[{t}].{key}[{i}].{field} must be a string")


def upgrade_snapshot(data: Any) -> dict[str, Any]:
    """Bring raw snapshot data up to the current schema version.

    Accepts a workspace document or a bare project document, which is wrapped
    into a single-project workspace.

    Raises:
        SnapshotError: If the document is not an object or its version is unsupported
    """
    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot must be a JSON object, got {type(data).__name__}")

    if "projects" not in data and "instrument" in data:
        project = dict(data)
        version = project.pop("schemaVersion", None)
        data = {"projects": [project], "activeProjectId": project.get("id")}
        if version is not None:
            data["schemaVersion"] = version

    version = data.get("schemaVersion", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise SnapshotError(f"Invalid schemaVersion: {version!r}")
    if version > SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotError(
            f"Snapshot schemaVersion {version} is newer than supported version {SNAPSHOT_SCHEMA_VERSION}"
        )

    if version < SNAPSHOT_SCHEMA_VERSION:
        logger.info(f"Upgrading snapshot from schemaVersion {version} to {SNAPSHOT_SCHEMA_VERSION}")
        projects = data.get("projects")
        if isinstance(projects, list):
            for index, project in enumerate(projects):
                _check_legacy_shape(project, index)
            projects = [normalize_project_data(project) for project in projects]
        data = {**data, "projects": projects, "schemaVersion": SNAPSHOT_SCHEMA_VERSION}

    return data


def parse_snapshot(text: str) -> Workspace:
    """Parse snapshot JSON text into a workspace.

    Raises:
        SnapshotError: For malformed JSON, unsupported versions or schema mismatches
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in snapshot: {e}") from e

    data = upgrade_snapshot(data)

    try:
        workspace = Workspace.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(f"Snapshot does not match schema: {e}") from e

    logger.debug(f"Parsed snapshot with {len(workspace.projects)} project(s)")
    return workspace


def load_snapshot(path: str | Path) -> Workspace:
    """Read and parse a snapshot file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    return parse_snapshot(text)


def dump_snapshot(workspace: Workspace) -> str:
    """Serialize a workspace to indented camelCase JSON at the current version."""
    data = workspace.model_dump(mode="json", by_alias=True, exclude_none=True)
    data["schemaVersion"] = SNAPSHOT_SCHEMA_VERSION
    return json.dumps(data, indent=2, ensure_ascii=False)


def save_snapshot(workspace: Workspace, path: str | Path) -> Path:
    """Write a workspace snapshot to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_snapshot(workspace), encoding="utf-8")
    logger.info(f"Snapshot written to {path}")
    return path


def snapshot_json_schema() -> dict[str, Any]:
    """JSON schema of the workspace snapshot document."""
    schema = Workspace.model_json_schema(by_alias=True)
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    schema["$id"] = SCHEMA_ID
    schema["title"] = "topicflow workspace snapshot"
    schema["version"] = str(SNAPSHOT_SCHEMA_VERSION)
    return schema
