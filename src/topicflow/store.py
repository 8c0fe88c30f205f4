"""In-memory project store with JSON import and export."""

import logging
from typing import Any, Callable

from topicflow.commands import CommandError
from topicflow.models.diagram import Project
from topicflow.snapshot import SnapshotError, Workspace, dump_snapshot, parse_snapshot

logger = logging.getLogger(__name__)


class ProjectStore:
    """Holds the current workspace and sequences edits against it.

    The workspace is an immutable snapshot; every edit swaps in a new one, so
    readers always observe a consistent project.
    """

    def __init__(self, workspace: Workspace | None = None):
        self._workspace = workspace or Workspace()

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def active_project(self) -> Project | None:
        return self._workspace.active_project

    def add_project(self, project: Project, activate: bool = True) -> None:
        """Add or replace a project, optionally making it active."""
        workspace = self._workspace.replace_project(project)
        if activate:
            workspace = workspace.model_copy(update={"active_project_id": project.id})
        self._workspace = workspace

    def select_project(self, project_id: str) -> None:
        if self._workspace.find_project(project_id) is None:
            raise CommandError(f"Unknown project: {project_id}")
        self._workspace = self._workspace.model_copy(update={"active_project_id": project_id})

    def replace_project(self, project: Project) -> None:
        """Replace the project with the same id without changing the selection."""
        self._workspace = self._workspace.replace_project(project)

    def apply(self, command: Callable[..., Project], *args: Any, **kwargs: Any) -> Project:
        """Run an edit command against the active project and store the result.

        Args:
            command: Function from :mod:`topicflow.commands` taking the project first

        Returns:
            The edited project

        Raises:
            CommandError: If there is no active project or the edit is rejected
        """
        project = self.active_project
        if project is None:
            raise CommandError("No active project")

        updated = command(project, *args, **kwargs)
        self.replace_project(updated)
        logger.debug(f"Applied {getattr(command, '__name__', command)} to project {updated.id}")
        return updated

    def export_json(self) -> str:
        return dump_snapshot(self._workspace)

    def import_json(self, text: str) -> bool:
        """Replace the workspace with a parsed snapshot.

        Returns:
            True on success. On failure the current workspace is left untouched.
        """
        try:
            workspace = parse_snapshot(text)
        except SnapshotError as e:
            logger.warning(f"Snapshot import failed: {e}")
            return False

        self._workspace = workspace
        logger.info(f"Imported workspace with {len(workspace.projects)} project(s)")
        return True
