"""ZIP export bundle: PlantUML files per instrument plus the workspace snapshot."""

import io
import logging
import zipfile
from pathlib import Path

from topicflow.config import ExportConfig
from topicflow.graph.puml import generate_aggregate_puml, generate_topic_puml
from topicflow.snapshot import Workspace, dump_snapshot

logger = logging.getLogger(__name__)


def bundle_folder(revision: str, instrument_type: str) -> str:
    """Folder for one instrument: ``REVISION/TYPE`` upper-cased."""
    return f"{revision.upper()}/{instrument_type.upper()}"


def build_export_files(workspace: Workspace, config: ExportConfig | None = None) -> dict[str, str]:
    """Map bundle paths to file contents.

    Topics that cannot be emitted and projects without a root topic are
    skipped rather than reported; validation is the caller's concern.
    """
    config = config or ExportConfig()
    files = {config.snapshot_path: dump_snapshot(workspace)}

    for project in workspace.projects:
        folder = bundle_folder(project.instrument.revision, project.instrument.type)

        for topic_data in project.topics:
            puml = generate_topic_puml(project, topic_data.topic.id)
            if puml:
                files[f"{folder}/{topic_data.topic.id.lower()}.puml"] = puml

        aggregate = generate_aggregate_puml(project)
        if aggregate:
            files[f"{folder}/{config.aggregate_name}"] = aggregate
        else:
            logger.debug(f"No aggregate for {folder}: project has no root topic")

    return files


def build_export_bundle(workspace: Workspace, config: ExportConfig | None = None) -> bytes:
    """Build the export ZIP in memory."""
    files = build_export_files(workspace, config)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)

    logger.debug(f"Bundled {len(files)} file(s)")
    return buffer.getvalue()


def write_export_bundle(workspace: Workspace, path: str | Path, config: ExportConfig | None = None) -> Path:
    """Write the export ZIP to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(build_export_bundle(workspace, config))
    logger.info(f"Export bundle written to {path}")
    return path
