"""CLI interface for topicflow using Typer framework."""

import json as jsonlib
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from topicflow import __description__, __version__
from topicflow.config import LogLevel, TopicflowConfig, load_config
from topicflow.export import write_export_bundle
from topicflow.graph import DiagramGenerator
from topicflow.models.diagram import Project
from topicflow.snapshot import SnapshotError, Workspace, load_snapshot, save_snapshot, snapshot_json_schema
from topicflow.validation import ValidationFramework, ValidationResult

app = typer.Typer(
    name="topicflow",
    help=__description__,
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = {
    LogLevel.ERROR.value: logging.ERROR,
    LogLevel.WARN.value: logging.WARNING,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.DEBUG.value: logging.DEBUG,
    LogLevel.TRACE.value: logging.DEBUG,
}

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Configuration file path (default: search for .topicflow.json)")
]
ProjectOption = Annotated[
    Optional[str],
    typer.Option("--project", "-p", help="Project id inside the snapshot (default: active project)")
]
SnapshotArgument = Annotated[
    Path,
    typer.Argument(help="Path to a workspace or project snapshot JSON file")
]


def configure_logging(level: str) -> None:
    """Route library logging to stderr through Rich, once per process."""
    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVELS.get(level, logging.INFO))
    if not any(isinstance(handler, RichHandler) for handler in root_logger.handlers):
        root_logger.addHandler(RichHandler(console=err_console, show_path=False))


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        console.print(f"topicflow version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, help="Show version and exit")
    ] = False,
) -> None:
    """topicflow - Compile instrument state machine graphs to PlantUML."""


def _load_config(config: Path | None) -> TopicflowConfig:
    try:
        topicflow_config = load_config(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(topicflow_config.logging.level)
    return topicflow_config


def _load_workspace(snapshot: Path) -> Workspace:
    try:
        return load_snapshot(snapshot)
    except SnapshotError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _select_project(workspace: Workspace, project_id: str | None) -> Project:
    project = workspace.find_project(project_id) if project_id else workspace.active_project
    if project is None:
        if project_id:
            available = [p.id for p in workspace.projects]
            console.print(f"[red]Error:[/red] Project '{project_id}' not found.")
            console.print(f"Available projects: {', '.join(available)}")
        else:
            console.print("[red]Error:[/red] Snapshot contains no projects")
        raise typer.Exit(1)
    return project


def _write_or_print(text: str, out: Path | None) -> None:
    if out is None:
        typer.echo(text, nl=False)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    console.print(f"[green]Written:[/green] {out}")


def _validate_projects(workspace: Workspace, projects: list[Project],
                       topicflow_config: TopicflowConfig) -> list[tuple[Project, ValidationResult]]:
    framework = ValidationFramework(topicflow_config)
    framework.create_default_rules()
    vocabulary = workspace.field_config or topicflow_config.vocabulary
    return [(project, framework.validate(project, vocabulary)) for project in projects]


def _print_result_table(project: Project, result: ValidationResult) -> None:
    status_color = "green" if result.status.value == "pass" else "yellow" if result.status.value == "warn" else "red"
    console.print(
        f"[blue]{project.instrument.revision}/{project.instrument.type}[/blue] "
        f"[{status_color}]Validation Status: {result.status.value.upper()}[/{status_color}]"
    )

    if not result.issues:
        console.print("[green]No issues found![/green]\n")
        return

    issues_table = Table()
    issues_table.add_column("Level", style="white")
    issues_table.add_column("Rule", style="cyan")
    issues_table.add_column("Message", style="white")
    issues_table.add_column("Location", style="dim")

    for issue in result.issues:
        level_color = "red" if issue.level.value == "error" else "yellow"
        location = issue.topic_id or ""
        if issue.element_id:
            location += f" {issue.element_type.value if issue.element_type else 'element'} {issue.element_id}"
        issues_table.add_row(
            f"[{level_color}]{issue.level.value.upper()}[/{level_color}]",
            issue.rule,
            issue.message,
            location.strip()
        )

    console.print(issues_table)
    console.print(f"{len(result.errors)} errors, {len(result.warnings)} warnings\n")


@app.command()
def validate(
    snapshot: SnapshotArgument,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: table, json (default: table)")
    ] = "table",
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """Validate the projects of a snapshot; exits 1 on error-level issues."""
    valid_formats = ["table", "json"]
    if format not in valid_formats:
        console.print(f"[red]Error:[/red] Invalid format '{format}'. Must be one of: {', '.join(valid_formats)}")
        raise typer.Exit(1)

    topicflow_config = _load_config(config)
    workspace = _load_workspace(snapshot)
    projects = [_select_project(workspace, project)] if project else list(workspace.projects)

    results = _validate_projects(workspace, projects, topicflow_config)

    if format == "json":
        payload = [
            {"projectId": p.id, "instrument": p.instrument.type, "revision": p.instrument.revision, **r.to_dict()}
            for p, r in results
        ]
        typer.echo(jsonlib.dumps(payload, indent=2))
    else:
        for p, r in results:
            _print_result_table(p, r)

    raise typer.Exit(max((r.exit_code for _, r in results), default=0))


@app.command()
def topic(
    snapshot: SnapshotArgument,
    topic_id: Annotated[str, typer.Argument(help="Topic id to render")],
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output .puml file (default: stdout)")
    ] = None,
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """Render one topic as PlantUML."""
    topicflow_config = _load_config(config)
    selected = _select_project(_load_workspace(snapshot), project)

    generator = DiagramGenerator(topicflow_config)
    generator.create_default_renderers()
    puml = generator.render_topic(selected, topic_id)

    if puml is None:
        available = [t.topic.id for t in selected.topics]
        console.print(f"[red]Error:[/red] Topic '{topic_id}' not found.")
        console.print(f"Available topics: {', '.join(available)}")
        raise typer.Exit(1)

    _write_or_print(puml, out)


@app.command()
def aggregate(
    snapshot: SnapshotArgument,
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output .puml file (default: stdout)")
    ] = None,
    project: ProjectOption = None,
    config: ConfigOption = None,
) -> None:
    """Render the whole instrument as one PlantUML diagram."""
    topicflow_config = _load_config(config)
    selected = _select_project(_load_workspace(snapshot), project)

    generator = DiagramGenerator(topicflow_config)
    generator.create_default_renderers()
    puml = generator.render_aggregate(selected)

    if puml is None:
        console.print("[red]Error:[/red] Project has no root topic; nothing to aggregate")
        raise typer.Exit(1)

    _write_or_print(puml, out)


@app.command()
def export(
    snapshot: SnapshotArgument,
    out: Annotated[Path, typer.Argument(help="Output ZIP file")],
    force: Annotated[
        bool,
        typer.Option("--force", help="Export even when validation reports errors")
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Export PlantUML files and the snapshot as a ZIP bundle."""
    topicflow_config = _load_config(config)
    workspace = _load_workspace(snapshot)

    if topicflow_config.export.fail_on_errors and not force:
        results = _validate_projects(workspace, list(workspace.projects), topicflow_config)
        blocked = [(p, r) for p, r in results if r.errors]
        if blocked:
            for p, r in blocked:
                _print_result_table(p, r)
            console.print("[red]Error:[/red] Validation failed; use --force to export anyway")
            raise typer.Exit(1)

    try:
        path = write_export_bundle(workspace, out, topicflow_config.export)
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Export bundle written:[/green] {path}")


@app.command()
def normalize(
    snapshot: SnapshotArgument,
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output file (default: rewrite the snapshot in place)")
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Upgrade a snapshot to the current schema version and rewrite it."""
    _load_config(config)
    workspace = _load_workspace(snapshot)

    target = save_snapshot(workspace, out or snapshot)
    console.print(f"[green]Normalized snapshot written:[/green] {target}")


@app.command()
def schema() -> None:
    """Print the JSON schema of the snapshot document."""
    typer.echo(jsonlib.dumps(snapshot_json_schema(), indent=2))


if __name__ == "__main__":
    app()
