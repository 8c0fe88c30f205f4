"""Diagram generation framework with pluggable renderers."""

import logging
from abc import ABC, abstractmethod

from ..config import TopicflowConfig
from ..models.diagram import Project

logger = logging.getLogger(__name__)


class GraphRenderer(ABC):
    """Abstract base class for diagram renderers."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Name of the output format."""
        pass

    @abstractmethod
    def render_topic(self, project: Project, topic_id: str) -> str | None:
        """Render a single topic, or None if the topic does not exist."""
        pass

    @abstractmethod
    def render_aggregate(self, project: Project) -> str | None:
        """Render the whole instrument, or None if there is nothing to aggregate."""
        pass

    @abstractmethod
    def get_file_extension(self) -> str:
        """Get file extension for this format."""
        pass


class DiagramGenerator:
    """Dispatches diagram rendering to registered renderers."""

    def __init__(self, config: TopicflowConfig | None = None):
        self.config = config or TopicflowConfig()
        self.renderers: dict[str, GraphRenderer] = {}

    def add_renderer(self, renderer: GraphRenderer) -> None:
        """Add a diagram renderer."""
        self.renderers[renderer.format_name] = renderer

    def create_default_renderers(self) -> None:
        """Register the built-in PlantUML renderer."""
        from .puml import PumlRenderer

        self.add_renderer(PumlRenderer())

    def get_renderer(self, format_name: str) -> GraphRenderer:
        if format_name not in self.renderers:
            available = list(self.renderers.keys())
            raise ValueError(f"Unknown format '{format_name}'. Available: {available}")
        return self.renderers[format_name]

    def render_topic(self, project: Project, topic_id: str, format_name: str = "puml") -> str | None:
        """Render one topic of a project.

        Args:
            project: Project snapshot
            topic_id: Topic to render
            format_name: Output format

        Returns:
            Rendered diagram, or None for an unknown topic
        """
        renderer = self.get_renderer(format_name)
        logger.info(f"Rendering topic {topic_id} with {renderer.format_name} renderer")
        return renderer.render_topic(project, topic_id)

    def render_aggregate(self, project: Project, format_name: str = "puml") -> str | None:
        """Render the instrument aggregate of a project."""
        renderer = self.get_renderer(format_name)
        logger.info(f"Rendering aggregate of {project.instrument.type} with {renderer.format_name} renderer")
        return renderer.render_aggregate(project)
