"""Diagram emission for topicflow.

Flattens Fork nodes, derives transition labels and renders PlantUML for a
single topic or for the whole instrument.
"""

from .expansion import expand_forks, topic_render_transitions
from .framework import DiagramGenerator, GraphRenderer
from .labels import transition_label
from .models import RenderTransition
from .puml import PumlRenderer, StateAliaser, generate_aggregate_puml, generate_topic_puml

__all__ = [
    "DiagramGenerator",
    "GraphRenderer",
    "PumlRenderer",
    "RenderTransition",
    "StateAliaser",
    "expand_forks",
    "generate_aggregate_puml",
    "generate_topic_puml",
    "topic_render_transitions",
    "transition_label",
]
