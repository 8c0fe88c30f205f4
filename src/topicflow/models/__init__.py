"""Pydantic data models for topicflow projects."""

from topicflow.models.diagram import (
    END_TRANSITION_KINDS,
    RESERVED_NODE_NAMES,
    Instrument,
    Position,
    Project,
    StateNode,
    SystemNodeType,
    Topic,
    TopicData,
    TopicEndKind,
    TopicKind,
    Transition,
    TransitionKind,
    get_topic_end_kind,
    is_topic_end_state,
)

__all__ = [
    "END_TRANSITION_KINDS",
    "RESERVED_NODE_NAMES",
    "Instrument",
    "Position",
    "Project",
    "StateNode",
    "SystemNodeType",
    "Topic",
    "TopicData",
    "TopicEndKind",
    "TopicKind",
    "Transition",
    "TransitionKind",
    "get_topic_end_kind",
    "is_topic_end_state",
]
