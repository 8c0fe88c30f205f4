"""Edit commands over immutable project snapshots.

Every command takes a :class:`Project` and returns a new one. Commands are the
only place transition endpoints change, and every such change re-derives the
transition ``kind`` and ``isRoutingOnly`` flags from the connected states.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from topicflow.classifier import classify
from topicflow.models.diagram import (
    START_NODE_TYPES,
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
)

logger = logging.getLogger(__name__)

# (id, label, stereotype) for system nodes with a fixed identity
SYSTEM_NODE_DEFAULTS = {
    SystemNodeType.NEW_INSTRUMENT: ("NewInstrument", "New Instrument", "NewInstrument"),
    SystemNodeType.TOPIC_START: ("TopicStart", "Topic Start", "Start"),
    SystemNodeType.TOPIC_END: ("TopicEnd", "Topic End", "End"),
    SystemNodeType.INSTRUMENT_END: ("InstrumentEnd", "Instrument End", "End"),
}

INSTRUMENT_FIELDS = frozenset({"type", "revision", "label", "description"})
STATE_FIELDS = frozenset({"label", "stereotype", "position"})
TRANSITION_FIELDS = frozenset({
    "revision", "instrument", "topic", "message_type", "flow_type", "end_topic_kind",
    "teleport_enabled", "source_handle_id", "target_handle_id", "curve_offset",
})


class CommandError(ValueError):
    """Raised when an edit refers to unknown elements or is not allowed."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_fields(changes: dict[str, Any], allowed: frozenset[str], element: str) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise CommandError(f"Unknown {element} field(s): {', '.join(unknown)}")


def _system_node(node_type: SystemNodeType, position: Position | None = None) -> StateNode:
    node_id, label, stereotype = SYSTEM_NODE_DEFAULTS[node_type]
    return StateNode(
        id=node_id,
        label=label,
        stereotype=stereotype,
        position=position or Position(),
        is_system_node=True,
        system_node_type=node_type,
    )


def _system_nodes(kind: TopicKind) -> list[StateNode]:
    return [
        _system_node(START_NODE_TYPES[kind], Position(x=100, y=100)),
        _system_node(SystemNodeType.TOPIC_END, Position(x=400, y=300)),
    ]


def _derive(transition: Transition, topic_data: TopicData) -> Transition:
    """Recompute the derived fields of a transition from its endpoints."""
    from_state = topic_data.find_state(transition.source)
    to_state = topic_data.find_state(transition.target)
    return transition.model_copy(update={
        "kind": classify(from_state, to_state),
        "is_routing_only": bool(to_state and to_state.is_fork),
    })


def _rederive_all(topic_data: TopicData) -> TopicData:
    return topic_data.model_copy(update={
        "transitions": [_derive(t, topic_data) for t in topic_data.transitions]
    })


def _get_topic(project: Project, topic_id: str) -> TopicData:
    topic_data = project.find_topic(topic_id)
    if topic_data is None:
        raise CommandError(f"Unknown topic: {topic_id}")
    return topic_data


def _get_state(topic_data: TopicData, state_id: str) -> StateNode:
    state = topic_data.find_state(state_id)
    if state is None:
        raise CommandError(f"Unknown state {state_id!r} in topic {topic_data.topic.id}")
    return state


def _get_transition(topic_data: TopicData, transition_id: str) -> Transition:
    transition = topic_data.find_transition(transition_id)
    if transition is None:
        raise CommandError(f"Unknown transition {transition_id!r} in topic {topic_data.topic.id}")
    return transition


def _touch(project: Project, **update: Any) -> Project:
    return project.model_copy(update={**update, "updated_at": _now()})


def _replace_topic(project: Project, topic_data: TopicData) -> Project:
    topics = [
        topic_data if existing.topic.id == topic_data.topic.id else existing
        for existing in project.topics
    ]
    return _touch(project, topics=topics)


def _with_states(topic_data: TopicData, states: list[StateNode]) -> TopicData:
    return topic_data.model_copy(update={"states": states})


def _with_transitions(topic_data: TopicData, transitions: list[Transition]) -> TopicData:
    return topic_data.model_copy(update={"transitions": transitions})


def _convert_topic_kind(topic_data: TopicData, kind: TopicKind) -> TopicData:
    """Change a topic's kind, swapping its start node and rewiring transitions."""
    if topic_data.topic.kind == kind:
        return topic_data

    old_type = START_NODE_TYPES[topic_data.topic.kind]
    new_type = START_NODE_TYPES[kind]
    topic = topic_data.topic.model_copy(update={"kind": kind})
    converted = topic_data.model_copy(update={"topic": topic})

    start_nodes = topic_data.states_of_type(old_type)
    if not start_nodes:
        return converted

    old_id = start_nodes[0].id
    new_node = _system_node(new_type, start_nodes[0].position)
    new_id = new_node.id

    states = [new_node if state.id == old_id else state for state in topic_data.states]
    transitions = [
        t.model_copy(update={
            "source": new_id if t.source == old_id else t.source,
            "target": new_id if t.target == old_id else t.target,
        })
        for t in topic_data.transitions
    ]

    logger.debug(f"Topic {topic.id}: start node {old_id} replaced by {new_id}")
    converted = converted.model_copy(update={"states": states, "transitions": transitions})
    return _rederive_all(converted)


# Projects and topics

def create_project(instrument_type: str, revision: str, name: str = "",
                   label: str | None = None, description: str | None = None,
                   project_id: str | None = None) -> Project:
    """Create an empty project for an instrument."""
    timestamp = _now()
    return Project(
        id=project_id or _new_id(),
        name=name,
        instrument=Instrument(type=instrument_type, revision=revision, label=label, description=description),
        created_at=timestamp,
        updated_at=timestamp,
    )


def create_topic(project: Project, topic_id: str, kind: TopicKind = TopicKind.NORMAL,
                 label: str | None = None) -> Project:
    """Add a topic with the system nodes its kind requires.

    A new root topic demotes the existing root to a normal topic.
    """
    if project.find_topic(topic_id) is not None:
        raise CommandError(f"Topic already exists: {topic_id}")

    kind = TopicKind(kind)
    topics = list(project.topics)
    if kind == TopicKind.ROOT:
        topics = [_convert_topic_kind(t, TopicKind.NORMAL) for t in topics]

    topics.append(TopicData(topic=Topic(id=topic_id, label=label, kind=kind), states=_system_nodes(kind)))
    logger.debug(f"Created {kind.value} topic {topic_id}")
    return _touch(project, topics=topics, selected_topic_id=topic_id)


def set_root_topic(project: Project, topic_id: str) -> Project:
    """Make ``topic_id`` the root topic and demote any other root."""
    _get_topic(project, topic_id)
    topics = [
        _convert_topic_kind(t, TopicKind.ROOT if t.topic.id == topic_id else TopicKind.NORMAL)
        for t in project.topics
    ]
    return _touch(project, topics=topics)


def delete_topic(project: Project, topic_id: str) -> Project:
    _get_topic(project, topic_id)
    topics = [t for t in project.topics if t.topic.id != topic_id]
    selected = project.selected_topic_id
    if selected == topic_id:
        selected = topics[0].topic.id if topics else None
    return _touch(project, topics=topics, selected_topic_id=selected)


def update_instrument(project: Project, **changes: Any) -> Project:
    """Update instrument type, revision, label or description."""
    _check_fields(changes, INSTRUMENT_FIELDS, "instrument")
    return _touch(project, instrument=project.instrument.model_copy(update=changes))


# States

def _add_node(project: Project, topic_id: str, node: StateNode) -> Project:
    topic_data = _get_topic(project, topic_id)
    if topic_data.find_state(node.id) is not None:
        raise CommandError(f"State already exists in topic {topic_id}: {node.id}")
    return _replace_topic(project, _with_states(topic_data, [*topic_data.states, node]))


def add_state(project: Project, topic_id: str, label: str, state_id: str | None = None,
              position: Position | None = None, stereotype: str | None = None) -> Project:
    """Add an ordinary state; the stereotype defaults to the state id."""
    state_id = state_id or _new_id()
    node = StateNode(
        id=state_id,
        label=label,
        stereotype=stereotype or state_id,
        position=position or Position(x=250, y=200),
    )
    return _add_node(project, topic_id, node)


def add_fork(project: Project, topic_id: str, fork_id: str | None = None,
             position: Position | None = None) -> Project:
    node = StateNode(
        id=fork_id or f"fork-{_new_id()}",
        label="Fork",
        stereotype="Fork",
        position=position or Position(x=250, y=200),
        is_system_node=True,
        system_node_type=SystemNodeType.FORK,
    )
    return _add_node(project, topic_id, node)


def add_topic_end(project: Project, topic_id: str) -> Project:
    """Add the TopicEnd node unless the topic already has one."""
    topic_data = _get_topic(project, topic_id)
    if topic_data.has_state_of_type(SystemNodeType.TOPIC_END):
        return project
    return _add_node(project, topic_id, _system_node(SystemNodeType.TOPIC_END, Position(x=400, y=300)))


def add_instrument_end(project: Project, topic_id: str) -> Project:
    """Add the InstrumentEnd node unless the topic already has one."""
    topic_data = _get_topic(project, topic_id)
    if topic_data.has_state_of_type(SystemNodeType.INSTRUMENT_END):
        return project
    return _add_node(project, topic_id, _system_node(SystemNodeType.INSTRUMENT_END, Position(x=500, y=300)))


def _update_user_state(project: Project, topic_id: str, state_id: str, update: dict[str, Any]) -> Project:
    topic_data = _get_topic(project, topic_id)
    state = _get_state(topic_data, state_id)
    if state.is_system_node:
        raise CommandError(f"System node {state_id} cannot be edited")

    updated = state.model_copy(update=update)
    states = [updated if s.id == state_id else s for s in topic_data.states]
    return _replace_topic(project, _with_states(topic_data, states))


def update_state(project: Project, topic_id: str, state_id: str, **changes: Any) -> Project:
    """Update label, stereotype or position of an ordinary state."""
    _check_fields(changes, STATE_FIELDS, "state")
    return _update_user_state(project, topic_id, state_id, changes)


def set_topic_end_kind(project: Project, topic_id: str, state_id: str,
                       kind: TopicEndKind | None) -> Project:
    """Mark an ordinary state as a positive or negative topic end, or clear the mark."""
    end_kind = TopicEndKind(kind) if kind is not None else None
    return _update_user_state(project, topic_id, state_id, {"topic_end_kind": end_kind})


def delete_state(project: Project, topic_id: str, state_id: str) -> Project:
    """Delete a state and every transition touching it.

    Start nodes and TopicEnd are never deleted. InstrumentEnd is deleted only
    while the topic still has a TopicEnd. Forks can always be deleted.
    """
    topic_data = _get_topic(project, topic_id)
    state = _get_state(topic_data, state_id)

    if state.is_system_node:
        deletable = (
            state.is_system(SystemNodeType.INSTRUMENT_END)
            and topic_data.has_state_of_type(SystemNodeType.TOPIC_END)
        ) or state.is_fork
        if not deletable:
            raise CommandError(f"System node {state_id} cannot be deleted")

    states = [s for s in topic_data.states if s.id != state_id]
    transitions = [t for t in topic_data.transitions if state_id not in (t.source, t.target)]
    logger.debug(f"Deleted state {state_id} and {len(topic_data.transitions) - len(transitions)} transition(s)")
    return _replace_topic(project, topic_data.model_copy(update={"states": states, "transitions": transitions}))


# Transitions

def add_transition(project: Project, topic_id: str, source: str, target: str,
                   message_type: str | None = None, flow_type: str | None = None,
                   transition_id: str | None = None, **fields: Any) -> Project:
    """Connect two existing states; the kind is derived from the endpoints."""
    _check_fields(fields, TRANSITION_FIELDS, "transition")
    topic_data = _get_topic(project, topic_id)
    _get_state(topic_data, source)
    _get_state(topic_data, target)

    fields.setdefault("source_handle_id", "source-bottom")
    fields.setdefault("target_handle_id", "target-top")
    transition = Transition(
        id=transition_id or _new_id(),
        source=source,
        target=target,
        message_type=message_type,
        flow_type=flow_type,
        **fields,
    )
    if topic_data.find_transition(transition.id) is not None:
        raise CommandError(f"Transition already exists in topic {topic_id}: {transition.id}")

    transition = _derive(transition, topic_data)
    logger.debug(f"Added {transition.kind.value} transition {source} -> {target} in topic {topic_id}")
    return _replace_topic(project, _with_transitions(topic_data, [*topic_data.transitions, transition]))


def _replace_transition(project: Project, topic_data: TopicData, transition: Transition) -> Project:
    transition = _derive(transition, topic_data)
    transitions = [transition if t.id == transition.id else t for t in topic_data.transitions]
    return _replace_topic(project, _with_transitions(topic_data, transitions))


def update_transition(project: Project, topic_id: str, transition_id: str, **changes: Any) -> Project:
    """Update message and presentation fields; endpoints change only via reconnect."""
    _check_fields(changes, TRANSITION_FIELDS, "transition")
    topic_data = _get_topic(project, topic_id)
    transition = _get_transition(topic_data, transition_id)
    if changes.get("end_topic_kind") is not None:
        changes["end_topic_kind"] = TopicEndKind(changes["end_topic_kind"])
    return _replace_transition(project, topic_data, transition.model_copy(update=changes))


def reconnect_transition(project: Project, topic_id: str, transition_id: str,
                         source: str | None = None, target: str | None = None) -> Project:
    """Move one or both endpoints of a transition."""
    topic_data = _get_topic(project, topic_id)
    transition = _get_transition(topic_data, transition_id)

    update = {}
    if source is not None:
        update["source"] = _get_state(topic_data, source).id
    if target is not None:
        update["target"] = _get_state(topic_data, target).id

    return _replace_transition(project, topic_data, transition.model_copy(update=update))


def delete_transition(project: Project, topic_id: str, transition_id: str) -> Project:
    topic_data = _get_topic(project, topic_id)
    _get_transition(topic_data, transition_id)
    transitions = [t for t in topic_data.transitions if t.id != transition_id]
    return _replace_topic(project, _with_transitions(topic_data, transitions))
