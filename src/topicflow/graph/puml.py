"""PlantUML emitter for topic and instrument aggregate diagrams."""

import logging

from ..identifiers import label_to_identifier
from ..models.diagram import (
    Instrument,
    Project,
    StateNode,
    SystemNodeType,
    TopicData,
    TopicEndKind,
    get_topic_end_kind,
)
from .expansion import topic_render_transitions
from .framework import GraphRenderer
from .models import RenderTransition

logger = logging.getLogger(__name__)

NEW_INSTRUMENT_ALIAS = "NewInstrument"
END_INSTRUMENT_ALIAS = "EndInstrument"

INLINE_STYLES = """skinparam state {
  BackgroundColor #F8FAFC
  BorderColor #CBD5E1
  FontColor #0F172A
  ArrowColor #64748B
}

skinparam state<<start>> {
  BackgroundColor #22C55E
  BorderColor #16A34A
  FontColor #FFFFFF
}

skinparam state<<end>> {
  BackgroundColor #EF4444
  BorderColor #DC2626
  FontColor #FFFFFF
}

skinparam state<<entryPoint>> {
  BackgroundColor #3B82F6
  BorderColor #2563EB
  FontColor #FFFFFF
}

skinparam state<<exitPoint>> {
  BackgroundColor #F59E0B
  BorderColor #D97706
  FontColor #FFFFFF
}

hide empty description"""


def escape_label(label: str) -> str:
    """Escape double quotes for a quoted PUML display name."""
    return label.replace('"', '\\"')


def state_identifier(state: StateNode) -> str:
    """System nodes keep their fixed IDs; user states derive one from the label."""
    if state.is_system_node:
        return state.id
    return label_to_identifier(state.label)


class StateAliaser:
    """Resolves state IDs of one topic to PUML aliases.

    Shared by the topic and aggregate emitters so identical graphs always get
    identical aliases.
    """

    def __init__(self, instrument: Instrument, topic_data: TopicData):
        self.topic_data = topic_data
        self.prefix = f"{instrument.type}.{topic_data.topic.id}"
        self._states = {state.id: state for state in topic_data.states}

    @property
    def start_alias(self) -> str:
        return f"{self.prefix}.Start"

    @property
    def end_alias(self) -> str:
        return f"{self.prefix}.End"

    def state(self, state_id: str) -> StateNode | None:
        return self._states.get(state_id)

    def alias(self, state_id: str) -> str:
        state = self._states.get(state_id)
        if state is None:
            return f"{self.prefix}.{state_id}"
        return self.alias_for(state)

    def alias_for(self, state: StateNode) -> str:
        node_type = state.system_node_type
        if node_type == SystemNodeType.NEW_INSTRUMENT:
            return NEW_INSTRUMENT_ALIAS
        if node_type == SystemNodeType.INSTRUMENT_END:
            return END_INSTRUMENT_ALIAS
        if node_type == SystemNodeType.TOPIC_START:
            return self.start_alias
        if node_type == SystemNodeType.TOPIC_END:
            return self.end_alias
        return f"{self.prefix}.{state_identifier(state)}"

    def declaration(self, state: StateNode) -> str | None:
        """State declaration line, or None for nodes declared elsewhere or never."""
        node_type = state.system_node_type
        if node_type in (SystemNodeType.NEW_INSTRUMENT, SystemNodeType.INSTRUMENT_END, SystemNodeType.FORK):
            return None
        if node_type == SystemNodeType.TOPIC_START:
            return f'state {self.start_alias} as "Topic Start" <<entryPoint>>'
        if node_type == SystemNodeType.TOPIC_END:
            return self.end_declaration()

        identifier = state_identifier(state)
        stereotype = state.stereotype or identifier
        return f'state "{escape_label(state.label)}" as {self.prefix}.{identifier} <<{stereotype}>>'

    def end_declaration(self) -> str:
        return f'state {self.end_alias} as "Topic End" <<exitPoint>>'

    def transition_line(self, transition: RenderTransition) -> str:
        line = f"{self.alias(transition.from_id)} --> {self.alias(transition.to_id)}"
        if transition.label:
            line += f" : {transition.label}"
        return line


class TopicEnds:
    """Topic-end markers of a topic, split by where they route.

    In root topics negative markers leave the instrument; in normal topics
    every marker routes to the topic End.
    """

    def __init__(self, topic_data: TopicData):
        marked = [
            state for state in topic_data.states
            if get_topic_end_kind(state) is not None and not state.is_system_node
        ]
        if topic_data.topic.is_root:
            self.positive = [s for s in marked if get_topic_end_kind(s) != TopicEndKind.NEGATIVE]
            self.negative = [s for s in marked if get_topic_end_kind(s) == TopicEndKind.NEGATIVE]
        else:
            self.positive = marked
            self.negative = []
        self.has_end_node = topic_data.has_state_of_type(SystemNodeType.TOPIC_END)

    @property
    def needs_synthetic_end(self) -> bool:
        return not self.has_end_node and bool(self.positive)

    @property
    def has_positive_end(self) -> bool:
        return self.has_end_node or bool(self.positive)


def _header(*comments: str) -> list[str]:
    lines = ["@startuml", ""]
    lines.extend(f"' {comment}" for comment in comments)
    lines.extend(["", INLINE_STYLES, ""])
    return lines


def _declaration_lines(aliaser: StateAliaser, ends: TopicEnds, indent: str) -> list[str]:
    lines = []
    for state in aliaser.topic_data.states:
        declaration = aliaser.declaration(state)
        if declaration:
            lines.append(indent + declaration)
    if ends.needs_synthetic_end:
        lines.append(indent + aliaser.end_declaration())
    return lines


def _edge_lines(aliaser: StateAliaser, ends: TopicEnds, transitions: list[RenderTransition],
                indent: str, skip_new_instrument: bool = False) -> list[str]:
    """Expanded transitions followed by the synthetic topic-end edges."""
    lines = []
    for transition in transitions:
        from_state = aliaser.state(transition.from_id)
        if skip_new_instrument and from_state is not None and from_state.is_system(SystemNodeType.NEW_INSTRUMENT):
            continue
        lines.append(indent + aliaser.transition_line(transition))
    for state in ends.positive:
        lines.append(f"{indent}{aliaser.alias_for(state)} --> {aliaser.end_alias}")
    for state in ends.negative:
        lines.append(f"{indent}{aliaser.alias_for(state)} --> {END_INSTRUMENT_ALIAS}")
    return lines


def generate_topic_puml(project: Project, topic_id: str) -> str | None:
    """Render a single topic as PlantUML.

    Returns:
        PUML text, or None when the topic ID is unknown
    """
    topic_data = project.find_topic(topic_id)
    if topic_data is None:
        logger.debug(f"Topic {topic_id!r} not found; nothing to render")
        return None

    instrument = project.instrument
    topic = topic_data.topic
    aliaser = StateAliaser(instrument, topic_data)
    ends = TopicEnds(topic_data)
    transitions = topic_render_transitions(topic_data, instrument)

    lines = _header(f"Topic: {topic.display_name}", f"Instrument: {instrument.label or instrument.type}")
    lines.append("' --- States ---")

    # NewInstrument and EndInstrument live outside any topic
    has_new_instrument = topic_data.has_state_of_type(SystemNodeType.NEW_INSTRUMENT)
    has_instrument_end = topic_data.has_state_of_type(SystemNodeType.INSTRUMENT_END) or bool(ends.negative)
    if has_new_instrument:
        lines.append(f"state {NEW_INSTRUMENT_ALIAS} <<start>>")
    if has_instrument_end:
        lines.append(f"state {END_INSTRUMENT_ALIAS} <<end>>")
    if has_new_instrument or has_instrument_end:
        lines.append("")

    lines.extend(_declaration_lines(aliaser, ends, indent=""))
    lines.append("")

    lines.append("' --- Transitions ---")
    lines.extend(_edge_lines(aliaser, ends, transitions, indent=""))
    lines.append("")
    lines.append("@enduml")

    logger.debug(f"Rendered topic {topic.id} with {len(transitions)} transitions")
    return "\n".join(lines)


def _targets_instrument_end(topic_data: TopicData) -> bool:
    for transition in topic_data.transitions:
        to_state = topic_data.find_state(transition.target)
        if to_state is not None and to_state.is_system(SystemNodeType.INSTRUMENT_END):
            return True
    return False


def generate_aggregate_puml(project: Project) -> str | None:
    """Render the whole instrument: root topics, normal topics and routing.

    Returns:
        PUML text, or None when the project has no root topic
    """
    root_topics = project.root_topics
    if not root_topics:
        logger.debug("No root topic; aggregate diagram not rendered")
        return None

    instrument = project.instrument
    normal_topics = project.normal_topics
    has_normal_topics = bool(normal_topics)
    router_out = f"{instrument.type}_NewTopic_Out"
    router_in = f"{instrument.type}_NewTopic_In"

    aliasers = {t.topic.id: StateAliaser(instrument, t) for t in project.topics}
    ends = {t.topic.id: TopicEnds(t) for t in project.topics}
    expanded = {t.topic.id: topic_render_transitions(t, instrument) for t in project.topics}

    has_instrument_end = (
        any(_targets_instrument_end(t) for t in project.topics)
        or any(ends[t.topic.id].negative for t in root_topics)
    )

    instrument_name = instrument.label or instrument.type
    lines = _header(f"Instrument Aggregate: {instrument_name}")
    lines.append(f"state {NEW_INSTRUMENT_ALIAS} <<start>>")
    lines.append("")
    lines.append(f'state "{escape_label(instrument_name)}" as {instrument.type} {{')
    lines.append("")

    def nested_topic(topic_data: TopicData) -> list[str]:
        topic_id = topic_data.topic.id
        aliaser = aliasers[topic_id]
        block = [f'  state "{escape_label(topic_data.topic.display_name)}" as {aliaser.prefix} {{']
        block.extend(_declaration_lines(aliaser, ends[topic_id], indent="    "))
        block.append("")
        # Root entry edges are drawn from NewInstrument outside the container
        block.extend(_edge_lines(
            aliaser, ends[topic_id], expanded[topic_id], indent="    ",
            skip_new_instrument=topic_data.topic.is_root,
        ))
        block.extend(["  }", ""])
        return block

    for topic_data in root_topics:
        lines.extend(nested_topic(topic_data))

    if has_normal_topics:
        lines.append("  ' New Topic router nodes")
        lines.append(f'  state "New Topic" as {router_out}')
        lines.append(f'  state "New Topic" as {router_in}')
        lines.append("")

    for topic_data in normal_topics:
        lines.extend(nested_topic(topic_data))

    if has_normal_topics:
        for topic_data in normal_topics:
            lines.append(f"  {router_out} --> {aliasers[topic_data.topic.id].start_alias}")
        lines.append("")

        for topic_data in normal_topics:
            if ends[topic_data.topic.id].has_positive_end:
                lines.append(f"  {aliasers[topic_data.topic.id].end_alias} --> {router_in}")
        lines.append(f"  {router_in} --> {router_out}")
        lines.append("")

    lines.append("}")
    lines.append("")

    if has_instrument_end:
        lines.append(f"state {END_INSTRUMENT_ALIAS} <<end>>")
        lines.append("")

    # Entry edges leave NewInstrument outside the container
    for topic_data in root_topics:
        aliaser = aliasers[topic_data.topic.id]
        for transition in expanded[topic_data.topic.id]:
            from_state = aliaser.state(transition.from_id)
            if from_state is not None and from_state.is_system(SystemNodeType.NEW_INSTRUMENT):
                lines.append(aliaser.transition_line(transition))
    lines.append("")

    if has_normal_topics:
        for topic_data in root_topics:
            if ends[topic_data.topic.id].has_positive_end:
                lines.append(f"{aliasers[topic_data.topic.id].end_alias} --> {router_out}")
        lines.append("")

    lines.append("@enduml")

    logger.debug(f"Rendered aggregate for {instrument.type}: {len(root_topics)} root, {len(normal_topics)} normal topics")
    return "\n".join(lines)


class PumlRenderer(GraphRenderer):
    """PlantUML renderer for topic and aggregate diagrams."""

    @property
    def format_name(self) -> str:
        return "puml"

    def get_file_extension(self) -> str:
        return ".puml"

    def render_topic(self, project: Project, topic_id: str) -> str | None:
        return generate_topic_puml(project, topic_id)

    def render_aggregate(self, project: Project) -> str | None:
        return generate_aggregate_puml(project)
