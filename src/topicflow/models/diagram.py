"""Domain models for instrument state machine projects.

All models are frozen snapshots. They accept either snake_case field names or
the camelCase keys used by the persisted editor format, and serialize back to
the camelCase form with ``to_json_data``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

SNAPSHOT_MODEL_CONFIG = ConfigDict(populate_by_name=True, frozen=True)


class TopicKind(str, Enum):
    """Topic kinds: root topics model instrument entry, normal topics sub-flows."""
    ROOT = "root"
    NORMAL = "normal"


class TransitionKind(str, Enum):
    """Semantic transition kinds derived from endpoint system node types."""
    NORMAL = "normal"
    START_TOPIC = "startTopic"
    END_TOPIC = "endTopic"
    START_INSTRUMENT = "startInstrument"
    END_INSTRUMENT = "endInstrument"


class SystemNodeType(str, Enum):
    """Structurally fixed node types."""
    TOPIC_START = "TopicStart"
    TOPIC_END = "TopicEnd"
    NEW_INSTRUMENT = "NewInstrument"
    INSTRUMENT_END = "InstrumentEnd"
    FORK = "Fork"


class TopicEndKind(str, Enum):
    """Marker kinds for ordinary states that terminate a topic."""
    POSITIVE = "positive"
    NEGATIVE = "negative"


RESERVED_NODE_NAMES = (
    "Start", "End", "NewInstrument", "InstrumentEnd", "NewTopicIn", "NewTopicOut",
    "TopicStart", "TopicEnd", "Fork",
)

# Start node type required by each topic kind
START_NODE_TYPES = {
    TopicKind.ROOT: SystemNodeType.NEW_INSTRUMENT,
    TopicKind.NORMAL: SystemNodeType.TOPIC_START,
}

END_TRANSITION_KINDS = frozenset({TransitionKind.END_TOPIC, TransitionKind.END_INSTRUMENT})


class Position(BaseModel):
    """Canvas coordinate (presentation only)."""
    x: float = 0
    y: float = 0

    model_config = SNAPSHOT_MODEL_CONFIG


class Instrument(BaseModel):
    """Instrument identity shared by every topic of a project."""
    type: str
    revision: str
    label: str | None = None
    description: str | None = None

    model_config = SNAPSHOT_MODEL_CONFIG


class Topic(BaseModel):
    """One message-flow state machine of an instrument."""
    id: str
    label: str | None = None
    kind: TopicKind = TopicKind.NORMAL

    @property
    def is_root(self) -> bool:
        return self.kind == TopicKind.ROOT

    @property
    def display_name(self) -> str:
        return self.label or self.id

    model_config = SNAPSHOT_MODEL_CONFIG


class StateNode(BaseModel):
    """A state of a topic graph, either user-defined or a system node."""
    id: str
    label: str = ""
    stereotype: str | None = None
    position: Position = Field(default_factory=Position)
    is_system_node: bool = Field(alias="isSystemNode", default=False)
    system_node_type: SystemNodeType | None = Field(alias="systemNodeType", default=None)
    topic_end_kind: TopicEndKind | None = Field(alias="topicEndKind", default=None)

    @model_validator(mode="before")
    @classmethod
    def resolve_unset_topic_end_kind(cls, data: Any) -> Any:
        # A marker key present without a value means a positive topic end
        if isinstance(data, dict):
            for key in ("topicEndKind", "topic_end_kind"):
                if key in data and data[key] is None:
                    data = {**data, key: TopicEndKind.POSITIVE}
        return data

    def is_system(self, node_type: SystemNodeType) -> bool:
        return self.system_node_type == node_type

    @property
    def is_fork(self) -> bool:
        return self.system_node_type == SystemNodeType.FORK

    model_config = SNAPSHOT_MODEL_CONFIG


class Transition(BaseModel):
    """A directed edge between two states of the same topic.

    ``kind`` and ``is_routing_only`` are derived from the endpoints and are
    only written by :mod:`topicflow.commands` and the snapshot upgrade path.
    """
    id: str
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    kind: TransitionKind = TransitionKind.NORMAL
    is_routing_only: bool | None = Field(alias="isRoutingOnly", default=None)
    end_topic_kind: TopicEndKind | None = Field(alias="endTopicKind", default=None)
    teleport_enabled: bool | None = Field(alias="teleportEnabled", default=None)

    # Message properties
    revision: str | None = None
    instrument: str | None = None
    topic: str | None = None
    message_type: str | None = Field(alias="messageType", default=None)
    flow_type: str | None = Field(alias="flowType", default=None)

    # Edge routing (presentation only)
    source_handle_id: str | None = Field(alias="sourceHandleId", default=None)
    target_handle_id: str | None = Field(alias="targetHandleId", default=None)
    curve_offset: float | None = Field(alias="curveOffset", default=None)

    @property
    def has_message_fields(self) -> bool:
        return any([self.revision, self.instrument, self.topic, self.message_type, self.flow_type])

    model_config = SNAPSHOT_MODEL_CONFIG


class TopicData(BaseModel):
    """A topic together with the states and transitions it owns."""
    topic: Topic
    states: list[StateNode] = Field(default_factory=list)
    transitions: list[Transition] = Field(default_factory=list)

    def find_state(self, state_id: str) -> StateNode | None:
        for state in self.states:
            if state.id == state_id:
                return state
        return None

    def find_transition(self, transition_id: str) -> Transition | None:
        for transition in self.transitions:
            if transition.id == transition_id:
                return transition
        return None

    def states_of_type(self, node_type: SystemNodeType) -> list[StateNode]:
        return [state for state in self.states if state.system_node_type == node_type]

    def has_state_of_type(self, node_type: SystemNodeType) -> bool:
        return any(state.system_node_type == node_type for state in self.states)

    @property
    def start_node_type(self) -> SystemNodeType:
        return START_NODE_TYPES[self.topic.kind]

    @property
    def start_state(self) -> StateNode | None:
        """The topic's entry node (NewInstrument for root, TopicStart otherwise)."""
        candidates = self.states_of_type(self.start_node_type)
        return candidates[0] if candidates else None

    @property
    def fork_ids(self) -> set[str]:
        return {state.id for state in self.states if state.is_fork}

    def incoming(self, state_id: str) -> list[Transition]:
        return [t for t in self.transitions if t.target == state_id]

    def outgoing(self, state_id: str) -> list[Transition]:
        return [t for t in self.transitions if t.source == state_id]

    model_config = SNAPSHOT_MODEL_CONFIG


class Project(BaseModel):
    """One instrument and its ordered topics."""
    id: str = ""
    name: str = ""
    instrument: Instrument
    topics: list[TopicData] = Field(default_factory=list)
    selected_topic_id: str | None = Field(alias="selectedTopicId", default=None)
    created_at: str | None = Field(alias="createdAt", default=None)
    updated_at: str | None = Field(alias="updatedAt", default=None)

    def find_topic(self, topic_id: str) -> TopicData | None:
        for topic_data in self.topics:
            if topic_data.topic.id == topic_id:
                return topic_data
        return None

    @property
    def root_topics(self) -> list[TopicData]:
        return [t for t in self.topics if t.topic.kind == TopicKind.ROOT]

    @property
    def normal_topics(self) -> list[TopicData]:
        return [t for t in self.topics if t.topic.kind == TopicKind.NORMAL]

    def to_json_data(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    model_config = SNAPSHOT_MODEL_CONFIG


def get_topic_end_kind(state: StateNode | None) -> TopicEndKind | None:
    """Return the topic-end marker of a state, if any."""
    if state is None:
        return None
    return state.topic_end_kind


def is_topic_end_state(state: StateNode | None) -> bool:
    """True for TopicEnd system nodes and for states carrying a topic-end marker."""
    if state is None:
        return False
    return state.system_node_type == SystemNodeType.TOPIC_END or state.topic_end_kind is not None
