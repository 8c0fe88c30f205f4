"""Validation rules for instrument state machine projects.

Each rule checks one aspect of a project: naming, structure or reachability.
Naming and vocabulary problems are warnings, except required-field omissions
and reserved-name collisions, which are errors.
"""

import logging
from abc import abstractmethod
from collections import deque

from ..classifier import classify, effective_kind, is_routing_only
from ..config import FieldConfig
from ..identifiers import is_valid_identifier, label_to_identifier
from ..models.diagram import (
    END_TRANSITION_KINDS,
    Project,
    SystemNodeType,
    TopicData,
    Transition,
    TransitionKind,
    is_topic_end_state,
)
from .framework import ElementType, ValidationLevel, ValidationResult, ValidationRule

logger = logging.getLogger(__name__)

RESERVED_NAMES = (
    "Start", "End", "NewInstrument", "InstrumentEnd", "NewTopicIn", "NewTopicOut",
    "TopicStart", "TopicEnd",
)
_RESERVED_IDENTIFIERS = {name.upper() for name in RESERVED_NAMES}


def _start_node_id(topic_data: TopicData) -> str:
    """ID of the topic's start node, or its well-known token when missing."""
    start_state = topic_data.start_state
    return start_state.id if start_state else topic_data.start_node_type.value


def _not_in_vocabulary(value: str, allowed: list[str]) -> bool:
    return bool(allowed) and value not in allowed


class TopicRule(ValidationRule):
    """Base class for rules that check each topic independently."""

    def validate(self, project: Project, field_config: FieldConfig, result: ValidationResult) -> None:
        for topic_data in project.topics:
            self.validate_topic(topic_data, project, field_config, result)

    @abstractmethod
    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        """Check one topic."""
        pass


class InstrumentMetadataRule(ValidationRule):
    """Instrument type and revision are required enum-style names."""

    @property
    def name(self) -> str:
        return "instrument_metadata"

    def validate(self, project: Project, field_config: FieldConfig, result: ValidationResult) -> None:
        instrument = project.instrument

        if not instrument.type or not instrument.type.strip():
            result.add_issue(self.name, ValidationLevel.ERROR, "Instrument type is required")
        elif not is_valid_identifier(instrument.type):
            result.add_issue(
                self.name,
                ValidationLevel.ERROR,
                f'Instrument type "{instrument.type}" must follow Java enum naming '
                "(letters, numbers, underscores only)"
            )
        elif _not_in_vocabulary(instrument.type, field_config.instrument_types):
            result.add_issue(
                self.name,
                ValidationLevel.WARNING,
                f'Instrument type "{instrument.type}" is not in configured instrument types'
            )

        if not instrument.revision or not instrument.revision.strip():
            result.add_issue(self.name, ValidationLevel.ERROR, "Instrument revision is required")
        elif not is_valid_identifier(instrument.revision):
            result.add_issue(
                self.name,
                ValidationLevel.ERROR,
                f'Instrument revision "{instrument.revision}" must follow Java enum naming'
            )
        elif _not_in_vocabulary(instrument.revision, field_config.revisions):
            result.add_issue(
                self.name,
                ValidationLevel.WARNING,
                f'Instrument revision "{instrument.revision}" is not in configured revisions'
            )


class TopicIdentityRule(ValidationRule):
    """Topic IDs are required, unique, enum-style and not reserved."""

    @property
    def name(self) -> str:
        return "topic_identity"

    def validate(self, project: Project, field_config: FieldConfig, result: ValidationResult) -> None:
        seen: dict[str, int] = {}

        for topic_data in project.topics:
            topic_id = topic_data.topic.id
            result.increment_counter("topics_checked")

            if not topic_id or not topic_id.strip():
                result.add_issue(self.name, ValidationLevel.ERROR, "Topic ID is required", topic_id=topic_id)
                continue

            seen[topic_id] = seen.get(topic_id, 0) + 1

            if not is_valid_identifier(topic_id):
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'Topic ID "{topic_id}" must follow Java enum naming (letters, numbers, underscores only)',
                    topic_id=topic_id
                )
            elif topic_id in RESERVED_NAMES:
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'Topic ID "{topic_id}" is a reserved name',
                    topic_id=topic_id
                )
            elif _not_in_vocabulary(topic_id, field_config.topic_types):
                result.add_issue(
                    self.name,
                    ValidationLevel.WARNING,
                    f'Topic ID "{topic_id}" is not in configured topic types',
                    topic_id=topic_id
                )

        for topic_id, count in seen.items():
            if count > 1:
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'Topic ID "{topic_id}" is used by {count} topics',
                    topic_id=topic_id
                )

        if project.topics and not project.root_topics:
            result.add_issue(
                self.name,
                ValidationLevel.WARNING,
                "No root topic defined. One topic should be marked as root for instrument aggregate diagram."
            )


class StateLabelRule(TopicRule):
    """State labels must produce usable, unique PUML identifiers."""

    @property
    def name(self) -> str:
        return "state_labels"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        topic_id = topic_data.topic.id
        labels_by_identifier: dict[str, str] = {}

        for state in topic_data.states:
            if state.is_system_node:
                continue
            result.increment_counter("states_checked")

            if not state.label or not state.label.strip():
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    "State label is required",
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )
                continue

            puml_id = label_to_identifier(state.label)
            if not is_valid_identifier(puml_id):
                result.add_issue(
                    self.name,
                    ValidationLevel.WARNING,
                    f'State label "{state.label}" converts to invalid PUML ID "{puml_id}"',
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )
            elif puml_id in _RESERVED_IDENTIFIERS:
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'State label "{state.label}" converts to reserved name "{puml_id}"',
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )

            if puml_id in labels_by_identifier:
                result.add_issue(
                    self.name,
                    ValidationLevel.WARNING,
                    f'State label "{state.label}" converts to PUML ID "{puml_id}" '
                    f'already used by state "{labels_by_identifier[puml_id]}"',
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )
            else:
                labels_by_identifier[puml_id] = state.label


class StartNodeRule(TopicRule):
    """Each topic has one start node and an effective start transition."""

    @property
    def name(self) -> str:
        return "start_node"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        topic_id = topic_data.topic.id
        start_type = topic_data.start_node_type
        start_nodes = topic_data.states_of_type(start_type)

        if len(start_nodes) != 1:
            result.add_issue(
                self.name,
                ValidationLevel.ERROR,
                f'Topic "{topic_id}" must have exactly one {start_type.value} node, found {len(start_nodes)}',
                topic_id=topic_id
            )

        start_id = _start_node_id(topic_data)
        if not any(self._is_effective_start(t, topic_data) for t in topic_data.outgoing(start_id)):
            result.add_issue(
                self.name,
                ValidationLevel.ERROR,
                f'Topic "{topic_id}" must have at least one transition from {start_type.value}',
                topic_id=topic_id
            )

    @staticmethod
    def _is_effective_start(transition: Transition, topic_data: TopicData) -> bool:
        target = topic_data.find_state(transition.target)
        if target is None or not target.is_fork:
            return True
        # Through a fork, one level deep: the fork must reach a non-fork node
        for fork_transition in topic_data.outgoing(target.id):
            fork_target = topic_data.find_state(fork_transition.target)
            if fork_target is None or not fork_target.is_fork:
                return True
        return False


class EndPathRule(TopicRule):
    """Each topic should reach an end-topic state."""

    @property
    def name(self) -> str:
        return "end_path"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        if not any(self._is_effective_end(t, topic_data) for t in topic_data.transitions):
            result.add_issue(
                self.name,
                ValidationLevel.WARNING,
                f'Topic "{topic_data.topic.id}" should have at least one path to an end-topic state',
                topic_id=topic_data.topic.id
            )

    @staticmethod
    def _is_effective_end(transition: Transition, topic_data: TopicData) -> bool:
        if not is_topic_end_state(topic_data.find_state(transition.target)):
            return False
        source = topic_data.find_state(transition.source)
        if source is None or not source.is_fork:
            return True
        for fork_transition in topic_data.incoming(source.id):
            fork_source = topic_data.find_state(fork_transition.source)
            if fork_source is None or not fork_source.is_fork:
                return True
        return False


class TransitionEndpointRule(TopicRule):
    """Transitions point at existing states and carry a kind matching them."""

    @property
    def name(self) -> str:
        return "transition_endpoints"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        topic_id = topic_data.topic.id

        for transition in topic_data.transitions:
            result.increment_counter("transitions_checked")
            from_state = topic_data.find_state(transition.source)
            to_state = topic_data.find_state(transition.target)
            location = dict(topic_id=topic_id, element_id=transition.id, element_type=ElementType.TRANSITION)

            if from_state is None:
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'Transition "{transition.id}" has invalid source state "{transition.source}"',
                    **location
                )
            if to_state is None:
                result.add_issue(
                    self.name,
                    ValidationLevel.ERROR,
                    f'Transition "{transition.id}" has invalid target state "{transition.target}"',
                    **location
                )

            kind = transition.kind
            if kind == TransitionKind.START_TOPIC and not (
                from_state and from_state.is_system(SystemNodeType.TOPIC_START)
            ):
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    "startTopic transition must originate from TopicStart", **location
                )
            elif kind == TransitionKind.START_INSTRUMENT and not (
                from_state and from_state.is_system(SystemNodeType.NEW_INSTRUMENT)
            ):
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    "startInstrument transition must originate from NewInstrument", **location
                )
            elif kind == TransitionKind.END_TOPIC and not is_topic_end_state(to_state):
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    "endTopic transition must end at a TopicEnd or marked end-topic state", **location
                )
            elif kind == TransitionKind.END_INSTRUMENT and not (
                to_state and to_state.is_system(SystemNodeType.INSTRUMENT_END)
            ):
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    "endInstrument transition must end at InstrumentEnd", **location
                )
            elif kind == TransitionKind.NORMAL and from_state and to_state:
                derived = classify(from_state, to_state)
                if derived != TransitionKind.NORMAL:
                    result.add_issue(
                        self.name, ValidationLevel.WARNING,
                        f'Transition "{transition.id}" is stored as normal but its endpoints make it {derived.value}',
                        **location
                    )


class TransitionFieldsRule(TopicRule):
    """Message fields are present, enum-style and in the configured vocabulary."""

    @property
    def name(self) -> str:
        return "transition_fields"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        for transition in topic_data.transitions:
            from_state = topic_data.find_state(transition.source)
            to_state = topic_data.find_state(transition.target)
            if effective_kind(transition, from_state, to_state) in END_TRANSITION_KINDS:
                continue
            routing_only = is_routing_only(transition, to_state)
            self._check_transition(transition, topic_data.topic.id, field_config, routing_only, result)

    def _check_transition(self, transition: Transition, topic_id: str, field_config: FieldConfig,
                          routing_only: bool, result: ValidationResult) -> None:
        location = dict(topic_id=topic_id, element_id=transition.id, element_type=ElementType.TRANSITION)

        if routing_only and transition.has_message_fields:
            result.add_issue(
                self.name, ValidationLevel.WARNING,
                f'Routing-only transition "{transition.id}" carries message fields that are never emitted',
                **location
            )

        optional_fields = (
            ("revision", transition.revision, field_config.revisions, "revisions"),
            ("instrument", transition.instrument, field_config.instrument_types, "instrument types"),
            ("topic", transition.topic, field_config.topic_types, "topic types"),
        )
        for field_name, value, allowed, vocabulary_name in optional_fields:
            if not value:
                continue
            if not is_valid_identifier(value):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Transition {field_name} "{value}" must follow Java enum naming', **location
                )
            elif _not_in_vocabulary(value, allowed):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Transition {field_name} "{value}" is not in configured {vocabulary_name}', **location
                )

        required_fields = (
            ("messageType", transition.message_type, field_config.message_types, "message types"),
            ("flowType", transition.flow_type, field_config.flow_types, "flow types"),
        )
        for field_name, value, allowed, vocabulary_name in required_fields:
            if not routing_only and (not value or not value.strip()):
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    f"Transition {field_name} is required", **location
                )
            elif value and not is_valid_identifier(value):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Transition {field_name} "{value}" must follow Java enum naming', **location
                )
            elif value and _not_in_vocabulary(value, allowed):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Transition {field_name} "{value}" is not in configured {vocabulary_name}', **location
                )


class ForkRule(TopicRule):
    """Forks need both sides connected and cannot be chained."""

    @property
    def name(self) -> str:
        return "forks"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        topic_id = topic_data.topic.id
        fork_ids = topic_data.fork_ids

        for fork in topic_data.states_of_type(SystemNodeType.FORK):
            result.increment_counter("forks_checked")
            location = dict(topic_id=topic_id, element_id=fork.id, element_type=ElementType.STATE)

            if not topic_data.incoming(fork.id):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Fork "{fork.label}" has no incoming transitions (no effective expansion)', **location
                )
            if not topic_data.outgoing(fork.id):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'Fork "{fork.label}" has no outgoing transitions (no effective expansion)', **location
                )

        for transition in topic_data.transitions:
            if transition.source in fork_ids and transition.target in fork_ids:
                result.add_issue(
                    self.name, ValidationLevel.ERROR,
                    f'Transition "{transition.id}" connects two forks; chained forks are not expanded',
                    topic_id=topic_id, element_id=transition.id, element_type=ElementType.TRANSITION
                )


class ConnectivityRule(TopicRule):
    """Flag orphaned states and states unreachable from the start node."""

    @property
    def name(self) -> str:
        return "connectivity"

    def validate_topic(self, topic_data: TopicData, project: Project,
                       field_config: FieldConfig, result: ValidationResult) -> None:
        topic_id = topic_data.topic.id

        for state in topic_data.states:
            if state.is_system_node:
                continue
            if not topic_data.incoming(state.id) and not topic_data.outgoing(state.id):
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'State "{state.label}" is orphaned (no connections)',
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )

        reachable = self._reachable_from(_start_node_id(topic_data), topic_data)
        logger.debug(f"Topic {topic_id}: {len(reachable)} nodes reachable from start")

        for state in topic_data.states:
            if not state.is_system_node and state.id not in reachable:
                result.add_issue(
                    self.name, ValidationLevel.WARNING,
                    f'State "{state.label}" is unreachable from start',
                    topic_id=topic_id, element_id=state.id, element_type=ElementType.STATE
                )

    @staticmethod
    def _reachable_from(start_id: str, topic_data: TopicData) -> set[str]:
        successors: dict[str, list[str]] = {}
        for transition in topic_data.transitions:
            successors.setdefault(transition.source, []).append(transition.target)

        reachable: set[str] = set()
        queue = deque([start_id])
        while queue:
            current = queue.popleft()
            if current in reachable:
                continue
            reachable.add(current)
            queue.extend(successors.get(current, []))
        return reachable
