"""Migration of legacy end-topic nodes in persisted project data.

Older snapshots modelled a topic end as a dedicated ``EndTopic`` state. Current
projects mark the last ordinary state with ``topicEndKind`` instead. This
module rewrites the raw JSON form before it is validated into models.
"""

import copy
import logging
from typing import Any

from topicflow.classifier import classify
from topicflow.models.diagram import StateNode, SystemNodeType, TopicEndKind, TransitionKind

logger = logging.getLogger(__name__)

LEGACY_END_TOKENS = ("EndTopic", "End Topic", "END_TOPIC")


def is_legacy_end_node(state: dict[str, Any]) -> bool:
    """True when a raw state's id, label or stereotype is a legacy end token."""
    return any(state.get(key) in LEGACY_END_TOKENS for key in ("id", "label", "stereotype"))


def _system_node_type(state: dict[str, Any]) -> SystemNodeType | None:
    try:
        return SystemNodeType(state.get("systemNodeType"))
    except ValueError:
        return None


def _endpoint(state: dict[str, Any] | None) -> StateNode | None:
    if state is None:
        return None
    return StateNode(id=str(state.get("id", "")), system_node_type=_system_node_type(state))


def normalize_topic_data(topic_data: dict[str, Any]) -> int:
    """Normalize one raw topic in place.

    Returns:
        Number of legacy end nodes removed
    """
    states = topic_data.get("states") or []
    transitions = topic_data.get("transitions") or []

    legacy_ids = {state.get("id") for state in states if is_legacy_end_node(state)}

    if legacy_ids:
        predecessor_ids = {
            transition.get("from") for transition in transitions if transition.get("to") in legacy_ids
        }
        for state in states:
            if state.get("id") in predecessor_ids and not state.get("isSystemNode"):
                state["topicEndKind"] = TopicEndKind.POSITIVE.value

        states = [state for state in states if state.get("id") not in legacy_ids]
        transitions = [
            transition for transition in transitions
            if transition.get("from") not in legacy_ids and transition.get("to") not in legacy_ids
        ]

    states_by_id = {state.get("id"): state for state in states}
    for transition in transitions:
        to_state = states_by_id.get(transition.get("to"))
        kind = classify(_endpoint(states_by_id.get(transition.get("from"))), _endpoint(to_state))

        transition["kind"] = kind.value
        transition["isRoutingOnly"] = _system_node_type(to_state or {}) == SystemNodeType.FORK
        if kind == TransitionKind.END_TOPIC and transition.get("endTopicKind") is None:
            transition["endTopicKind"] = TopicEndKind.POSITIVE.value

    topic_data["states"] = states
    topic_data["transitions"] = transitions
    return len(legacy_ids)


def normalize_project_data(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of raw project data with legacy end nodes migrated.

    Legacy nodes are removed along with every transition touching them, their
    non-system predecessors are marked as positive topic ends, and all
    transition kinds are re-derived from their endpoints.
    """
    normalized = copy.deepcopy(data)

    removed = 0
    for topic_data in normalized.get("topics") or []:
        removed += normalize_topic_data(topic_data)

    if removed:
        logger.info(f"Migrated {removed} legacy end-topic node(s) in project {normalized.get('id', '')!r}")
    else:
        logger.debug("No legacy end-topic nodes found")

    return normalized
