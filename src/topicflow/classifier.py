"""Transition classification from endpoint system node types."""

from topicflow.models.diagram import StateNode, SystemNodeType, Transition, TransitionKind

# Source-side rules are checked before target-side rules
_SOURCE_KINDS = (
    (SystemNodeType.NEW_INSTRUMENT, TransitionKind.START_INSTRUMENT),
    (SystemNodeType.TOPIC_START, TransitionKind.START_TOPIC),
)
_TARGET_KINDS = (
    (SystemNodeType.TOPIC_END, TransitionKind.END_TOPIC),
    (SystemNodeType.INSTRUMENT_END, TransitionKind.END_INSTRUMENT),
)


def classify(from_state: StateNode | None, to_state: StateNode | None) -> TransitionKind:
    """Derive the kind of a transition from the states it connects.

    A transition leaving NewInstrument is ``startInstrument`` even when it
    lands on TopicEnd. Missing endpoints classify as ``normal``.
    """
    if from_state is None or to_state is None:
        return TransitionKind.NORMAL

    for node_type, kind in _SOURCE_KINDS:
        if from_state.system_node_type == node_type:
            return kind

    for node_type, kind in _TARGET_KINDS:
        if to_state.system_node_type == node_type:
            return kind

    return TransitionKind.NORMAL


def is_routing_only(transition: Transition, to_state: StateNode | None = None) -> bool:
    """True when the transition only feeds a Fork and carries no message."""
    if to_state is not None:
        return to_state.system_node_type == SystemNodeType.FORK
    return bool(transition.is_routing_only)


def effective_kind(
    transition: Transition,
    from_state: StateNode | None,
    to_state: StateNode | None,
) -> TransitionKind:
    """Kind derived from resolved endpoints, falling back to the stored kind."""
    if from_state is None or to_state is None:
        return transition.kind
    return classify(from_state, to_state)
