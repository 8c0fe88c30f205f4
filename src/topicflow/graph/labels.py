"""Transition label emission."""

from ..classifier import effective_kind, is_routing_only
from ..models.diagram import END_TRANSITION_KINDS, Instrument, StateNode, Topic, Transition


def transition_label(
    transition: Transition,
    instrument: Instrument,
    topic: Topic,
    to_state: StateNode | None = None,
    from_state: StateNode | None = None,
) -> str:
    """Build the PUML label of a transition.

    The optional qualifiers form a gap-free prefix: once a qualifier is set,
    every qualifier to its right is emitted too, inherited from the owning
    instrument or topic when not overridden.

    - revision set: ``revision instrument topic``
    - instrument set: ``instrument topic``
    - topic set: ``topic``

    messageType and flowType always follow. End transitions, routing-only
    transitions and transitions without messageType or flowType get no label.
    """
    kind = effective_kind(transition, from_state, to_state)
    if (
        kind in END_TRANSITION_KINDS
        or is_routing_only(transition, to_state)
        or not transition.message_type
        or not transition.flow_type
    ):
        return ""

    parts: list[str] = []

    if transition.revision:
        parts.append(transition.revision)
        parts.append(transition.instrument or instrument.type)
        parts.append(transition.topic or topic.id)
    elif transition.instrument:
        parts.append(transition.instrument)
        parts.append(transition.topic or topic.id)
    elif transition.topic:
        parts.append(transition.topic)

    parts.append(transition.message_type)
    parts.append(transition.flow_type)

    return " ".join(parts)
