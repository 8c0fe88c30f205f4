"""Fork expansion: rewrite a topic's edges so no Fork node remains.

Each Fork fans every incoming edge out to every outgoing edge. Only one level
is expanded; an edge whose endpoint is still a Fork after expansion (a
Fork-to-Fork chain) is dropped and reported by validation instead.
"""

import logging
from collections.abc import Callable

from ..models.diagram import Instrument, StateNode, TopicData, Transition
from .labels import transition_label
from .models import RenderTransition

logger = logging.getLogger(__name__)

LabelFunction = Callable[[Transition, StateNode | None, StateNode | None], str]


def expand_forks(
    states: list[StateNode],
    transitions: list[Transition],
    get_label: LabelFunction | None = None,
) -> list[RenderTransition]:
    """Flatten transitions through Fork nodes.

    Args:
        states: States of the topic
        transitions: Transitions of the topic
        get_label: Called with (transition, from_state, to_state); defaults
                   to a function returning an empty label

    Returns:
        Deduplicated render transitions, ordered as first seen: direct
        transitions first, then synthetic fork edges per fork in state order
    """
    if get_label is None:
        get_label = lambda transition, from_state, to_state: ""  # noqa: E731

    states_by_id = {state.id: state for state in states}
    fork_ids = [state.id for state in states if state.is_fork]
    fork_set = set(fork_ids)

    expanded: list[RenderTransition] = []
    seen: set[tuple[str, str, str]] = set()

    def add(from_id: str, to_id: str, label: str) -> None:
        if from_id in fork_set or to_id in fork_set:
            return
        edge = RenderTransition(from_id, to_id, label)
        if edge.key in seen:
            return
        seen.add(edge.key)
        expanded.append(edge)

    for transition in transitions:
        if transition.source in fork_set or transition.target in fork_set:
            continue
        label = get_label(
            transition,
            states_by_id.get(transition.source),
            states_by_id.get(transition.target),
        )
        add(transition.source, transition.target, label)

    for fork_id in fork_ids:
        incoming = [t for t in transitions if t.target == fork_id]
        outgoing = [t for t in transitions if t.source == fork_id]
        logger.debug(f"Expanding fork {fork_id}: {len(incoming)} in x {len(outgoing)} out")

        for incoming_transition in incoming:
            for outgoing_transition in outgoing:
                # The label comes from the outgoing edge; the incoming one is routing-only
                label = get_label(
                    outgoing_transition,
                    states_by_id.get(outgoing_transition.source),
                    states_by_id.get(outgoing_transition.target),
                )
                add(incoming_transition.source, outgoing_transition.target, label)

    return expanded


def topic_render_transitions(topic_data: TopicData, instrument: Instrument) -> list[RenderTransition]:
    """Expand a topic's transitions with labels computed for that topic."""
    return expand_forks(
        topic_data.states,
        topic_data.transitions,
        lambda transition, from_state, to_state: transition_label(
            transition, instrument, topic_data.topic, to_state=to_state, from_state=from_state
        ),
    )
