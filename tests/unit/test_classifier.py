"""Tests for transition classification."""

import pytest

from topicflow.classifier import classify, effective_kind, is_routing_only
from topicflow.models.diagram import StateNode, SystemNodeType, Transition, TransitionKind


def node(node_type=None, state_id=None):
    if node_type is None:
        return StateNode(id=state_id or "plain", label="Plain")
    return StateNode(id=state_id or node_type.value, is_system_node=True, system_node_type=node_type)


class TestClassify:
    """Test classify."""

    @pytest.mark.parametrize("from_type,to_type,expected", [
        (SystemNodeType.NEW_INSTRUMENT, None, TransitionKind.START_INSTRUMENT),
        (SystemNodeType.TOPIC_START, None, TransitionKind.START_TOPIC),
        (None, SystemNodeType.TOPIC_END, TransitionKind.END_TOPIC),
        (None, SystemNodeType.INSTRUMENT_END, TransitionKind.END_INSTRUMENT),
        (None, None, TransitionKind.NORMAL),
        (None, SystemNodeType.FORK, TransitionKind.NORMAL),
    ])
    def test_kinds(self, from_type, to_type, expected):
        assert classify(node(from_type), node(to_type)) == expected

    def test_source_rules_win(self):
        """A transition leaving NewInstrument stays startInstrument even into TopicEnd."""
        kind = classify(node(SystemNodeType.NEW_INSTRUMENT), node(SystemNodeType.TOPIC_END))
        assert kind == TransitionKind.START_INSTRUMENT

    def test_missing_endpoint_is_normal(self):
        assert classify(None, node(SystemNodeType.TOPIC_END)) == TransitionKind.NORMAL
        assert classify(node(SystemNodeType.TOPIC_START), None) == TransitionKind.NORMAL

    def test_topic_end_marker_does_not_change_kind(self):
        marked = StateNode(id="done", label="Done", topic_end_kind="positive")
        assert classify(node(), marked) == TransitionKind.NORMAL


class TestRoutingAndEffectiveKind:
    """Test routing-only detection and effective kind."""

    def test_routing_only_from_target(self):
        transition = Transition(id="t", source="a", target="f")
        assert is_routing_only(transition, node(SystemNodeType.FORK, "f"))
        assert not is_routing_only(transition, node())

    def test_routing_only_falls_back_to_stored_flag(self):
        assert is_routing_only(Transition(id="t", source="a", target="f", is_routing_only=True))
        assert not is_routing_only(Transition(id="t", source="a", target="f"))

    def test_effective_kind_prefers_endpoints(self):
        stale = Transition(id="t", source="TopicStart", target="x", kind=TransitionKind.END_TOPIC)
        assert effective_kind(stale, node(SystemNodeType.TOPIC_START), node()) == TransitionKind.START_TOPIC

    def test_effective_kind_uses_stored_kind_for_dangling_endpoint(self):
        stored = Transition(id="t", source="a", target="gone", kind=TransitionKind.END_TOPIC)
        assert effective_kind(stored, node(), None) == TransitionKind.END_TOPIC
