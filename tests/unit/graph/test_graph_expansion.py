"""Tests for fork expansion."""

from topicflow.graph.expansion import expand_forks, topic_render_transitions
from topicflow.graph.models import RenderTransition
from topicflow.models.diagram import Instrument, StateNode, SystemNodeType, TopicData, Transition


def state(state_id):
    return StateNode(id=state_id, label=state_id.title())


def fork(state_id="F"):
    return StateNode(id=state_id, label="Fork", is_system_node=True, system_node_type=SystemNodeType.FORK)


def edge(transition_id, source, target, message_type=None):
    return Transition(id=transition_id, source=source, target=target, message_type=message_type, flow_type="B2B")


def message_label(transition, from_state, to_state):
    return transition.message_type or ""


class TestExpandForks:
    """Test expand_forks."""

    def test_two_in_three_out(self):
        states = [state("a"), state("b"), fork(), state("x"), state("y"), state("z")]
        transitions = [
            edge("i1", "a", "F"), edge("i2", "b", "F"),
            edge("o1", "F", "x", "M1"), edge("o2", "F", "y", "M2"), edge("o3", "F", "z", "M3"),
        ]

        expanded = expand_forks(states, transitions, message_label)

        assert len(expanded) == 6
        assert all("F" not in (t.from_id, t.to_id) for t in expanded)
        assert RenderTransition("a", "x", "M1") in expanded
        assert RenderTransition("b", "z", "M3") in expanded

    def test_label_comes_from_outgoing_edge(self):
        states = [state("a"), fork(), state("x")]
        transitions = [edge("i1", "a", "F", "IGNORED"), edge("o1", "F", "x", "OUT")]

        assert expand_forks(states, transitions, message_label) == [RenderTransition("a", "x", "OUT")]

    def test_no_forks_returns_original_edges(self):
        states = [state("a"), state("b"), state("c")]
        transitions = [edge("t1", "a", "b", "M1"), edge("t2", "b", "c", "M2")]

        expanded = expand_forks(states, transitions, message_label)

        assert expanded == [RenderTransition("a", "b", "M1"), RenderTransition("b", "c", "M2")]
        assert expand_forks(states, transitions, message_label) == expanded

    def test_duplicates_collapse(self):
        states = [state("a"), fork(), state("x")]
        transitions = [
            edge("direct", "a", "x", "M"),
            edge("i1", "a", "F"),
            edge("o1", "F", "x", "M"),
        ]

        assert expand_forks(states, transitions, message_label) == [RenderTransition("a", "x", "M")]

    def test_default_label_is_empty(self):
        expanded = expand_forks([state("a"), state("b")], [edge("t", "a", "b", "M")])
        assert expanded == [RenderTransition("a", "b", "")]

    def test_fork_without_outgoing_produces_nothing(self):
        states = [state("a"), fork()]
        assert expand_forks(states, [edge("i1", "a", "F")]) == []

    def test_chained_forks_are_dropped(self):
        states = [state("a"), fork("F1"), fork("F2"), state("x")]
        transitions = [edge("i", "a", "F1"), edge("mid", "F1", "F2"), edge("o", "F2", "x", "M")]

        assert expand_forks(states, transitions, message_label) == []


class TestTopicRenderTransitions:
    """Test labelled expansion for a topic."""

    def test_labels_use_topic_context(self, project):
        topic_data = project.find_topic("ROOT")
        expanded = topic_render_transitions(topic_data, project.instrument)

        assert [t.label for t in expanded] == ["MSG B2B", "DONE C2C"]

    def test_routing_only_edge_into_fork_is_not_labelled(self):
        topic_data = TopicData.model_validate({
            "topic": {"id": "T"},
            "states": [
                {"id": "TopicStart", "isSystemNode": True, "systemNodeType": "TopicStart"},
                {"id": "F", "isSystemNode": True, "systemNodeType": "Fork"},
                {"id": "a", "label": "A"},
            ],
            "transitions": [
                {"id": "in", "from": "TopicStart", "to": "F", "messageType": "X", "flowType": "B2B"},
                {"id": "out", "from": "F", "to": "a", "messageType": "GO", "flowType": "B2B"},
            ],
        })

        expanded = topic_render_transitions(topic_data, Instrument(type="I", revision="R1"))

        assert expanded == [RenderTransition("TopicStart", "a", "GO B2B")]
