"""Tests for FlowGraph mutations and the invariants they keep."""

import threading
import time

import pytest
from pydantic import ValidationError

from flowgraph import ButtonLimitReached, ConnectionRejected, FlowGraph, InvalidNodeType, InvalidSnapshot
from flowgraph import store
from flowgraph.connections import (
    INVALID_SOURCE_HANDLE,
    ONE_OUTGOING_CONNECTION,
    TRIGGER_AS_TARGET,
    UNKNOWN_TARGET,
)
from flowgraph.schema import MediaType, TriggerEvent


def _handles(graph, node_id):
    return sorted(e.source_handle for e in graph.edges if e.source == node_id)


class TestNodes:
    def test_new_graph_has_only_the_trigger(self, graph):
        assert [n.id for n in graph.nodes] == ["trigger_1"]
        assert graph.trigger.data.trigger_event == TriggerEvent.keyword
        assert graph.trigger.data.keywords == []
        assert graph.edges == []

    def test_add_message_node_defaults(self, graph):
        node = graph.add_node("message", {"x": 10, "y": 20})
        assert node.id == "node_1"
        assert node.type == "message"
        assert node.position.x == 10
        assert node.data.message == ""
        assert node.data.buttons == []

    def test_add_media_node_defaults(self, graph):
        node = graph.add_node("media")
        assert node.data.media_type == MediaType.image
        assert node.data.media_url == ""
        assert node.data.caption == ""
        assert node.data.buttons == []
        assert node.data.content_blocks == []

    def test_trigger_cannot_be_added(self, graph):
        with pytest.raises(InvalidNodeType):
            graph.add_node("trigger")
        assert len(graph.nodes) == 1

    def test_unknown_type_is_refused(self, graph):
        with pytest.raises(InvalidNodeType):
            graph.add_node("webhook")

    def test_ids_are_reused_after_deletion(self, graph):
        for _ in range(3):
            graph.add_node("message")
        graph.remove_node("node_2")
        assert graph.add_node("message").id == "node_2"
        assert graph.add_node("media").id == "node_4"

    def test_update_replaces_data_and_keeps_position(self, graph):
        node = graph.add_node("message", {"x": 5, "y": 6})
        graph.update_node_data(node.id, {"message": "Hi there", "buttons": [{"text": "Yes"}]})

        updated = graph.get_node(node.id)
        assert updated.type == "message"
        assert updated.position == node.position
        assert updated.data.message == "Hi there"
        assert [b.text for b in updated.data.buttons] == ["Yes"]

    def test_update_unknown_node_is_a_no_op(self, graph):
        before = graph.to_snapshot()
        assert graph.update_node_data("node_99", {"message": "x"}) == []
        assert graph.to_snapshot() == before

    def test_update_rejects_more_than_three_buttons(self, graph):
        node = graph.add_node("message")
        with pytest.raises(ValidationError):
            graph.update_node_data(node.id, {"buttons": [{"text": str(i)} for i in range(4)]})
        assert graph.get_node(node.id).data.buttons == []

    def test_update_rejects_payload_of_another_type(self, graph):
        node = graph.add_node("message")
        with pytest.raises(ValidationError):
            graph.update_node_data(node.id, {"mediaType": "video"})

    def test_trigger_keywords_are_cleaned(self, graph):
        graph.update_node_data("trigger_1", {
            "triggerEvent": "keyword",
            "keywords": [" hello ", "hello", "", "pricing"],
        })
        assert graph.trigger.data.keywords == ["hello", "pricing"]

    def test_remove_node_drops_incident_edges(self, wired_graph):
        removed = wired_graph.remove_node("node_1")
        assert len(removed) == 2
        assert wired_graph.get_node("node_1") is None
        assert all("node_1" not in (e.source, e.target) for e in wired_graph.edges)

    def test_trigger_cannot_be_removed(self, wired_graph):
        before = wired_graph.to_snapshot()
        assert wired_graph.remove_node("trigger_1") == []
        assert wired_graph.to_snapshot() == before

    def test_remove_unknown_node_is_a_no_op(self, wired_graph):
        assert wired_graph.remove_node("node_42") == []
        assert len(wired_graph.nodes) == 3


class TestEdges:
    def test_second_edge_from_same_handle_is_rejected(self, graph):
        a = graph.add_node("message")
        b = graph.add_node("message")
        graph.add_edge("trigger_1", "source", a.id)
        edges_before = graph.edges

        with pytest.raises(ConnectionRejected) as exc_info:
            graph.add_edge("trigger_1", "source", b.id)
        assert exc_info.value.reason == ONE_OUTGOING_CONNECTION
        assert graph.edges == edges_before

        # Rejection is repeatable and still changes nothing
        with pytest.raises(ConnectionRejected):
            graph.add_edge("trigger_1", "source", b.id)
        assert graph.edges == edges_before

    def test_self_loops_and_cycles_are_allowed(self, graph):
        a = graph.add_node("message")
        b = graph.add_node("message")
        graph.add_edge(a.id, "source", a.id)
        graph.update_node_data(b.id, {"buttons": [{"text": "again"}]})
        graph.add_edge(b.id, "button-0", a.id)
        assert len(graph.edges) == 2

    def test_distinct_handles_may_target_the_same_node(self, graph):
        a = graph.add_node("message")
        b = graph.add_node("message")
        graph.update_node_data(a.id, {"buttons": [{"text": "Yes"}, {"text": "No"}]})
        graph.add_edge(a.id, "button-0", b.id)
        graph.add_edge(a.id, "button-1", b.id)
        assert _handles(graph, a.id) == ["button-0", "button-1"]

    def test_trigger_cannot_be_a_target(self, graph):
        a = graph.add_node("message")
        with pytest.raises(ConnectionRejected) as exc_info:
            graph.add_edge(a.id, "source", "trigger_1")
        assert exc_info.value.reason == TRIGGER_AS_TARGET

    def test_unknown_target_is_rejected(self, graph):
        with pytest.raises(ConnectionRejected) as exc_info:
            graph.add_edge("trigger_1", "source", "node_7")
        assert exc_info.value.reason == UNKNOWN_TARGET

    def test_source_handle_must_exist(self, graph):
        a = graph.add_node("message")
        b = graph.add_node("message")
        with pytest.raises(ConnectionRejected) as exc_info:
            graph.add_edge(a.id, "button-0", b.id)
        assert exc_info.value.reason == INVALID_SOURCE_HANDLE

        graph.update_node_data(a.id, {"buttons": [{"text": "Yes"}]})
        with pytest.raises(ConnectionRejected):
            graph.add_edge(a.id, "source", b.id)

    def test_remove_edge(self, wired_graph):
        edge = wired_graph.edges[0]
        assert wired_graph.remove_edge(edge.id) is True
        assert wired_graph.get_edge(edge.id) is None
        assert wired_graph.remove_edge(edge.id) is False


class TestButtons:
    def _node_with_buttons(self, graph, *labels):
        node = graph.add_node("message")
        graph.update_node_data(node.id, {"buttons": [{"text": t} for t in labels]})
        return node

    def test_first_button_drops_default_source_edge(self, wired_graph):
        removed = wired_graph.add_button("node_1", "Yes")
        assert len(removed) == 1
        assert _handles(wired_graph, "node_1") == []
        assert wired_graph.get_node("node_1").source_handles() == ["button-0"]

    def test_button_limit(self, graph):
        node = self._node_with_buttons(graph, "a", "b", "c")
        with pytest.raises(ButtonLimitReached):
            graph.add_button(node.id, "d")

    def test_trigger_has_no_buttons(self, graph):
        with pytest.raises(InvalidNodeType):
            graph.add_button("trigger_1")

    def test_remove_button_drops_its_edge(self, graph):
        node = self._node_with_buttons(graph, "Yes", "No")
        target = graph.add_node("message")
        graph.add_edge(node.id, "button-0", target.id)

        removed = graph.remove_button(node.id, 0)
        assert len(removed) == 1
        assert not any(
            e.source == node.id and e.source_handle == "button-0" for e in graph.edges
        )

    def test_later_edges_follow_their_button(self, graph):
        node = self._node_with_buttons(graph, "Yes", "Maybe", "No")
        maybe = graph.add_node("message")
        no = graph.add_node("message")
        graph.add_edge(node.id, "button-1", maybe.id)
        no_edge = graph.add_edge(node.id, "button-2", no.id)

        graph.remove_button(node.id, 0)

        assert [b.text for b in graph.get_node(node.id).buttons] == ["Maybe", "No"]
        moved = graph.get_edge(no_edge.id)
        assert moved.source_handle == "button-1"
        assert moved.target == no.id
        assert _handles(graph, node.id) == ["button-0", "button-1"]

    def test_remove_button_out_of_range_is_a_no_op(self, graph):
        node = self._node_with_buttons(graph, "Yes")
        assert graph.remove_button(node.id, 3) == []
        assert graph.remove_button("node_99", 0) == []
        assert len(graph.get_node(node.id).buttons) == 1

    def test_shrinking_buttons_through_update_drops_edges(self, graph):
        node = self._node_with_buttons(graph, "Yes", "No")
        target = graph.add_node("message")
        graph.add_edge(node.id, "button-0", target.id)
        second = graph.add_edge(node.id, "button-1", target.id)

        removed = graph.update_node_data(node.id, {"buttons": [{"text": "Yes"}]})
        assert removed == [second.id]
        assert _handles(graph, node.id) == ["button-0"]

    def test_first_button_through_update_drops_default_source_edge(self, graph):
        node = graph.add_node("message")
        target = graph.add_node("message")
        edge = graph.add_edge(node.id, "source", target.id)

        removed = graph.update_node_data(node.id, {"buttons": [{"text": "Yes"}]})
        assert removed == [edge.id]
        assert graph.edges == []
        assert graph.get_node(node.id).source_handles() == ["button-0"]


def test_graph_refuses_illegal_starting_state():
    with pytest.raises(InvalidSnapshot):
        FlowGraph(nodes=[])


class TestConcurrentWrites:
    def test_racing_edges_on_one_handle_commit_once(self, graph, monkeypatch):
        first = graph.add_node("message")
        second = graph.add_node("message")

        real_check = store.check_connection

        def check_then_pause(*args, **kwargs):
            reason = real_check(*args, **kwargs)
            time.sleep(0.05)
            return reason

        monkeypatch.setattr(store, "check_connection", check_then_pause)
        start = threading.Barrier(2)
        rejections = []

        def connect(target):
            start.wait()
            try:
                graph.add_edge("trigger_1", "source", target)
            except ConnectionRejected as exc:
                rejections.append(exc.reason)

        threads = [threading.Thread(target=connect, args=(n.id,)) for n in (first, second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert rejections == [ONE_OUTGOING_CONNECTION]
        assert _handles(graph, "trigger_1") == ["source"]
