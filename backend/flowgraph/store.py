import logging
import threading

from flowgraph.cascade import (
    edges_for_handle,
    edges_for_node,
    reindex_after_button_removal,
    stale_handle_edges,
)
from flowgraph.connections import INVALID_SOURCE_HANDLE, check_connection
from flowgraph.errors import ButtonLimitReached, ConnectionRejected, InvalidNodeType, InvalidSnapshot
from flowgraph.identifiers import new_edge_id, next_node_id, node_number
from flowgraph.schema import (
    DEFAULT_SOURCE_HANDLE,
    MAX_BUTTONS,
    NODE_TYPES,
    TARGET_HANDLE,
    TRIGGER_NODE_ID,
    Button,
    Edge,
    FlowSnapshot,
    build_node,
    button_handle,
    default_trigger,
    parse_node_data,
)
from flowgraph.validation import compute_suggestions, validate_flow

module_logger = logging.getLogger(__name__)


class FlowGraph:
    """Nodes and edges of one flow being edited.

    All writes go through the methods below. Each one works out the complete
    change first and then swaps both collections in a single assignment, so
    nobody ever sees a removed node whose edges are still there. Writers hold
    ``_lock`` from the first read to the swap; request threads may share one
    graph.
    """

    def __init__(self, nodes=None, edges=None, logger=None):
        self.logger = logger or module_logger
        nodes = tuple(nodes) if nodes is not None else (default_trigger(),)
        edges = tuple(edges or ())
        check_invariants(nodes, edges)
        self._lock = threading.RLock()
        self._nodes = nodes
        self._edges = edges

    @classmethod
    def from_snapshot(cls, snapshot, logger=None):
        """Rebuild a graph from a FlowSnapshot or its dict form."""
        if not isinstance(snapshot, FlowSnapshot):
            snapshot = FlowSnapshot.model_validate(snapshot or {})
        return cls(snapshot.nodes, snapshot.edges, logger=logger)

    def to_snapshot(self):
        with self._lock:
            return FlowSnapshot(nodes=list(self._nodes), edges=list(self._edges))

    # ── Reads ────────────────────────────────────────────────

    @property
    def nodes(self):
        return list(self._nodes)

    @property
    def edges(self):
        return list(self._edges)

    @property
    def trigger(self):
        return self.get_node(TRIGGER_NODE_ID)

    def get_node(self, node_id):
        return next((n for n in self._nodes if n.id == node_id), None)

    def get_edge(self, edge_id):
        return next((e for e in self._edges if e.id == edge_id), None)

    # ── Nodes ────────────────────────────────────────────────

    def add_node(self, node_type, position=None):
        if node_type == "trigger":
            raise InvalidNodeType("A flow has exactly one trigger node; it cannot be added")
        if node_type not in NODE_TYPES:
            raise InvalidNodeType("Invalid node type. Must be one of: message, media")

        with self._lock:
            node = build_node(node_type, next_node_id(self._nodes), position)
            self._commit(self._nodes + (node,), self._edges)
        self.logger.debug("Added %s node %s", node_type, node.id)
        return node

    def update_node_data(self, node_id, data):
        """Replace a node's payload. Returns ids of edges dropped with it.

        Position and type never change. Shrinking the button list drops the
        edges on the buttons that went away.
        """
        with self._lock:
            node = self.get_node(node_id)
            if node is None:
                self.logger.debug("Ignoring update for unknown node %s", node_id)
                return []

            updated = node.model_copy(update={"data": parse_node_data(node.type, data)})
            return self._replace_node(updated)

    def remove_node(self, node_id):
        """Remove a node and every edge touching it. Returns removed edge ids."""
        if node_id == TRIGGER_NODE_ID:
            self.logger.debug("Refusing to delete the trigger node")
            return []

        with self._lock:
            if self.get_node(node_id) is None:
                self.logger.debug("Ignoring delete for unknown node %s", node_id)
                return []

            removed = edges_for_node(self._edges, node_id)
            self._commit(
                tuple(n for n in self._nodes if n.id != node_id),
                tuple(e for e in self._edges if e.id not in removed),
            )
        self.logger.debug("Removed node %s and %d edge(s)", node_id, len(removed))
        return removed

    # ── Buttons ──────────────────────────────────────────────

    def add_button(self, node_id, text=""):
        """Append a quick reply button. Returns ids of edges dropped with it.

        The first button replaces the node's default ``source`` handle, so an
        edge on that handle goes away.
        """
        with self._lock:
            node = self.get_node(node_id)
            if node is None:
                self.logger.debug("Ignoring button add for unknown node %s", node_id)
                return []
            if node.type == "trigger":
                raise InvalidNodeType("The trigger node has no quick reply buttons")
            if len(node.buttons) >= MAX_BUTTONS:
                raise ButtonLimitReached(f"A node can have at most {MAX_BUTTONS} buttons")

            data = node.data.model_copy(update={"buttons": node.buttons + [Button(text=text)]})
            return self._replace_node(node.model_copy(update={"data": data}))

    def remove_button(self, node_id, index):
        """Remove button ``index`` and the edge drawn from it.

        Edges on later buttons move down one handle with their button.
        """
        with self._lock:
            node = self.get_node(node_id)
            if node is None or not 0 <= index < len(node.buttons):
                self.logger.debug("Ignoring removal of button %s on node %s", index, node_id)
                return []

            buttons = node.buttons
            del buttons[index]
            updated = node.model_copy(
                update={"data": node.data.model_copy(update={"buttons": buttons})}
            )

            removed = edges_for_handle(self._edges, node_id, button_handle(index))
            moves = reindex_after_button_removal(self._edges, node_id, index)
            edges = []
            for e in self._edges:
                if e.id in removed:
                    continue
                if e.id in moves:
                    e = e.model_copy(update={"source_handle": moves[e.id]})
                edges.append(e)

            self._commit(self._swap_node(updated), tuple(edges))
        self.logger.debug(
            "Removed button %d on %s, dropped %d edge(s), moved %d",
            index, node_id, len(removed), len(moves),
        )
        return removed

    # ── Edges ────────────────────────────────────────────────

    def add_edge(self, source, source_handle, target, target_handle=TARGET_HANDLE):
        """Connect two nodes. Raises ConnectionRejected without changing anything."""
        source_handle = source_handle or DEFAULT_SOURCE_HANDLE
        target_handle = target_handle or TARGET_HANDLE
        with self._lock:
            reason = check_connection(
                {n.id: n for n in self._nodes}, self._edges,
                source, source_handle, target, target_handle,
            )
            if reason:
                self.logger.debug("Rejected edge %s/%s -> %s: %s", source, source_handle, target, reason)
                raise ConnectionRejected(reason)

            edge = Edge(
                id=new_edge_id(),
                source=source,
                target=target,
                source_handle=source_handle,
                target_handle=target_handle,
            )
            self._commit(self._nodes, self._edges + (edge,))
        return edge

    def remove_edge(self, edge_id):
        with self._lock:
            if self.get_edge(edge_id) is None:
                return False
            self._commit(self._nodes, tuple(e for e in self._edges if e.id != edge_id))
        return True

    # ── Checks ───────────────────────────────────────────────

    def validate(self):
        with self._lock:
            return validate_flow(self._nodes, self._edges)

    def suggestions(self):
        with self._lock:
            return compute_suggestions(self._nodes, self._edges)

    # ── Internals ────────────────────────────────────────────

    def _swap_node(self, updated):
        return tuple(updated if n.id == updated.id else n for n in self._nodes)

    def _replace_node(self, updated):
        removed = stale_handle_edges(self._edges, updated)
        self._commit(
            self._swap_node(updated),
            tuple(e for e in self._edges if e.id not in removed),
        )
        if removed:
            self.logger.debug("Dropped %d edge(s) on handles %s no longer has", len(removed), updated.id)
        return removed

    def _commit(self, nodes, edges):
        self._nodes, self._edges = nodes, edges


def check_invariants(nodes, edges):
    """Raise InvalidSnapshot unless ``nodes`` and ``edges`` form a legal graph."""
    triggers = [n for n in nodes if n.type == "trigger"]
    if len(triggers) != 1:
        raise InvalidSnapshot(f"A flow needs exactly one trigger node, found {len(triggers)}")
    if triggers[0].id != TRIGGER_NODE_ID:
        raise InvalidSnapshot(f"The trigger node must use the id {TRIGGER_NODE_ID!r}")

    nodes_by_id = {}
    for node in nodes:
        if node.id in nodes_by_id:
            raise InvalidSnapshot(f"Duplicate node id {node.id!r}")
        if node.type != "trigger" and node_number(node.id) is None:
            raise InvalidSnapshot(f"Node id {node.id!r} must look like node_<number>")
        nodes_by_id[node.id] = node

    accepted = []
    for edge in edges:
        if any(e.id == edge.id for e in accepted):
            raise InvalidSnapshot(f"Duplicate edge id {edge.id!r}")
        reason = check_connection(
            nodes_by_id, accepted,
            edge.source, edge.source_handle, edge.target, edge.target_handle,
        )
        if reason == INVALID_SOURCE_HANDLE:
            # Edges saved without a sourceHandle come in as "source"
            handles = ", ".join(nodes_by_id[edge.source].source_handles())
            raise InvalidSnapshot(
                f"Edge {edge.id!r}: node {edge.source!r} has no handle "
                f"{edge.source_handle!r} (available: {handles})"
            )
        if reason:
            raise InvalidSnapshot(f"Edge {edge.id!r}: {reason}")
        accepted.append(edge)
