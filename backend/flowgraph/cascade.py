"""Edge clean-up that has to happen alongside node and handle removal.

Everything here is a pure function over the current edges, so the store can
work out the full change before touching its collections.
"""

from flowgraph.schema import button_handle, parse_button_handle


def edges_for_node(edges, node_id):
    """Ids of edges that start or end at ``node_id``."""
    return [e.id for e in edges if e.source == node_id or e.target == node_id]


def edges_for_handle(edges, node_id, handle):
    return [e.id for e in edges if e.source == node_id and e.source_handle == handle]


def stale_handle_edges(edges, node):
    """Ids of edges leaving ``node`` through a handle it no longer exposes."""
    handles = set(node.source_handles())
    return [e.id for e in edges if e.source == node.id and e.source_handle not in handles]


def reindex_after_button_removal(edges, node_id, index):
    """Map edge id -> new handle for edges on buttons after ``index``.

    Buttons after the removed one shift down by one position, and so do
    their handles, which keeps every edge on the button it was drawn from.
    """
    moves = {}
    for e in edges:
        if e.source != node_id:
            continue
        position = parse_button_handle(e.source_handle)
        if position is not None and position > index:
            moves[e.id] = button_handle(position - 1)
    return moves
