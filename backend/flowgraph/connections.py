"""Connection rules for drawing edges between nodes."""

from flowgraph.schema import TARGET_HANDLE

ONE_OUTGOING_CONNECTION = "A node can only have one outgoing connection from its source handle."
UNKNOWN_SOURCE = "The source node does not exist."
UNKNOWN_TARGET = "The target node does not exist."
TRIGGER_AS_TARGET = "The trigger node cannot receive incoming connections."
INVALID_TARGET_HANDLE = "Connections must end on the target handle of a node."
INVALID_SOURCE_HANDLE = "The source node has no such outgoing handle."


def handle_in_use(edges, source, source_handle):
    return any(e.source == source and e.source_handle == source_handle for e in edges)


def check_connection(nodes_by_id, edges, source, source_handle, target, target_handle=TARGET_HANDLE):
    """Return None if the edge may be added, otherwise the reason it may not.

    Self-loops and cycles are allowed. A source handle drives at most one
    edge, so a second connection from the same ``(source, source_handle)``
    is refused.
    """
    source_node = nodes_by_id.get(source)
    if source_node is None:
        return UNKNOWN_SOURCE
    target_node = nodes_by_id.get(target)
    if target_node is None:
        return UNKNOWN_TARGET
    if not target_node.has_target_handle:
        return TRIGGER_AS_TARGET
    if target_handle != TARGET_HANDLE:
        return INVALID_TARGET_HANDLE
    if source_handle not in source_node.source_handles():
        return INVALID_SOURCE_HANDLE
    if handle_in_use(edges, source, source_handle):
        return ONE_OUTGOING_CONNECTION
    return None
