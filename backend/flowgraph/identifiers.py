"""Node and edge id allocation."""

import re
import uuid

NODE_ID_PATTERN = re.compile(r"^node_(\d+)$")


def node_number(node_id):
    """Return n for ids shaped like ``node_<n>`` (n > 0), else None."""
    match = NODE_ID_PATTERN.match(node_id)
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


def next_node_number(nodes):
    """Smallest positive n such that ``node_<n>`` is not taken.

    Freed numbers are reused, so deleting node_2 out of node_1..node_3 makes
    the next node node_2 again. The trigger id never matches the pattern.
    """
    used = {n for n in (node_number(node.id) for node in nodes) if n is not None}
    if not used:
        return 1
    highest = max(used)
    for candidate in range(1, highest + 1):
        if candidate not in used:
            return candidate
    return highest + 1


def next_node_id(nodes):
    return f"node_{next_node_number(nodes)}"


def new_edge_id():
    return str(uuid.uuid4())
