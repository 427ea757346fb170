from flask import Blueprint, current_app, request, jsonify
from pydantic import ValidationError
from flowgraph import ButtonLimitReached, ConnectionRejected, InvalidNodeType
from flowgraph.schema import DEFAULT_SOURCE_HANDLE, TARGET_HANDLE
from routes import load_graph, validate_required, validate_strings, validation_details

editor_bp = Blueprint("editor", __name__, url_prefix="/api/v1/flows/<flow_id>")


def _node_dict(node):
    return node.model_dump(mode="json", by_alias=True)


# ── Nodes ─────────────────────────────────────────────────────

@editor_bp.post("/nodes")
def create_node(flow_id):
    graph = load_graph(flow_id)
    data = request.get_json(silent=True) or {}
    if err := validate_required(data, "type"):
        return err

    try:
        node = graph.add_node(data["type"], data.get("position"))
    except InvalidNodeType as exc:
        return jsonify({"error": str(exc)}), 400
    except ValidationError as exc:
        return jsonify({"error": "Invalid position", "details": validation_details(exc)}), 400
    return jsonify(_node_dict(node)), 201


@editor_bp.put("/nodes/<node_id>")
def update_node(flow_id, node_id):
    graph = load_graph(flow_id)
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("data"), dict):
        return jsonify({"error": "Missing required fields: data"}), 400

    try:
        removed = graph.update_node_data(node_id, data["data"])
    except ValidationError as exc:
        return jsonify({"error": "Invalid node data", "details": validation_details(exc)}), 400

    node = graph.get_node(node_id)
    return jsonify({
        "node": _node_dict(node) if node else None,
        "removed_edge_ids": removed,
    })


@editor_bp.delete("/nodes/<node_id>")
def delete_node(flow_id, node_id):
    graph = load_graph(flow_id)
    existed = graph.get_node(node_id) is not None
    removed = graph.remove_node(node_id)
    return jsonify({
        "deleted": existed and graph.get_node(node_id) is None,
        "removed_edge_ids": removed,
    })


# ── Quick reply buttons ───────────────────────────────────────

@editor_bp.post("/nodes/<node_id>/buttons")
def add_button(flow_id, node_id):
    graph = load_graph(flow_id)
    data = request.get_json(silent=True) or {}
    if graph.get_node(node_id) is None:
        return jsonify({"error": "Node not found"}), 404

    try:
        removed = graph.add_button(node_id, str(data.get("text") or ""))
    except (InvalidNodeType, ButtonLimitReached) as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({
        "node": _node_dict(graph.get_node(node_id)),
        "removed_edge_ids": removed,
    }), 201


@editor_bp.delete("/nodes/<node_id>/buttons/<int:index>")
def remove_button(flow_id, node_id, index):
    graph = load_graph(flow_id)
    removed = graph.remove_button(node_id, index)
    node = graph.get_node(node_id)
    return jsonify({
        "node": _node_dict(node) if node else None,
        "removed_edge_ids": removed,
    })


# ── Edges ─────────────────────────────────────────────────────

@editor_bp.post("/edges")
def create_edge(flow_id):
    graph = load_graph(flow_id)
    data = request.get_json(silent=True) or {}
    if err := validate_required(data, "source", "target"):
        return err
    if err := validate_strings(data, "sourceHandle", "targetHandle"):
        return err

    try:
        edge = graph.add_edge(
            data["source"],
            data.get("sourceHandle") or DEFAULT_SOURCE_HANDLE,
            data["target"],
            data.get("targetHandle") or TARGET_HANDLE,
        )
    except ConnectionRejected as exc:
        current_app.logger.info("Connection rejected in flow %s: %s", flow_id, exc.reason)
        return jsonify({"error": exc.reason}), 409
    return jsonify(edge.model_dump(mode="json", by_alias=True)), 201


@editor_bp.delete("/edges/<edge_id>")
def delete_edge(flow_id, edge_id):
    graph = load_graph(flow_id)
    return jsonify({"deleted": graph.remove_edge(edge_id)})
