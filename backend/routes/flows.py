from datetime import datetime
from flask import Blueprint, current_app, request, jsonify
from pydantic import ValidationError
from sqlalchemy import or_
from extensions import db
from flowgraph import FlowGraph, InvalidSnapshot
from models import Flow, FlowVersion
from routes import (
    audit,
    editor_registry,
    load_graph,
    paginate_query,
    validate_required,
    validate_strings,
    validation_details,
)

flows_bp = Blueprint("flows", __name__, url_prefix="/api/v1")


def _graph_payload(flow_id, graph):
    data = graph.to_snapshot().to_dict()
    data["flow_id"] = flow_id
    return data


# ── Flows ─────────────────────────────────────────────────────

@flows_bp.get("/flows")
def list_flows():
    query = Flow.query
    if search := request.args.get("search", "").strip():
        query = query.filter(
            or_(Flow.name.ilike(f"%{search}%"), Flow.description.ilike(f"%{search}%"))
        )
    query = query.order_by(Flow.created_at.desc())

    flows, pagination = paginate_query(query)
    resp = jsonify({
        "data": [f.to_dict() for f in flows],
        "pagination": pagination,
    })
    resp.headers["X-Total-Count"] = pagination["total"]
    return resp


@flows_bp.post("/flows")
def create_flow():
    data = request.get_json(silent=True) or {}
    if err := validate_required(data, "name"):
        return err
    if err := validate_strings(data, "description"):
        return err
    if len(data["name"].strip()) > 255:
        return jsonify({"error": "Name must be 255 characters or fewer"}), 400

    flow = Flow(
        name=data["name"].strip(),
        description=(data.get("description") or "").strip() or None,
    )
    db.session.add(flow)
    db.session.flush()
    graph = editor_registry().open(flow.id)
    audit("flow.created", "flow", flow.id, {"name": flow.name})
    db.session.commit()

    result = flow.to_dict()
    result["graph"] = _graph_payload(flow.id, graph)
    return jsonify(result), 201


@flows_bp.get("/flows/<flow_id>")
def get_flow(flow_id):
    flow = Flow.query.get_or_404(flow_id)
    result = flow.to_dict()
    result["graph"] = _graph_payload(flow_id, load_graph(flow_id))
    return jsonify(result)


# ── Validate & save ───────────────────────────────────────────

@flows_bp.post("/flows/<flow_id>/validate")
def validate_flow(flow_id):
    graph = load_graph(flow_id)
    result = graph.validate()
    return jsonify({
        "valid": result.valid,
        "errors": result.errors,
        "suggestions": graph.suggestions() if result.valid else [],
    })


@flows_bp.post("/flows/<flow_id>/save")
def save_flow(flow_id):
    flow = Flow.query.get_or_404(flow_id)
    graph = load_graph(flow_id)

    result = graph.validate()
    if not result.valid:
        current_app.logger.info(
            "Save refused for flow %s: %d error(s)", flow_id, len(result.errors)
        )
        return jsonify({"error": "Cannot save flow", "errors": result.errors}), 422

    suggestions = graph.suggestions()
    snapshot = graph.to_snapshot()
    latest = flow.latest_version()
    version = FlowVersion(
        flow_id=flow_id,
        version_number=(latest.version_number + 1) if latest else 1,
        graph_data=snapshot.to_dict(),
        suggestions=suggestions,
        node_count=len(snapshot.nodes),
        edge_count=len(snapshot.edges),
    )
    db.session.add(version)
    flow.updated_at = datetime.utcnow()
    db.session.flush()
    audit("flow.saved", "flow_version", version.id, {
        "flow_id": flow_id,
        "version_number": version.version_number,
        "suggestion_count": len(suggestions),
    })
    db.session.commit()
    current_app.logger.info("Saved flow %s as version %d", flow_id, version.version_number)
    return jsonify(version.to_dict(include_graph=True)), 201


@flows_bp.get("/flows/<flow_id>/versions")
def list_versions(flow_id):
    Flow.query.get_or_404(flow_id)
    versions = (
        FlowVersion.query
        .filter_by(flow_id=flow_id)
        .order_by(FlowVersion.version_number.desc())
        .all()
    )
    return jsonify([v.to_dict() for v in versions])


# ── Import ────────────────────────────────────────────────────

@flows_bp.post("/flows/<flow_id>/import")
def import_flow(flow_id):
    """
    Replace the live graph with a snapshot in one step. The snapshot must
    already satisfy every graph invariant; nothing is repaired on the way in.

    Edges without a ``sourceHandle`` are read as ``source``. A node with
    buttons has no ``source`` handle, so such an edge from it is rejected
    and the error names the handles the node does have.
    """
    Flow.query.get_or_404(flow_id)
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a snapshot with nodes and edges"}), 400

    try:
        graph = FlowGraph.from_snapshot(data, logger=current_app.logger)
    except ValidationError as exc:
        return jsonify({"error": "Invalid snapshot", "details": validation_details(exc)}), 400
    except InvalidSnapshot as exc:
        return jsonify({"error": str(exc)}), 400

    editor_registry().replace(flow_id, graph)
    audit("flow.imported", "flow", flow_id, {
        "node_count": len(graph.nodes),
        "edge_count": len(graph.edges),
    })
    db.session.commit()
    return jsonify(_graph_payload(flow_id, graph))
