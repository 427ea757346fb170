import uuid
from datetime import datetime
from extensions import db


class Flow(db.Model):
    __tablename__ = "flows"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def latest_version(self):
        return (
            FlowVersion.query
            .filter_by(flow_id=self.id)
            .order_by(FlowVersion.version_number.desc())
            .first()
        )

    def to_dict(self):
        latest = self.latest_version()
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "latest_version": latest.to_dict() if latest else None,
        }


class FlowVersion(db.Model):
    """A snapshot written by a successful save."""

    __tablename__ = "flow_versions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    flow_id = db.Column(db.String(36), db.ForeignKey("flows.id"), nullable=False)
    version_number = db.Column(db.Integer, nullable=False)
    graph_data = db.Column(db.JSON, nullable=False, default=lambda: {"nodes": [], "edges": []})
    suggestions = db.Column(db.JSON, nullable=True, default=list)
    node_count = db.Column(db.Integer, default=0)
    edge_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self, include_graph=False):
        data = {
            "id": self.id,
            "flow_id": self.flow_id,
            "version_number": self.version_number,
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "suggestions": self.suggestions or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_graph:
            data["graph_data"] = self.graph_data
        return data


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action = db.Column(db.String(100), nullable=False)
    resource_type = db.Column(db.String(50), nullable=True)
    resource_id = db.Column(db.String(36), nullable=True)
    actor_id = db.Column(db.String(100), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
