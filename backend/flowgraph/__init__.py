from flowgraph.errors import (
    ButtonLimitReached,
    ConnectionRejected,
    FlowGraphError,
    InvalidNodeType,
    InvalidSnapshot,
)
from flowgraph.registry import EditorRegistry
from flowgraph.schema import TRIGGER_NODE_ID, Edge, FlowSnapshot, Node
from flowgraph.store import FlowGraph
from flowgraph.validation import ValidationResult, compute_suggestions, validate_flow

__all__ = [
    "ButtonLimitReached",
    "ConnectionRejected",
    "EditorRegistry",
    "Edge",
    "FlowGraph",
    "FlowGraphError",
    "FlowSnapshot",
    "InvalidNodeType",
    "InvalidSnapshot",
    "Node",
    "TRIGGER_NODE_ID",
    "ValidationResult",
    "compute_suggestions",
    "validate_flow",
]
