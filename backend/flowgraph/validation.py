"""Save-time checks and improvement suggestions for a flow."""

from pydantic import BaseModel, Field

from flowgraph.schema import button_handle


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


def validate_flow(nodes, edges):
    """Check that every non-trigger node is reachable by at least one edge.

    An empty canvas or a lone node needs no wiring. Errors follow node
    insertion order, one per node whose target handle has no edge.
    """
    nodes = list(nodes)
    if len(nodes) <= 1:
        return ValidationResult(valid=True)

    targets = {e.target for e in edges}
    errors = [
        f"{node.label} node target handle is not connected"
        for node in nodes
        if node.has_target_handle and node.id not in targets
    ]
    return ValidationResult(valid=not errors, errors=errors)


def compute_suggestions(nodes, edges):
    """Advisory hints for labelled quick reply buttons that lead nowhere.

    Unlabelled buttons are treated as placeholders and skipped.
    """
    wired = {(e.source, e.source_handle) for e in edges}
    suggestions = []
    for node in nodes:
        for index, button in enumerate(node.buttons):
            text = button.text.strip()
            if not text or (node.id, button_handle(index)) in wired:
                continue
            suggestions.append(
                f'{node.label} node button "{text}" is not connected. '
                "Consider linking it to another node."
            )
    return suggestions
