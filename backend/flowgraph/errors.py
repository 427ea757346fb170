class FlowGraphError(Exception):
    """Base class for errors raised by the flow graph core."""


class ConnectionRejected(FlowGraphError):
    """A proposed edge breaks a connection rule. Nothing was changed."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class InvalidNodeType(FlowGraphError, ValueError):
    pass


class ButtonLimitReached(FlowGraphError, ValueError):
    pass


class InvalidSnapshot(FlowGraphError, ValueError):
    """A snapshot could not be loaded without breaking graph invariants."""
