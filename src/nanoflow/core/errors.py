"""
Workflow Errors - Exception taxonomy for validation and execution.

Validation errors are collected and reported together before anything
runs. Execution errors abort the run at the node that raised them.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for workflow errors."""
    pass


# --- Validation-time ---

class ValidationError(WorkflowError):
    """A problem found before execution starts."""
    pass


class CyclicGraphError(ValidationError):
    """The graph contains a cycle."""

    def __init__(self, message: str = "Graph contains a cycle - nodes cannot be connected in a loop"):
        super().__init__(message)


class UnconnectedInputError(ValidationError):
    """A node that needs an input has no incoming connection."""

    def __init__(self, node_kind: str, node_id: str | None = None):
        self.node_kind = node_kind
        self.node_id = node_id
        super().__init__(f"{node_kind} node requires at least one input connection")


# --- Execution-time ---

class ExecutionError(WorkflowError):
    """A node failed while running. Fatal to the run."""
    pass


class MissingInputError(ExecutionError):
    """A required input value was not available."""
    pass


class EmptyWorkloadError(ExecutionError):
    """A batch-style node had nothing to process."""
    pass


class UnknownNodeKindError(ExecutionError):
    """No executor is registered for a node kind."""

    def __init__(self, node_kind: str):
        self.node_kind = node_kind
        super().__init__(f"Unknown node type: {node_kind}")


class BackendError(ExecutionError):
    """The generation provider failed, timed out, or returned nothing usable."""
    pass
