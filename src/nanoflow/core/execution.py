"""
Execution Engine - Async workflow execution.

This module provides the engine that runs node graphs with per-node
status reporting, result caching and cancellation support.

A run goes: validate -> reset every node to idle -> topological order ->
for each node: running, resolve inputs, cache lookup or execute,
complete. The first failing node aborts the run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from uuid import UUID, uuid4

from nanoflow.core.cache import NodeCache
from nanoflow.core.errors import BackendError, UnknownNodeKindError, WorkflowError
from nanoflow.core.graph import Node, NodeGraph, NodeId, NodeStatus
from nanoflow.core.node_types import NodeRegistry
from nanoflow.core.resolver import resolve_inputs
from nanoflow.core.scheduler import execution_order
from nanoflow.core.settings import EngineSettings
from nanoflow.core.validation import ValidationResult, validate


logger = logging.getLogger(__name__)


class ExecutionStatus(Enum):
    """Outcome of a run."""
    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()
    INVALID = auto()


@dataclass
class NodeUpdate:
    """
    A node status transition, sent to listeners and applied to the node.

    `cached` is set on completion to say whether the result came from
    the cache; it is mirrored into the node config as `_cached`.
    """
    status: NodeStatus
    result: Any = None
    error: str | None = None
    cached: bool | None = None

    def apply(self, node: Node) -> None:
        node.status = self.status
        if self.status == NodeStatus.COMPLETE:
            node.result = self.result
            node.error = None
        elif self.status == NodeStatus.ERROR:
            node.error = self.error
        else:
            node.error = None

        if self.status == NodeStatus.IDLE:
            node.config.pop("_cached", None)
        elif self.cached is not None:
            node.config["_cached"] = self.cached


NodeUpdateListener = Callable[[NodeId, NodeUpdate], None]


@dataclass
class ExecutionResult:
    """Summary of a finished run."""
    success: bool
    status: ExecutionStatus
    error: str | None = None
    errors: list[str] = field(default_factory=list)
    failed_node: NodeId | None = None
    results: dict[NodeId, Any] = field(default_factory=dict)
    started_at: float | None = None
    completed_at: float | None = None

    @property
    def duration(self) -> float:
        if self.started_at is None or self.completed_at is None:
            return 0.0
        return self.completed_at - self.started_at


class ExecutionContext:
    """
    Context passed to node executors during execution.

    Provides access to:
    - The generation provider (through `call`, which bounds and wraps it)
    - Results produced so far this run
    - The node currently executing
    - Cancellation checking
    """

    def __init__(
        self,
        job_id: UUID,
        provider: Any = None,
        timeout: float | None = None,
        external_cancelled: Callable[[], bool] | None = None,
    ):
        self.job_id = job_id
        self.provider = provider
        self.timeout = timeout or None
        self.results: dict[NodeId, Any] = {}
        self.current_node: Node | None = None
        self._external_cancelled = external_cancelled
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        """True once `cancel` was called or the external predicate fired."""
        return self._cancelled or bool(self._external_cancelled and self._external_cancelled())

    def cancel(self) -> None:
        self._cancelled = True

    def check_cancelled(self) -> None:
        """Raise if cancelled."""
        if self.is_cancelled:
            raise asyncio.CancelledError("Execution cancelled")

    async def call(self, operation: str, *args: Any) -> Any:
        """
        Invoke a provider operation with the run's timeout.

        Raises:
            BackendError: No provider, timeout, or any provider failure.
        """
        self.check_cancelled()
        if self.provider is None:
            raise BackendError("No generation provider configured")

        method = getattr(self.provider, operation)
        try:
            return await asyncio.wait_for(method(*args), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise BackendError(f"Provider {operation} timed out after {self.timeout:g}s") from e
        except WorkflowError:
            raise
        except Exception as e:
            raise BackendError(str(e) or type(e).__name__) from e


class ExecutionEngine:
    """
    Async execution engine for node graphs.

    Features:
    - Validation gate before a full run
    - Strictly ordered, one-node-at-a-time execution
    - Content-addressed result caching
    - Per-node status listeners
    - Cancellation support
    """

    def __init__(
        self,
        provider: Any = None,
        cache: NodeCache | None = None,
        registry: NodeRegistry | None = None,
        settings: EngineSettings | None = None,
        on_node_update: NodeUpdateListener | None = None,
        external_cancelled: Callable[[], bool] | None = None,
    ):
        if registry is None:
            from nanoflow.nodes import register_all_nodes

            register_all_nodes()
            registry = NodeRegistry.instance()

        self.provider = provider
        self.cache = cache
        self.registry = registry
        self.settings = settings or EngineSettings()
        self._external_cancelled = external_cancelled
        self._listeners: list[NodeUpdateListener] = []
        if on_node_update is not None:
            self._listeners.append(on_node_update)

        self._current_context: ExecutionContext | None = None
        self._current_task: asyncio.Future | None = None

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, listener: NodeUpdateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NodeUpdateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, node: Node, update: NodeUpdate) -> None:
        update.apply(node)
        for listener in list(self._listeners):
            listener(node.id, update)

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def validate(self, graph: NodeGraph) -> ValidationResult:
        return validate(graph, self.registry)

    @property
    def is_running(self) -> bool:
        return self._current_context is not None

    async def run(self, graph: NodeGraph, use_cache: bool | None = None) -> ExecutionResult:
        """
        Execute a whole workflow.

        Invalid graphs are refused without touching any node status.

        Args:
            graph: The node graph to execute
            use_cache: Override `settings.use_cache` for this run

        Returns:
            The run outcome; failures are reported here, not raised
        """
        started = time.time()

        validation = self.validate(graph)
        if not validation.valid:
            message = validation.summary()
            logger.warning("Workflow %r is invalid: %s", graph.name, message)
            return ExecutionResult(
                success=False,
                status=ExecutionStatus.INVALID,
                error=message,
                errors=validation.messages,
                started_at=started,
                completed_at=time.time(),
            )

        for node in graph.node_list():
            self._emit(node, NodeUpdate(NodeStatus.IDLE))

        order = execution_order(graph.node_list(), graph.connections)
        logger.info("Running workflow %r (%d nodes)", graph.name, len(order))
        return await self._execute(graph, order, use_cache, started)

    async def run_to_node(
        self,
        graph: NodeGraph,
        node_id: NodeId,
        use_cache: bool | None = None,
    ) -> ExecutionResult:
        """
        Execute one node and everything it depends on.

        No validation gate and no reset of unrelated nodes.
        """
        started = time.time()

        if graph.get_node(node_id) is None:
            return ExecutionResult(
                success=False,
                status=ExecutionStatus.FAILED,
                error=f"Node not found: {node_id}",
                started_at=started,
                completed_at=time.time(),
            )

        needed = graph.get_upstream_nodes(node_id) | {node_id}
        order = [
            node for node in execution_order(graph.node_list(), graph.connections)
            if node.id in needed
        ]
        logger.info("Running %s and %d dependencies", node_id, len(order) - 1)
        return await self._execute(graph, order, use_cache, started)

    def cancel(self) -> bool:
        """
        Cancel the current run.

        The node in flight is interrupted and returned to idle.

        Returns:
            True if a run was in progress
        """
        if self._current_context is None:
            return False

        self._current_context.cancel()
        if self._current_task is not None and not self._current_task.done():
            self._current_task.cancel()
        return True

    async def _execute(
        self,
        graph: NodeGraph,
        order: list[Node],
        use_cache: bool | None,
        started: float,
    ) -> ExecutionResult:
        if use_cache is None:
            use_cache = self.settings.use_cache

        context = ExecutionContext(
            job_id=uuid4(),
            provider=self.provider,
            timeout=self.settings.provider_timeout,
            external_cancelled=self._external_cancelled,
        )
        self._current_context = context
        current: Node | None = None

        try:
            for node in order:
                context.check_cancelled()
                current = node
                await self._run_node(graph, node, context, use_cache)
                current = None

        except asyncio.CancelledError:
            if current is not None:
                self._emit(current, NodeUpdate(NodeStatus.IDLE))
            # Cancellation of the caller's own task belongs to the caller
            if not context.is_cancelled:
                raise
            logger.info("Workflow %r cancelled", graph.name)
            return ExecutionResult(
                success=False,
                status=ExecutionStatus.CANCELLED,
                error="Cancelled by user",
                results=context.results,
                started_at=started,
                completed_at=time.time(),
            )

        except Exception as e:
            error = e if isinstance(e, WorkflowError) else BackendError(str(e) or type(e).__name__)
            message = str(error)
            if current is None:
                logger.warning("Workflow %r failed: %s", graph.name, message)
                return ExecutionResult(
                    success=False,
                    status=ExecutionStatus.FAILED,
                    error=message,
                    results=context.results,
                    started_at=started,
                    completed_at=time.time(),
                )

            self._emit(current, NodeUpdate(NodeStatus.ERROR, error=message))
            logger.warning("Node %s (%s) failed: %s", current.id, current.kind.value, message)
            return ExecutionResult(
                success=False,
                status=ExecutionStatus.FAILED,
                error=f"Failed at {current.kind.value}: {message}",
                failed_node=current.id,
                results=context.results,
                started_at=started,
                completed_at=time.time(),
            )

        finally:
            self._current_context = None
            self._current_task = None

        result = ExecutionResult(
            success=True,
            status=ExecutionStatus.COMPLETED,
            results=context.results,
            started_at=started,
            completed_at=time.time(),
        )
        logger.info("Workflow %r completed in %.2fs", graph.name, result.duration)
        return result

    async def _run_node(
        self,
        graph: NodeGraph,
        node: Node,
        context: ExecutionContext,
        use_cache: bool,
    ) -> None:
        context.current_node = node
        self._emit(node, NodeUpdate(NodeStatus.RUNNING))

        inputs = resolve_inputs(node, graph, context.results)

        input_hash = None
        if use_cache and self.cache is not None:
            input_hash = self.cache.hash_inputs(node, inputs)
            entry = self.cache.lookup(node.id, input_hash)
            if entry is not None:
                logger.debug("Cache hit for %s (%s)", node.id, node.kind.value)
                context.results[node.id] = entry.result
                self._emit(node, NodeUpdate(NodeStatus.COMPLETE, result=entry.result, cached=True))
                return

        logger.debug("Executing %s (%s)", node.id, node.kind.value)
        result = await self.execute_node(node, inputs, context)

        if input_hash is not None:
            self.cache.set(node.id, input_hash, result, node.kind.value)

        context.results[node.id] = result
        self._emit(node, NodeUpdate(NodeStatus.COMPLETE, result=result, cached=False))

    async def execute_node(
        self,
        node: Node,
        inputs: dict[str, Any],
        context: ExecutionContext,
    ) -> Any:
        """
        Dispatch a node to its kind's executor.

        Raises:
            UnknownNodeKindError: If no executor is registered for the kind.
        """
        definition = self.registry.get(node.kind)
        if definition is None or definition.executor is None:
            raise UnknownNodeKindError(node.kind.value)

        parameters = definition.get_default_parameters()
        parameters.update({k: v for k, v in node.config.items() if not k.startswith("_")})

        task = asyncio.ensure_future(definition.executor(inputs, parameters, context))
        self._current_task = task
        try:
            return await task
        finally:
            self._current_task = None
