"""
Shared fixtures: an in-memory provider, a temp cache and a populated
node registry.
"""

from __future__ import annotations

import pytest

from nanoflow.core.cache import NodeCache
from nanoflow.core.execution import ExecutionContext
from nanoflow.core.node_types import NodeRegistry
from nanoflow.nodes import register_all_nodes

from stub_providers import StubProvider


@pytest.fixture
def registry() -> NodeRegistry:
    register_all_nodes()
    return NodeRegistry.instance()


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def cache(tmp_path) -> NodeCache:
    return NodeCache(tmp_path / "node_cache.json")


@pytest.fixture
def make_context(provider):
    """Build an ExecutionContext around a provider (the stub by default)."""

    def _make(node=None, backend=None, timeout=None):
        ctx = ExecutionContext(job_id="test", provider=backend or provider, timeout=timeout)
        ctx.current_node = node
        return ctx

    return _make
