"""
End-to-end tests for the execution engine against a stub provider.
"""

import asyncio
import logging

from nanoflow.core.cache import NodeCache
from nanoflow.core.execution import ExecutionEngine, ExecutionStatus, NodeUpdate
from nanoflow.core.graph import Connection, Node, NodeGraph, NodeStatus
from nanoflow.core.node_types import NodeKind
from nanoflow.core.settings import EngineSettings

from stub_providers import FailingProvider, SlowProvider


def run(coro):
    return asyncio.run(coro)


def sunset_graph(registry):
    """TEXT_INPUT("sunset") -> GENERATE -> OUTPUT"""
    graph = NodeGraph("sunset")
    prompt = graph.add_node(Node.create(NodeKind.TEXT_INPUT, config={"text": "sunset"}, registry=registry))
    gen = graph.add_node(Node.create(NodeKind.GENERATE, registry=registry))
    out = graph.add_node(Node.create(NodeKind.OUTPUT, registry=registry))
    graph.connect(prompt, "text", gen, "prompt")
    graph.connect(gen, "image", out, "image")
    return graph, prompt, gen, out


class Recorder:
    def __init__(self):
        self.updates: list[tuple[str, NodeUpdate]] = []

    def __call__(self, node_id, update):
        self.updates.append((node_id, update))

    def statuses(self, node_id):
        return [u.status for nid, u in self.updates if nid == node_id]


class TestRun:

    def test_sunset_chain(self, registry, provider):
        graph, prompt, gen, out = sunset_graph(registry)
        engine = ExecutionEngine(provider=provider, registry=registry)

        result = run(engine.run(graph, use_cache=False))

        assert result.success
        assert result.status == ExecutionStatus.COMPLETED
        assert result.results == {prompt.id: "sunset", gen.id: "SUNSET", out.id: "SUNSET"}
        assert out.result == "SUNSET"
        assert all(n.status == NodeStatus.COMPLETE for n in graph.node_list())
        assert provider.calls == [("generate", "sunset")]

    def test_status_transitions(self, registry, provider):
        graph, prompt, gen, out = sunset_graph(registry)
        recorder = Recorder()
        engine = ExecutionEngine(provider=provider, registry=registry, on_node_update=recorder)

        run(engine.run(graph, use_cache=False))

        for node in (prompt, gen, out):
            assert recorder.statuses(node.id) == [
                NodeStatus.IDLE, NodeStatus.RUNNING, NodeStatus.COMPLETE,
            ]
        running = [nid for nid, u in recorder.updates if u.status == NodeStatus.RUNNING]
        assert running == [prompt.id, gen.id, out.id]

    def test_second_run_is_served_from_cache(self, registry, provider, cache):
        graph, prompt, gen, out = sunset_graph(registry)
        engine = ExecutionEngine(provider=provider, cache=cache, registry=registry)

        first = run(engine.run(graph))
        assert first.success
        assert gen.config["_cached"] is False
        assert len(provider.calls) == 1

        recorder = Recorder()
        engine.add_listener(recorder)
        second = run(engine.run(graph))

        assert second.success
        assert len(provider.calls) == 1
        assert second.results[out.id] == "SUNSET"
        assert gen.config["_cached"] is True
        completes = [u for _, u in recorder.updates if u.status == NodeStatus.COMPLETE]
        assert all(u.cached for u in completes)

    def test_cache_survives_restart(self, registry, provider, tmp_path):
        path = tmp_path / "cache.json"
        graph, *_ = sunset_graph(registry)
        run(ExecutionEngine(provider=provider, cache=NodeCache(path), registry=registry).run(graph))

        reloaded = NodeCache(path)
        reloaded.load()
        run(ExecutionEngine(provider=provider, cache=reloaded, registry=registry).run(graph))

        assert len(provider.calls) == 1

    def test_config_change_forces_miss(self, registry, provider, cache):
        graph, prompt, gen, out = sunset_graph(registry)
        engine = ExecutionEngine(provider=provider, cache=cache, registry=registry)
        run(engine.run(graph))

        gen.set_config("quality", "4K")
        run(engine.run(graph))

        assert len(provider.calls) == 2
        assert gen.config["_cached"] is False
        # Downstream input is unchanged, so the output node still hits
        assert out.config["_cached"] is True

    def test_upstream_change_propagates(self, registry, provider, cache):
        graph, prompt, gen, out = sunset_graph(registry)
        engine = ExecutionEngine(provider=provider, cache=cache, registry=registry)
        run(engine.run(graph))

        prompt.set_config("text", "sunrise")
        result = run(engine.run(graph))

        assert result.results[out.id] == "SUNRISE"
        assert provider.calls[-1] == ("generate", "sunrise")

    def test_cache_disabled_by_settings(self, registry, provider, cache):
        graph, *_ = sunset_graph(registry)
        engine = ExecutionEngine(
            provider=provider,
            cache=cache,
            registry=registry,
            settings=EngineSettings(use_cache=False),
        )
        run(engine.run(graph))
        run(engine.run(graph))
        assert len(provider.calls) == 2
        assert len(cache) == 0

    def test_cycle_is_refused_without_status_change(self, registry, provider):
        a = Node.create(NodeKind.UPSCALE, registry=registry)
        b = Node.create(NodeKind.UPSCALE, registry=registry)
        a.status = NodeStatus.COMPLETE
        graph = NodeGraph.from_snapshot(
            [a, b],
            [Connection.between(a, "image", b, "image"), Connection.between(b, "image", a, "image")],
        )
        recorder = Recorder()
        engine = ExecutionEngine(provider=provider, registry=registry, on_node_update=recorder)

        result = run(engine.run(graph))

        assert not result.success
        assert result.status == ExecutionStatus.INVALID
        assert "cycle" in result.error
        assert recorder.updates == []
        assert a.status == NodeStatus.COMPLETE
        assert b.status == NodeStatus.IDLE
        assert provider.calls == []

    def test_self_loop_is_refused(self, registry, provider):
        node = Node.create(NodeKind.UPSCALE, registry=registry)
        graph = NodeGraph.from_snapshot([node], [Connection.between(node, "image", node, "image")])
        recorder = Recorder()
        engine = ExecutionEngine(provider=provider, registry=registry, on_node_update=recorder)

        result = run(engine.run(graph))

        assert result.status == ExecutionStatus.INVALID
        assert recorder.updates == []
        assert node.status == NodeStatus.IDLE

    def test_invalid_graph_joins_errors(self, registry, provider):
        graph = NodeGraph()
        graph.add_node(Node.create(NodeKind.GENERATE, registry=registry))
        graph.add_node(Node.create(NodeKind.UPSCALE, registry=registry))

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph))

        assert result.status == ExecutionStatus.INVALID
        assert result.error == (
            "GENERATE node requires at least one input connection; "
            "UPSCALE node requires at least one input connection"
        )
        assert len(result.errors) == 2

    def test_failure_aborts_run(self, registry):
        graph, prompt, gen, out = sunset_graph(registry)
        backend = FailingProvider()
        recorder = Recorder()
        engine = ExecutionEngine(provider=backend, registry=registry, on_node_update=recorder)

        result = run(engine.run(graph, use_cache=False))

        assert not result.success
        assert result.status == ExecutionStatus.FAILED
        assert result.error == "Failed at GENERATE: quota exhausted"
        assert result.failed_node == gen.id
        assert gen.status == NodeStatus.ERROR
        assert gen.error == "quota exhausted"
        assert prompt.status == NodeStatus.COMPLETE
        assert out.status == NodeStatus.IDLE
        assert NodeStatus.RUNNING not in recorder.statuses(out.id)

    def test_missing_input_aborts_run(self, registry, provider):
        graph = NodeGraph()
        img = graph.add_node(Node.create(NodeKind.IMAGE_INPUT, config={"image_data": "c"}, registry=registry))
        st = graph.add_node(Node.create(NodeKind.STYLE_TRANSFER, registry=registry))
        graph.connect(img, "image", st, "content")

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph))

        assert result.error == "Failed at STYLE_TRANSFER: Style transfer requires both content and style images"

    def test_rerun_resets_previous_error(self, registry, provider):
        graph, prompt, gen, out = sunset_graph(registry)
        run(ExecutionEngine(provider=FailingProvider(), registry=registry).run(graph, use_cache=False))
        assert gen.status == NodeStatus.ERROR

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph, use_cache=False))

        assert result.success
        assert gen.status == NodeStatus.COMPLETE
        assert gen.error is None

    def test_failures_are_not_cached(self, registry, cache):
        graph, *_ = sunset_graph(registry)
        run(ExecutionEngine(provider=FailingProvider(), cache=cache, registry=registry).run(graph))
        assert len(cache) == 1  # Only the prompt node

    def test_batch_into_grid(self, registry, provider):
        graph = NodeGraph()
        batch = graph.add_node(Node.create(
            NodeKind.BATCH_GENERATE,
            config={
                "use_variables": True,
                "prompt_text": "{{animal}} at night",
                "variables": {"animal": ["owl", "fox"]},
            },
            registry=registry,
        ))
        grid = graph.add_node(Node.create(NodeKind.COMPARE_GRID, config={"selected_index": 1}, registry=registry))
        out = graph.add_node(Node.create(NodeKind.OUTPUT, registry=registry))
        graph.connect(batch, "images", grid, "images")
        graph.connect(grid, "selected", out, "image")

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph, use_cache=False))

        assert result.success
        assert result.results[batch.id] == ["OWL AT NIGHT", "FOX AT NIGHT"]
        assert out.result == "FOX AT NIGHT"

    def test_empty_prompt_list_overrides_literals(self, registry, provider):
        graph = NodeGraph()
        prompts = graph.add_node(Node.create(NodeKind.TEXT_ARRAY_INPUT, registry=registry))
        batch = graph.add_node(Node.create(NodeKind.BATCH_GENERATE, config={"prompts": ["literal"]}, registry=registry))
        graph.connect(prompts, "prompts", batch, "prompts")

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph, use_cache=False))

        assert result.error == "Failed at BATCH_GENERATE: Batch Generate requires at least one prompt"
        assert provider.calls == []

    def test_analysis_fans_out_by_port(self, registry, provider):
        graph = NodeGraph()
        img = graph.add_node(Node.create(NodeKind.IMAGE_INPUT, config={"image_data": "pic"}, registry=registry))
        an = graph.add_node(Node.create(NodeKind.ANALYZE, registry=registry))
        gen = graph.add_node(Node.create(NodeKind.GENERATE, registry=registry))
        graph.connect(img, "image", an, "image")
        graph.connect(an, "description", gen, "prompt")

        result = run(ExecutionEngine(provider=provider, registry=registry).run(graph, use_cache=False))

        assert result.results[gen.id] == "A PICTURE OF PIC"

    def test_batch_chunks_are_logged(self, registry, caplog):
        graph = NodeGraph()
        graph.add_node(Node.create(
            NodeKind.BATCH_GENERATE,
            config={
                "use_variables": True,
                "prompt_text": "{{n}}",
                "variables": {"n": ["1", "2", "3", "4", "5"]},
                "parallel_limit": 2,
            },
            registry=registry,
        ))
        slow = SlowProvider()

        with caplog.at_level(logging.DEBUG, logger="nanoflow"):
            result = run(ExecutionEngine(provider=slow, registry=registry).run(graph, use_cache=False))

        assert result.success
        assert slow.chunks == [2, 2, 1]
        chunk_lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Batch chunk")]
        assert chunk_lines == ["Batch chunk 1-2 of 5", "Batch chunk 3-4 of 5", "Batch chunk 5-5 of 5"]


class TestRunToNode:

    def test_runs_only_dependencies(self, registry, provider):
        graph, prompt, gen, out = sunset_graph(registry)
        other = graph.add_node(Node.create(NodeKind.GENERATE, config={"prompt": "moon"}, registry=registry))

        result = run(ExecutionEngine(provider=provider, registry=registry).run_to_node(graph, gen.id))

        assert result.success
        assert set(result.results) == {prompt.id, gen.id}
        assert out.status == NodeStatus.IDLE
        assert other.status == NodeStatus.IDLE
        assert provider.calls == [("generate", "sunset")]

    def test_skips_validation(self, registry, provider):
        graph = NodeGraph()
        prompt = graph.add_node(Node.create(NodeKind.TEXT_INPUT, config={"text": "x"}, registry=registry))
        # Unconnected upscale would fail validation for a full run
        graph.add_node(Node.create(NodeKind.UPSCALE, registry=registry))

        result = run(ExecutionEngine(provider=provider, registry=registry).run_to_node(graph, prompt.id))

        assert result.success
        assert result.results == {prompt.id: "x"}

    def test_uses_cache(self, registry, provider, cache):
        graph, prompt, gen, out = sunset_graph(registry)
        engine = ExecutionEngine(provider=provider, cache=cache, registry=registry)
        run(engine.run(graph))

        run(engine.run_to_node(graph, out.id))

        assert len(provider.calls) == 1
        assert out.config["_cached"] is True

    def test_unknown_node(self, registry, provider):
        result = run(ExecutionEngine(provider=provider, registry=registry).run_to_node(NodeGraph(), "nope"))
        assert result.status == ExecutionStatus.FAILED
        assert "nope" in result.error


class TestExecuteNode:

    def test_unregistered_kind(self, registry, provider):
        node = Node.create(NodeKind.OUTPUT, registry=registry)
        definition = registry.unregister(NodeKind.OUTPUT)
        try:
            graph = NodeGraph()
            img = graph.add_node(Node.create(NodeKind.IMAGE_INPUT, config={"image_data": "i"}, registry=registry))
            graph.add_node(node)
            graph.connect(img, "image", node, "image")

            result = run(ExecutionEngine(provider=provider, registry=registry).run(graph, use_cache=False))
        finally:
            registry.register(definition)

        assert result.error == "Failed at OUTPUT: Unknown node type: OUTPUT"

    def test_no_provider(self, registry):
        graph, *_ = sunset_graph(registry)
        result = run(ExecutionEngine(provider=None, registry=registry).run(graph, use_cache=False))
        assert result.error == "Failed at GENERATE: No generation provider configured"
