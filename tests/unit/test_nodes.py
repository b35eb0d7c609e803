"""
Tests for the per-kind node executors.

Executors are called directly with a stub provider behind the context.
"""

import asyncio
import dataclasses

import pytest

from nanoflow.core.data_types import AnalysisBundle, GridSelection
from nanoflow.core.errors import BackendError, EmptyWorkloadError, MissingInputError
from nanoflow.core.graph import Node
from nanoflow.core.node_types import InputDefinition, NodeCategory, NodeKind
from nanoflow.nodes.analysis import analyze_executor
from nanoflow.nodes.enhancement.editing import (
    composite_executor,
    inpaint_executor,
    style_transfer_executor,
)
from nanoflow.nodes.enhancement.upscale import upscale_executor
from nanoflow.nodes.generation import batch_generate_executor, generate_executor
from nanoflow.nodes.input.literals import (
    image_input_executor,
    text_array_input_executor,
    text_input_executor,
)
from nanoflow.nodes.output.output import compare_grid_executor, output_executor

from stub_providers import FailingProvider, SlowProvider


def run(coro):
    return asyncio.run(coro)


class TestRegistration:

    def test_every_kind_has_an_executor(self, registry):
        for kind in NodeKind:
            definition = registry.get(kind)
            assert definition is not None, kind
            assert definition.executor is not None, kind

    def test_input_definition_fields(self):
        # Enforcement lives in validation and the executors, not on the port
        assert [f.name for f in dataclasses.fields(InputDefinition)] == ["name", "label", "kind", "description"]

    def test_categories(self, registry):
        inputs = {t.kind for t in registry.list_by_category(NodeCategory.INPUT)}
        assert inputs == {NodeKind.IMAGE_INPUT, NodeKind.TEXT_INPUT, NodeKind.TEXT_ARRAY_INPUT}


class TestInputNodes:

    def test_image_input(self, make_context):
        assert run(image_input_executor({}, {"image_data": "data:x"}, make_context())) == "data:x"
        assert run(image_input_executor({}, {"image_data": None}, make_context())) is None

    def test_text_input(self, make_context):
        assert run(text_input_executor({}, {"text": "sunset"}, make_context())) == "sunset"
        assert run(text_input_executor({}, {}, make_context())) == ""

    def test_text_array_drops_blanks(self, make_context):
        params = {"prompts": ["a", "", "  ", "b"]}
        assert run(text_array_input_executor({}, params, make_context())) == ["a", "b"]


class TestGenerate:

    def test_connected_prompt_wins(self, provider, make_context):
        result = run(generate_executor({"prompt": "wired"}, {"prompt": "typed"}, make_context()))
        assert result == "WIRED"
        assert provider.calls == [("generate", "wired")]

    def test_literal_prompt(self, make_context):
        assert run(generate_executor({}, {"prompt": "typed"}, make_context())) == "TYPED"

    @pytest.mark.parametrize("prompt", ["", "   ", None])
    def test_blank_prompt(self, prompt, provider, make_context):
        with pytest.raises(MissingInputError):
            run(generate_executor({}, {"prompt": prompt}, make_context()))
        assert provider.calls == []

    def test_reference_and_settings_forwarded(self, make_context):
        seen = {}

        class Recorder(SlowProvider):
            async def generate(self, prompt, reference_images, aspect_ratio="1:1", quality="2K"):
                seen.update(refs=reference_images, ar=aspect_ratio, q=quality)
                return "ok"

        params = {"prompt": "x", "aspect_ratio": "16:9", "quality": "4K"}
        run(generate_executor({"reference": "ref"}, params, make_context(backend=Recorder())))
        assert seen == {"refs": ["ref"], "ar": "16:9", "q": "4K"}

    def test_missing_settings_use_defaults(self, make_context):
        seen = {}

        class Recorder(SlowProvider):
            async def generate(self, prompt, reference_images, aspect_ratio="1:1", quality="2K"):
                seen.update(refs=reference_images, ar=aspect_ratio, q=quality)
                return "ok"

        run(generate_executor({}, {"prompt": "x", "aspect_ratio": None}, make_context(backend=Recorder())))
        assert seen == {"refs": [], "ar": "1:1", "q": "2K"}

    def test_provider_failure_is_backend_error(self, make_context):
        with pytest.raises(BackendError, match="quota exhausted"):
            run(generate_executor({}, {"prompt": "x"}, make_context(backend=FailingProvider())))

    def test_provider_timeout_is_backend_error(self, make_context):
        slow = SlowProvider(delay=1.0)
        with pytest.raises(BackendError, match="timed out"):
            run(generate_executor({}, {"prompt": "x"}, make_context(backend=slow, timeout=0.01)))


class TestBatchGenerate:

    def test_connected_prompts(self, make_context):
        result = run(batch_generate_executor({"prompts": ["a", "b"]}, {"prompts": ["z"]}, make_context()))
        assert result == ["A", "B"]

    def test_config_prompts(self, make_context):
        assert run(batch_generate_executor({}, {"prompts": ["x", " ", "y"]}, make_context())) == ["X", "Y"]

    def test_variables_replace_prompts(self, make_context):
        params = {
            "prompts": ["ignored"],
            "use_variables": True,
            "prompt_text": "a {{c}} {{s}}",
            "variables": {"c": ["red", "blue"], "s": ["cat", "dog"]},
        }
        result = run(batch_generate_executor({"prompts": ["also ignored"]}, params, make_context()))
        assert result == ["A RED CAT", "A RED DOG", "A BLUE CAT", "A BLUE DOG"]

    def test_variables_without_template_keep_prompts(self, make_context):
        params = {"prompts": ["p"], "use_variables": True, "prompt_text": ""}
        assert run(batch_generate_executor({}, params, make_context())) == ["P"]

    def test_connected_empty_list_wins(self, provider, make_context):
        with pytest.raises(EmptyWorkloadError):
            run(batch_generate_executor({"prompts": []}, {"prompts": ["literal"]}, make_context()))
        assert provider.calls == []

    def test_empty_workload(self, make_context):
        with pytest.raises(EmptyWorkloadError):
            run(batch_generate_executor({}, {"prompts": ["", "  "]}, make_context()))

    def test_chunks_run_sequentially(self, make_context):
        slow = SlowProvider()
        params = {"prompts": ["1", "2", "3", "4", "5"], "parallel_limit": 2}

        result = run(batch_generate_executor({}, params, make_context(backend=slow)))

        assert slow.chunks == [2, 2, 1]
        assert result == ["1", "2", "3", "4", "5"]

    def test_default_parallel_limit(self, make_context):
        slow = SlowProvider()
        params = {"prompts": list("abcdefg"), "parallel_limit": None}
        run(batch_generate_executor({}, params, make_context(backend=slow)))
        assert slow.chunks == [3, 3, 1]


class TestEnhancement:

    def test_upscale(self, provider, make_context):
        result = run(upscale_executor({"image": "img"}, {"target_size": "4K"}, make_context()))
        assert result == "img|Upscale to 4K, enhance details, high resolution, photorealistic|4K"

    def test_upscale_needs_image(self, make_context):
        with pytest.raises(MissingInputError):
            run(upscale_executor({}, {}, make_context()))

    def test_style_transfer(self, make_context):
        assert run(style_transfer_executor({"content": "c", "style": "s"}, {}, make_context())) == "c+s"

    def test_style_transfer_needs_both(self, make_context):
        with pytest.raises(MissingInputError):
            run(style_transfer_executor({"content": "c"}, {}, make_context()))

    def test_inpaint_ignores_mask(self, make_context):
        inputs = {"image": "img", "mask": "m", "prompt": "add a hat"}
        assert run(inpaint_executor(inputs, {"quality": "1K"}, make_context())) == "img|add a hat|1K"

    def test_inpaint_defaults(self, make_context):
        assert run(inpaint_executor({"image": "img"}, {}, make_context())) == "img||2K"

    def test_composite(self, registry, make_context):
        node = Node.create(NodeKind.COMPOSITE, registry=registry)
        inputs = {"image1": "a", "image2": "b", "prompt": "beach"}
        assert run(composite_executor(inputs, {}, make_context(node=node))) == "a&b|beach"

    def test_composite_needs_two_images(self, registry, make_context):
        node = Node.create(NodeKind.COMPOSITE, registry=registry)
        with pytest.raises(MissingInputError, match="at least 2"):
            run(composite_executor({"image2": "b", "prompt": "p"}, {}, make_context(node=node)))


class TestAnalysis:

    def test_analyze_bundle(self, make_context):
        result = run(analyze_executor({"image": "img"}, {}, make_context()))
        assert result == AnalysisBundle(
            palette=["#ff0000", "#00ff00"],
            keywords="bold, warm",
            description="A picture of img",
        )

    def test_analyze_needs_image(self, make_context):
        with pytest.raises(MissingInputError):
            run(analyze_executor({}, {}, make_context()))


class TestOutputNodes:

    def test_output_passthrough(self, make_context):
        assert run(output_executor({"image": "img"}, {}, make_context())) == "img"
        assert run(output_executor({}, {}, make_context())) is None

    def test_grid_selected_index(self, make_context):
        result = run(compare_grid_executor({"images": ["a", "b", "c"]}, {"selected_index": 2}, make_context()))
        assert result == GridSelection(images=["a", "b", "c"], selected="c")

    @pytest.mark.parametrize("index", [None, 5, -1, "1", True])
    def test_grid_falls_back_to_first(self, index, make_context):
        result = run(compare_grid_executor({"images": ["a", "b"]}, {"selected_index": index}, make_context()))
        assert result.selected == "a"

    def test_grid_needs_images(self, make_context):
        with pytest.raises(EmptyWorkloadError):
            run(compare_grid_executor({"images": []}, {}, make_context()))
