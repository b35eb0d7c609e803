"""
Generation Nodes - Nodes that generate images using the provider.

Generate makes a single call; Batch Generate fans a list of prompts out
in chunks of concurrent calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from nanoflow.core.data_types import PortKind
from nanoflow.core.errors import EmptyWorkloadError, MissingInputError
from nanoflow.core.node_types import (
    ASPECT_RATIOS,
    QUALITIES,
    InputDefinition,
    NodeCategory,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
    ParameterType,
)
from nanoflow.core.variables import expand_variables


logger = logging.getLogger(__name__)

DEFAULT_PARALLEL_LIMIT = 3


async def generate_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    """Execute text-to-image generation."""
    # Connected prompt wins over the typed-in one
    prompt = inputs.get("prompt") or parameters.get("prompt") or ""
    if not isinstance(prompt, str) or not prompt.strip():
        raise MissingInputError(
            "Generate node requires a prompt - either type one in or connect a Prompt node"
        )

    reference = inputs.get("reference")
    references = [reference] if reference is not None else []

    return await context.call(
        "generate",
        prompt,
        references,
        parameters.get("aspect_ratio") or "1:1",
        parameters.get("quality") or "2K",
    )


async def batch_generate_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> list[Any]:
    """
    Generate one image per prompt.

    Prompts come from the connected list, else the node's own list. With
    variables enabled the expanded template replaces both. Prompts are
    processed in chunks of `parallel_limit`: calls within a chunk run
    concurrently, chunks run one after another, and results keep the
    prompt order.
    """
    # A connected list always wins, even when empty
    if "prompts" in inputs:
        prompts = inputs["prompts"] or []
    else:
        prompts = parameters.get("prompts") or []

    if parameters.get("use_variables") and parameters.get("prompt_text"):
        prompts = expand_variables(
            parameters["prompt_text"],
            parameters.get("variables") or {},
        )

    prompts = [p for p in prompts if isinstance(p, str) and p.strip()]
    if not prompts:
        raise EmptyWorkloadError("Batch Generate requires at least one prompt")

    limit = parameters.get("parallel_limit") or DEFAULT_PARALLEL_LIMIT
    limit = max(1, int(limit))
    aspect_ratio = parameters.get("aspect_ratio") or "1:1"
    quality = parameters.get("quality") or "2K"

    results: list[Any] = []
    for start in range(0, len(prompts), limit):
        context.check_cancelled()
        chunk = prompts[start:start + limit]
        logger.debug("Batch chunk %d-%d of %d", start + 1, start + len(chunk), len(prompts))
        chunk_results = await asyncio.gather(*(
            context.call("generate", prompt, [], aspect_ratio, quality)
            for prompt in chunk
        ))
        results.extend(chunk_results)

    return results


def _has_literal_prompt(config: dict[str, Any]) -> bool:
    prompt = config.get("prompt")
    return isinstance(prompt, str) and bool(prompt.strip())


def _uses_variables(config: dict[str, Any]) -> bool:
    return bool(config.get("use_variables"))


GENERATE_NODE = NodeType(
    kind=NodeKind.GENERATE,
    name="Generate",
    description="Generate an image from a text prompt and optional reference",
    category=NodeCategory.GENERATION,
    inputs=[
        InputDefinition(
            name="prompt",
            label="Prompt",
            kind=PortKind.TEXT,
            description="Text prompt describing the image",
        ),
        InputDefinition(
            name="reference",
            label="Reference",
            kind=PortKind.IMAGE,
            description="Optional reference image",
        ),
    ],
    outputs=[
        OutputDefinition(
            name="image",
            label="Image",
            kind=PortKind.IMAGE,
            description="Generated image",
        ),
    ],
    parameters=[
        ParameterDefinition.text(
            name="prompt",
            label="Prompt",
            default="",
            multiline=True,
            description="Used when no prompt is connected",
        ),
        ParameterDefinition.enum(
            name="aspect_ratio",
            label="Aspect Ratio",
            options=ASPECT_RATIOS,
            default="1:1",
        ),
        ParameterDefinition.enum(
            name="quality",
            label="Quality",
            options=QUALITIES,
            default="2K",
        ),
    ],
    executor=generate_executor,
    standalone=_has_literal_prompt,
    icon="✨",
)


BATCH_GENERATE_NODE = NodeType(
    kind=NodeKind.BATCH_GENERATE,
    name="Batch Generate",
    description="Generate one image per prompt, a few at a time",
    category=NodeCategory.GENERATION,
    inputs=[
        InputDefinition(
            name="prompts",
            label="Prompts",
            kind=PortKind.TEXT_ARRAY,
        ),
    ],
    outputs=[
        OutputDefinition(
            name="images",
            label="Images",
            kind=PortKind.IMAGE_ARRAY,
        ),
    ],
    parameters=[
        ParameterDefinition(
            name="prompts",
            label="Prompts",
            param_type=ParameterType.TEXT_LIST,
            default=[],
        ),
        ParameterDefinition.text(
            name="prompt_text",
            label="Template",
            default="",
            multiline=True,
            description="Prompt template with {{variable}} placeholders",
        ),
        ParameterDefinition.boolean(
            name="use_variables",
            label="Use Variables",
            default=False,
        ),
        ParameterDefinition(
            name="variables",
            label="Variables",
            param_type=ParameterType.VARIABLES,
            default={},
            description="Variable name -> list of values",
        ),
        ParameterDefinition.enum(
            name="aspect_ratio",
            label="Aspect Ratio",
            options=ASPECT_RATIOS,
            default="1:1",
        ),
        ParameterDefinition.enum(
            name="quality",
            label="Quality",
            options=QUALITIES,
            default="2K",
        ),
        ParameterDefinition.integer(
            name="parallel_limit",
            label="Parallel Limit",
            default=DEFAULT_PARALLEL_LIMIT,
            min_value=1,
            max_value=10,
        ),
    ],
    executor=batch_generate_executor,
    standalone=_uses_variables,
    icon="📦",
)


def register_generation_nodes() -> None:
    """Register all generation nodes."""
    registry = NodeRegistry.instance()
    registry.register(GENERATE_NODE)
    registry.register(BATCH_GENERATE_NODE)
