"""
nanoflow - Main Entry Point

Runs a saved workflow snapshot from the command line.

Usage:
    nanoflow run workflow.json
    nanoflow run workflow.json --node abc123 --no-cache
    nanoflow run workflow.json --save-dir out/
    nanoflow clear-cache
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path


logger = logging.getLogger("nanoflow")


def build_parser() -> argparse.ArgumentParser:
    # Accepted before or after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging")
    common.add_argument("--settings", type=Path, default=argparse.SUPPRESS, help="Path to settings.json")

    parser = argparse.ArgumentParser(
        prog="nanoflow",
        description="Run node-based image generation workflows",
        parents=[common],
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Execute a workflow file", parents=[common])
    run.add_argument("workflow", type=Path, help="Workflow snapshot (JSON)")
    run.add_argument("--node", help="Only run this node and its dependencies")
    run.add_argument("--no-cache", action="store_true", help="Ignore cached results")
    run.add_argument("--clear-cache", action="store_true", help="Empty the cache before running")
    run.add_argument("--save-dir", type=Path, help="Save images reaching Output nodes here")

    sub.add_parser("clear-cache", help="Remove all cached node results", parents=[common])

    return parser


def _print_update(graph, node_id, update) -> None:
    node = graph.get_node(node_id)
    kind = node.kind.value if node else "?"
    line = f"[{update.status.value:>8}] {kind} {node_id}"
    if update.cached:
        line += " (cached)"
    if update.error:
        line += f": {update.error}"
    print(line)


def _save_outputs(graph, save_dir: Path) -> list[Path]:
    from nanoflow.core import ImageData, NodeKind

    save_dir.mkdir(parents=True, exist_ok=True)
    saved: list[Path] = []

    for node in graph.node_list():
        if node.kind != NodeKind.OUTPUT or node.result is None:
            continue

        image = node.result
        if isinstance(image, str):
            try:
                image = ImageData.from_data_url(image)
            except (ValueError, OSError) as e:
                logger.warning("Output %s is not a decodable image (%s); not saved", node.id, e)
                continue
        if not isinstance(image, ImageData):
            logger.warning("Output %s is not an image; not saved", node.id)
            continue

        path = save_dir / f"{node.id}.png"
        path.write_bytes(image.to_png_bytes())
        saved.append(path)

    return saved


async def run_workflow(args: argparse.Namespace, settings) -> int:
    from nanoflow.core import ExecutionEngine, NodeCache, NodeGraph, WorkflowError
    from nanoflow.providers import get_registry

    try:
        with open(args.workflow, encoding="utf-8") as f:
            data = json.load(f)
        graph = NodeGraph.from_dict(data)
    except (OSError, KeyError, ValueError, WorkflowError) as e:
        print(f"Error: Could not load workflow {args.workflow}: {e}")
        return 1

    registry = get_registry()
    registry.load_config()
    provider = registry.get_provider(settings.default_provider)
    if provider is None:
        print(f"Error: Unknown provider '{settings.default_provider}'")
        return 1
    if not provider.is_configured:
        logger.warning("Provider %s has no API key; generation nodes will fail", provider.id)

    cache = NodeCache.from_settings(settings)
    if args.clear_cache:
        cache.clear()
    else:
        cache.load()

    engine = ExecutionEngine(
        provider=provider,
        cache=cache,
        settings=settings,
        on_node_update=lambda node_id, update: _print_update(graph, node_id, update),
    )

    use_cache = not args.no_cache and settings.use_cache
    if args.node:
        result = await engine.run_to_node(graph, args.node, use_cache=use_cache)
    else:
        result = await engine.run(graph, use_cache=use_cache)

    if not result.success:
        print(f"{result.status.name}: {result.error}")
        return 1

    print(f"Completed {len(result.results)} nodes in {result.duration:.1f}s")

    if args.save_dir:
        for path in _save_outputs(graph, args.save_dir):
            print(f"Saved {path}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for nanoflow.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    # Ensure we're running Python 3.11+
    if sys.version_info < (3, 11):
        print("Error: nanoflow requires Python 3.11 or later")
        return 1

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from nanoflow.core import NodeCache, load_settings

    settings = load_settings(getattr(args, "settings", None))

    if args.command == "clear-cache":
        NodeCache.from_settings(settings).clear()
        print(f"Cleared {settings.cache_path}")
        return 0

    try:
        return asyncio.run(run_workflow(args, settings))
    except KeyboardInterrupt:
        print("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
