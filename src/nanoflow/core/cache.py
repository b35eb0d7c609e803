"""
Node Cache - Content-addressed memo of node results.

Each entry is keyed by node id and remembers the hash of the inputs that
produced it. A lookup only hits when the caller's hash matches; stale
entries are simply overwritten by the next write for that node.

The cache is persisted as a single JSON blob so results survive process
restarts. Entries older than the TTL are dropped when the store is
loaded, and only the most recently written entries are kept.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping

from nanoflow.core.data_types import (
    AnalysisBundle,
    GridSelection,
    ImageData,
    decode_value,
    encode_value,
)

if TYPE_CHECKING:
    from nanoflow.core.graph import Node
    from nanoflow.core.settings import EngineSettings


logger = logging.getLogger(__name__)

CACHE_KEY = "nanoflow_node_cache"
MAX_CACHE_SIZE = 50
CACHE_TTL = 24 * 60 * 60  # 24 hours


@dataclass
class CacheEntry:
    """A memoized result for one node."""
    input_hash: str
    result: Any
    timestamp: float
    node_type: str


# ----------------------------------------------------------------------------
# Hashing
# ----------------------------------------------------------------------------

def _canonical_default(obj: Any) -> Any:
    if isinstance(obj, ImageData):
        return {"__image__": obj.digest()}
    if isinstance(obj, AnalysisBundle):
        return {"__analysis__": [obj.palette, obj.keywords, obj.description]}
    if isinstance(obj, GridSelection):
        return {"__grid__": [obj.images, obj.selected]}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        return {"__bytes__": hashlib.sha256(obj).hexdigest()}
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    raise TypeError(f"Object of type {type(obj).__name__} is not hashable content")


def _canonical(obj: Any) -> str:
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_canonical_default,
    )


def hash_inputs(node: Node, inputs: Mapping[str, Any]) -> str:
    """
    Digest a node's kind, config and resolved inputs.

    Equal (kind, config, inputs) triples always give equal digests.
    Runtime-only config keys (leading underscore) are ignored. If the
    inputs can't be encoded the digest covers kind and config only, so
    different inputs may then collide.
    """
    kind = node.kind.value
    config = {k: v for k, v in node.config.items() if not k.startswith("_")}

    try:
        payload = _canonical({"type": kind, "config": config, "inputs": dict(inputs)})
    except (TypeError, ValueError) as e:
        logger.debug("Falling back to config-only hash for %s: %s", node.id, e)
        try:
            payload = _canonical({"type": kind, "config": config})
        except (TypeError, ValueError):
            payload = _canonical({"type": kind, "config_keys": sorted(config)})

    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# ----------------------------------------------------------------------------
# Cache
# ----------------------------------------------------------------------------

class NodeCache:
    """
    Result cache shared by runs of a workflow.

    Lifecycle: construct, `load()` once (drops expired entries), then
    `get`/`set` freely; every write persists. `flush()` forces a write.
    With `path=None` the cache is memory-only.
    """

    def __init__(
        self,
        path: Path | None = None,
        max_entries: int = MAX_CACHE_SIZE,
        ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path) if path is not None else None
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> NodeCache:
        return cls(
            path=settings.cache_path,
            max_entries=settings.cache_max_entries,
            ttl=settings.cache_ttl_seconds,
        )

    # --- Lifecycle ---

    def load(self) -> int:
        """
        Load persisted entries, dropping those older than the TTL.

        A missing, corrupt or undecodable store leaves the cache empty.

        Returns:
            Number of entries loaded
        """
        self._entries = {}
        if self.path is None or not self.path.exists():
            return 0

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)

            now = self._clock()
            entries: dict[str, CacheEntry] = {}
            for node_id, raw in data[CACHE_KEY]:
                timestamp = float(raw["timestamp"])
                if now - timestamp >= self.ttl:
                    continue
                entries[str(node_id)] = CacheEntry(
                    input_hash=raw["input_hash"],
                    result=decode_value(raw["result"]),
                    timestamp=timestamp,
                    node_type=raw.get("node_type", ""),
                )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to load node cache from %s: %s", self.path, e)
            return 0

        self._entries = entries
        self._trim()
        logger.debug("Loaded %d cache entries from %s", len(self._entries), self.path)
        return len(self._entries)

    def flush(self) -> None:
        """Write the cache to disk (atomically; last writer wins)."""
        if self.path is None:
            return

        rows = []
        for node_id, entry in self._entries.items():
            try:
                encoded = encode_value(entry.result)
            except TypeError as e:
                logger.debug("Not persisting cache entry for %s: %s", node_id, e)
                continue
            rows.append([node_id, {
                "input_hash": entry.input_hash,
                "result": encoded,
                "timestamp": entry.timestamp,
                "node_type": entry.node_type,
            }])

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({CACHE_KEY: rows}, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("Failed to save node cache to %s: %s", self.path, e)

    # --- Access ---

    def hash_inputs(self, node: Node, inputs: Mapping[str, Any]) -> str:
        return hash_inputs(node, inputs)

    def lookup(self, node_id: str, input_hash: str) -> CacheEntry | None:
        """Get the entry for a node if it was produced by the same inputs."""
        entry = self._entries.get(node_id)
        if entry is not None and entry.input_hash == input_hash:
            return entry
        return None

    def get(self, node_id: str, input_hash: str, default: Any = None) -> Any:
        """Get a cached result if inputs match."""
        entry = self.lookup(node_id, input_hash)
        return entry.result if entry is not None else default

    def set(self, node_id: str, input_hash: str, result: Any, node_type: str) -> None:
        """Store a result, trim to capacity and persist."""
        self._entries.pop(node_id, None)
        self._entries[node_id] = CacheEntry(
            input_hash=input_hash,
            result=result,
            timestamp=self._clock(),
            node_type=node_type,
        )
        self._trim()
        self.flush()

    def invalidate(self, node_id: str) -> None:
        """Drop the entry for a node."""
        if self._entries.pop(node_id, None) is not None:
            self.flush()

    def clear(self) -> None:
        """Drop every entry and remove the persisted store."""
        self._entries.clear()
        if self.path is not None:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove node cache %s: %s", self.path, e)

    def has(self, node_id: str) -> bool:
        return node_id in self._entries

    def _trim(self) -> None:
        if len(self._entries) <= self.max_entries:
            return
        # Write order breaks timestamp ties
        ranked = sorted(
            enumerate(self._entries.items()),
            key=lambda pair: (pair[1][1].timestamp, pair[0]),
            reverse=True,
        )[:self.max_entries]
        self._entries = dict(item for _, item in reversed(ranked))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._entries
