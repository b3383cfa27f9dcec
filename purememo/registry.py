"""
PUREMEMO Cache Registry

Process-wide mapping from an original function to the root of its cache
trie. Every wrapper built around the same function resolves the same
root, so they share one cache. Functions are held weakly: once a function
and all its wrappers are unreachable, its whole trie goes with it.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

from purememo.config import get_config
from purememo.keymap import HybridKeyMap
from purememo.observability import MemoLayer, describe_callable, get_logger
from purememo.trie import CacheNode, KeyDeriver, find_parent, get_or_insert

logger = get_logger("registry", MemoLayer.REGISTRY)


# ════════════════════════════════════════════════════════════════════════════
# REGISTRY METRICS
# ════════════════════════════════════════════════════════════════════════════


class RegistryMetrics:
    """Memoization counters with thread-safe updates."""

    def __init__(
        self,
        hits: int = 0,
        misses: int = 0,
        errors: int = 0,
        invalidations: int = 0,
        global_clears: int = 0,
    ):
        self._lock = threading.Lock()
        self.hits = hits
        self.misses = misses
        self.errors = errors
        self.invalidations = invalidations
        self.global_clears = global_clears

    def record(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    @property
    def total_calls(self) -> int:
        """Total memoized calls."""
        with self._lock:
            return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        """Cache hit ratio (0.0 - 1.0)."""
        with self._lock:
            total = self.hits + self.misses
            if total == 0:
                return 0.0
            return self.hits / total

    def snapshot(self) -> "RegistryMetrics":
        with self._lock:
            return RegistryMetrics(
                hits=self.hits,
                misses=self.misses,
                errors=self.errors,
                invalidations=self.invalidations,
                global_clears=self.global_clears,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "errors": self.errors,
                "invalidations": self.invalidations,
                "global_clears": self.global_clears,
                "hit_ratio": round(self.hits / total if total > 0 else 0.0, 4),
                "total_calls": total,
            }


# ════════════════════════════════════════════════════════════════════════════
# CACHE REGISTRY
# ════════════════════════════════════════════════════════════════════════════


class CacheRegistry:
    """
    Registry of per-function cache tries.

    One process-wide instance backs memoize() by default; separate
    instances can be created and passed in to isolate caches.

    Example:
        registry = CacheRegistry()
        root = registry.root(fn)           # created on first use
        registry.invalidate(fn, 1)         # drop the subtree under fn(1, ...)
        registry.invalidate(fn)            # drop fn's whole cache
        registry.clear()                   # drop everything
    """

    _instance: Optional["CacheRegistry"] = None
    _lock = threading.Lock()

    def __init__(self):
        self._roots: HybridKeyMap[CacheNode] = HybridKeyMap()
        self._derivers: HybridKeyMap[KeyDeriver] = HybridKeyMap()
        self._metrics = RegistryMetrics()

    @classmethod
    def get_instance(cls) -> "CacheRegistry":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next get_instance() builds a fresh one."""
        with cls._lock:
            cls._instance = None

    def root(self, fn: Callable[..., Any]) -> CacheNode:
        """Resolve the root node for fn, creating it if needed."""
        return get_or_insert(self._roots, fn)

    def peek_root(self, fn: Callable[..., Any]) -> Optional[CacheNode]:
        """Return fn's root node without creating one."""
        return self._roots.get(fn)

    def remember_deriver(self, fn: Callable[..., Any], deriver: KeyDeriver) -> None:
        """Record the key derivation last used for fn."""
        self._derivers.set(fn, deriver)

    def deriver_for(self, fn: Callable[..., Any]) -> KeyDeriver:
        return self._derivers.get(fn) or KeyDeriver()

    def invalidate(
        self,
        fn: Callable[..., Any],
        *args_prefix: Any,
        deriver: Optional[KeyDeriver] = None,
    ) -> bool:
        """
        Drop cached results for fn.

        With no prefix, fn's whole trie is dropped and the result is always
        True. With a prefix, only the subtree under those leading arguments
        is dropped; the result says whether that subtree existed.
        Derivation errors propagate.
        """
        if not args_prefix:
            if self._roots.delete(fn):
                self.record("invalidations")
                logger.debug("function cache cleared", operation="invalidate", function=describe_callable(fn))
            return True

        root = self._roots.get(fn)
        if root is None:
            return False

        deriver = deriver or self.deriver_for(fn)
        last = len(args_prefix) - 1
        parent = find_parent(
            root,
            (deriver.derive(i, arg) for i, arg in enumerate(args_prefix[:last])),
        )
        if parent is None:
            return False

        removed = parent.children.delete(deriver.derive(last, args_prefix[last]))
        if removed:
            self.record("invalidations")
            logger.debug(
                "subtree cleared",
                operation="invalidate",
                function=describe_callable(fn),
                depth=len(args_prefix),
            )
        return removed

    def clear(self) -> None:
        """Drop every function's cache. A no-op when nothing is cached."""
        self._roots = HybridKeyMap()
        self.record("global_clears")
        logger.debug("global cache cleared", operation="clear")

    def size(self) -> int:
        """Number of functions with a live root."""
        return len(self._roots)

    def record(self, counter: str) -> None:
        """Bump a metrics counter when metrics recording is enabled."""
        if get_config().memo.record_metrics.get():
            self.count(counter)

    def count(self, counter: str) -> None:
        """Bump a metrics counter without consulting configuration."""
        self._metrics.record(counter)

    @property
    def metrics(self) -> RegistryMetrics:
        """Snapshot of the counters."""
        return self._metrics.snapshot()

    def reset_metrics(self) -> None:
        self._metrics = RegistryMetrics()


def get_cache_registry() -> CacheRegistry:
    """Get the global cache registry."""
    return CacheRegistry.get_instance()


__all__ = [
    "RegistryMetrics",
    "CacheRegistry",
    "get_cache_registry",
]
