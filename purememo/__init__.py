"""
PUREMEMO — Weak-Keyed Memoization for Pure Functions

Memoizes side-effect-free functions of any arity without an eviction
policy. There is no size limit and no expiry: a cached result becomes
collectable exactly when the argument objects that led to it do.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          MEMOIZATION STACK                               │
    │                                                                          │
    │    memo.py        Wrappers, per-call trie descent, invalidation API     │
    │    registry.py    Process-wide function → trie root registry, metrics   │
    │    trie.py        Cache nodes, descent, key derivation                  │
    │    keymap.py      Any-key map: weak object keys, strong value keys      │
    │                                                                          │
    │    config.py          YAML / environment configuration                  │
    │    observability.py   Structured logging                                │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Cache Trie: Each memoized function owns a trie. Every argument position
    adds one level; the edge label is the argument's derived key. A call
    walks (and grows) the trie and finds its result at the leaf.

    Derived Key: The argument itself, or the output of a hash function
    configured per position. Two calls whose derived keys match share one
    result.

    Hybrid Key Map: Object keys are held weakly, so an edge disappears when
    its argument object is collected. Numbers, strings, bytes and None are
    held strongly and matched by value.

    Registry: Maps each original function to its trie root. Wrappers around
    the same function share a cache.

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.3.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import PUREMEMO modules on first access."""

    if name in ("memoize", "memoize_pure_function", "clear_cache", "clear_global_cache"):
        from purememo import memo
        return getattr(memo, name)

    if name in ("CacheRegistry", "RegistryMetrics", "get_cache_registry"):
        from purememo import registry
        return getattr(registry, name)

    if name in ("CacheNode", "NodeStatus", "KeyDeriver", "MemoizeError", "InvalidOptionsError"):
        from purememo import trie
        return getattr(trie, name)

    if name in ("HybridKeyMap", "KeyKind", "MISSING"):
        from purememo import keymap
        return getattr(keymap, name)

    if name in ("ConfigManager", "ConfigError", "ConfigValidationError",
                "get_config", "get_config_manager"):
        from purememo import config
        return getattr(config, name)

    raise AttributeError(f"module 'purememo' has no attribute '{name}'")


__all__ = [
    # Version info
    "__version__",
    # Memoization
    "memoize",
    "memoize_pure_function",
    "clear_cache",
    "clear_global_cache",
    # Registry
    "CacheRegistry",
    "RegistryMetrics",
    "get_cache_registry",
    # Trie
    "CacheNode",
    "NodeStatus",
    "KeyDeriver",
    "MemoizeError",
    "InvalidOptionsError",
    # Key map
    "HybridKeyMap",
    "KeyKind",
    "MISSING",
    # Config
    "ConfigManager",
    "ConfigError",
    "ConfigValidationError",
    "get_config",
    "get_config_manager",
]
