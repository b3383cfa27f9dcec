"""
PUREMEMO Cache Trie

One trie per memoized function. Each edge is labelled by the derived key
of one argument; each node holds the cached state for the argument prefix
that reaches it.

    root (fn)
      ├─ 1 ──► node ── 2 ──► node [CACHED: 3]
      │                └─ 5 ──► node [UNCACHED]
      └─ obj ─► node [CACHED: ...]      (edge dropped when obj is collected)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar, Union

from purememo.keymap import HybridKeyMap

T = TypeVar("T")

HashFunction = Callable[[Any], Any]
HashFunctionOption = Union[None, HashFunction, Sequence]


# ════════════════════════════════════════════════════════════════════════════
# ERRORS
# ════════════════════════════════════════════════════════════════════════════


class MemoizeError(Exception):
    """Base exception for memoization misuse."""
    pass


class InvalidOptionsError(MemoizeError, TypeError):
    """memoize() was given something it cannot use."""
    pass


# ════════════════════════════════════════════════════════════════════════════
# CACHE NODE
# ════════════════════════════════════════════════════════════════════════════


class NodeStatus(Enum):
    """Whether a node holds a result."""
    UNCACHED = 1
    CACHED = 2


@dataclass(eq=False)
class CacheNode(Generic[T]):
    """
    A trie node.

    result is only meaningful when status is CACHED; a cached None is a
    real result.
    """
    status: NodeStatus = NodeStatus.UNCACHED
    result: Optional[T] = None
    children: HybridKeyMap["CacheNode"] = field(default_factory=HybridKeyMap)

    @property
    def is_cached(self) -> bool:
        return self.status is NodeStatus.CACHED

    def store(self, result: T) -> None:
        """Record a result. The result is written before the status flips."""
        self.result = result
        self.status = NodeStatus.CACHED


def get_or_insert(children: HybridKeyMap[CacheNode], key: Any) -> CacheNode:
    """Return the child node under key, creating an UNCACHED one if absent."""
    return children.get_or_insert(key, CacheNode)


def descend(node: CacheNode, keys: Iterable[Any]) -> CacheNode:
    """Walk existing-or-new nodes along keys."""
    for key in keys:
        node = get_or_insert(node.children, key)
    return node


def find_parent(node: CacheNode, keys: Iterable[Any]) -> Optional[CacheNode]:
    """Walk existing nodes only. Returns None on the first missing edge."""
    for key in keys:
        child = node.children.get(key)
        if child is None:
            return None
        node = child
    return node


# ════════════════════════════════════════════════════════════════════════════
# KEY DERIVATION
# ════════════════════════════════════════════════════════════════════════════


class KeyDeriver:
    """
    Maps raw arguments to trie edge labels.

    Built from the hash_function option:
        None                    identity everywhere
        callable                applied to every argument
        sequence of callables   applied by position; None slots and
                                positions past the end use identity

    Keyword argument values use the single callable when one was given,
    identity otherwise.
    """

    __slots__ = ("_common", "_positional")

    def __init__(self, hash_function: HashFunctionOption = None):
        self._common: Optional[HashFunction] = None
        self._positional: Tuple[Optional[HashFunction], ...] = ()

        if hash_function is None:
            return
        if callable(hash_function):
            self._common = hash_function
            return
        if isinstance(hash_function, (str, bytes)) or not isinstance(hash_function, Sequence):
            raise InvalidOptionsError(
                "hash_function must be a callable or a sequence of callables, "
                f"got {type(hash_function).__name__}"
            )
        for index, fn in enumerate(hash_function):
            if fn is not None and not callable(fn):
                raise InvalidOptionsError(
                    f"hash_function[{index}] is not callable: {type(fn).__name__}"
                )
        self._positional = tuple(hash_function)

    @property
    def is_identity(self) -> bool:
        return self._common is None and not any(self._positional)

    def derive(self, index: int, arg: Any) -> Any:
        """Derived key for the positional argument at index."""
        if self._common is not None:
            return self._common(arg)
        if index < len(self._positional):
            fn = self._positional[index]
            if fn is not None:
                return fn(arg)
        return arg

    def derive_keyword(self, arg: Any) -> Any:
        """Derived key for a keyword argument value."""
        if self._common is not None:
            return self._common(arg)
        return arg

    def __repr__(self) -> str:
        if self._common is not None:
            return f"KeyDeriver({self._common!r})"
        return f"KeyDeriver({list(self._positional)!r})"


__all__ = [
    "MemoizeError",
    "InvalidOptionsError",
    "NodeStatus",
    "CacheNode",
    "get_or_insert",
    "descend",
    "find_parent",
    "KeyDeriver",
    "HashFunction",
]
