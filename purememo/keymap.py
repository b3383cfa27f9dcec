"""
PUREMEMO Hybrid Key Map

A key/value map that accepts any Python value as a key. Objects that
support weak references are held weakly and matched by identity; plain
values (numbers, strings, bytes, None) are held strongly and matched by
value; everything else is matched by identity and pinned.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                            HYBRID KEY MAP                                │
    │                                                                          │
    │   key ──► classify_key() ──► KeyKind                                    │
    │                                │                                         │
    │             ┌──────────────────┼──────────────────┐                     │
    │             ▼                  ▼                  ▼                     │
    │         REFERENCE            VALUE              PINNED                   │
    │      weakref.ref(key)    normalized token    id(key), key kept          │
    │             │                  │                  │                     │
    │             ▼                  └────────┬─────────┘                     │
    │        weak store                  strong store                          │
    │   {id: (ref, value)}         {token: (key, value)}                       │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Weak entries are removed by the weakref callback when the garbage collector
reclaims their key. Removal timing is up to the collector. A callback that
fires while another operation holds the map queues its removal, and the
holder applies the queue before it lets go of the lock.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import math
import threading
import weakref
from enum import Enum
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

V = TypeVar("V")


# ════════════════════════════════════════════════════════════════════════════
# ABSENCE SENTINEL
# ════════════════════════════════════════════════════════════════════════════


class _Missing:
    """The "not yet assigned" value. Distinct from None as a key."""

    __slots__ = ()
    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "MISSING"


MISSING = _Missing()


# ════════════════════════════════════════════════════════════════════════════
# KEY CLASSIFICATION
# ════════════════════════════════════════════════════════════════════════════


class KeyKind(Enum):
    """How a key is stored."""
    REFERENCE = "reference"  # weak, by identity
    VALUE = "value"          # strong, by normalized value
    PINNED = "pinned"        # strong, by identity


_VALUE_TYPES = frozenset({type(None), bool, int, float, complex, str, bytes})

_NAN = ("nan",)


def _normalize_float(value: float) -> Any:
    if math.isnan(value):
        return _NAN
    return value


def value_token(key: Any) -> Tuple[Hashable, ...]:
    """
    Normalize a VALUE key to a hashable token.

    Value-equal keys share a token. bool is tagged apart from numbers,
    int and float share the number tag, and every NaN maps to one token.
    """
    kind = type(key)
    if key is None:
        return ("none",)
    if kind is bool:
        return ("bool", key)
    if kind is int:
        return ("number", key)
    if kind is float:
        return ("number", _normalize_float(key))
    if kind is complex:
        if key.imag == 0:
            return ("number", _normalize_float(key.real))
        return ("complex", _normalize_float(key.real), _normalize_float(key.imag))
    if kind is str:
        return ("str", key)
    if kind is bytes:
        return ("bytes", key)
    raise TypeError(f"not a value key: {type(key).__name__}")


def _pinned_token(key: Any) -> Tuple[Hashable, ...]:
    return ("object", id(key))


def classify_key(key: Any) -> KeyKind:
    """Return the storage kind for a key."""
    if type(key) in _VALUE_TYPES:
        return KeyKind.VALUE
    try:
        weakref.ref(key)
    except TypeError:
        return KeyKind.PINNED
    return KeyKind.REFERENCE


# ════════════════════════════════════════════════════════════════════════════
# HYBRID KEY MAP
# ════════════════════════════════════════════════════════════════════════════


class HybridKeyMap(Generic[V]):
    """
    Map from any key to a value.

    Operations behave the same whichever store backs a key, and never
    raise for keys that were never inserted.

    Example:
        m = HybridKeyMap()
        m.set(1, "number")
        m.set(obj, "object")      # dropped once obj is collected
        m.set([1, 2], "list")     # matched by identity, held strongly

        m.get(1.0)                # "number"
        m.delete(obj)             # True
    """

    __slots__ = ("_weak", "_strong", "_lock", "_busy", "_pending", "__weakref__")

    def __init__(self):
        self._weak: Dict[int, Tuple[weakref.ref, V]] = {}
        self._strong: Dict[Hashable, Tuple[Any, V]] = {}
        self._lock = threading.RLock()
        self._busy = 0
        self._pending: List[Tuple[int, weakref.ref]] = []

    def _weak_ref(self, key: Any) -> weakref.ref:
        selfref = weakref.ref(self)
        key_id = id(key)

        def remove(wr: weakref.ref) -> None:
            owner = selfref()
            if owner is None:
                return
            # Collection can fire this on any thread, including one that is
            # mid-operation on this map. Only remove when nobody is inside.
            if owner._lock.acquire(blocking=False):
                try:
                    if owner._busy:
                        owner._pending.append((key_id, wr))
                    else:
                        owner._discard(key_id, wr)
                finally:
                    owner._lock.release()
            else:
                owner._pending.append((key_id, wr))

        return weakref.ref(key, remove)

    def _discard(self, key_id: int, wr: weakref.ref) -> None:
        entry = self._weak.get(key_id)
        if entry is not None and entry[0] is wr:
            del self._weak[key_id]

    def _enter(self) -> None:
        self._lock.acquire()
        self._busy += 1

    def _exit(self) -> None:
        self._busy -= 1
        try:
            if not self._busy:
                while self._pending:
                    self._discard(*self._pending.pop())
        finally:
            self._lock.release()

    def _lookup(self, key: Any, kind: KeyKind) -> Optional[Tuple[Any, V]]:
        if kind is KeyKind.REFERENCE:
            entry = self._weak.get(id(key))
            if entry is None or entry[0]() is not key:
                return None
            return entry
        token = value_token(key) if kind is KeyKind.VALUE else _pinned_token(key)
        return self._strong.get(token)

    def _store(self, key: Any, kind: KeyKind, value: V) -> None:
        if kind is KeyKind.REFERENCE:
            entry = self._weak.get(id(key))
            if entry is not None and entry[0]() is key:
                self._weak[id(key)] = (entry[0], value)
            else:
                self._weak[id(key)] = (self._weak_ref(key), value)
        elif kind is KeyKind.VALUE:
            self._strong[value_token(key)] = (key, value)
        else:
            self._strong[_pinned_token(key)] = (key, value)

    def get(self, key: Any, default: Optional[V] = None) -> Optional[V]:
        """Get the value stored under key, or default."""
        kind = classify_key(key)
        self._enter()
        try:
            entry = self._lookup(key, kind)
            if entry is None:
                return default
            return entry[1]
        finally:
            self._exit()

    def set(self, key: Any, value: V) -> None:
        """Store value under key, replacing any previous value."""
        kind = classify_key(key)
        self._enter()
        try:
            self._store(key, kind, value)
        finally:
            self._exit()

    def delete(self, key: Any) -> bool:
        """Remove key. Returns True if an entry existed."""
        kind = classify_key(key)
        self._enter()
        try:
            if self._lookup(key, kind) is None:
                return False
            if kind is KeyKind.REFERENCE:
                del self._weak[id(key)]
            elif kind is KeyKind.VALUE:
                del self._strong[value_token(key)]
            else:
                del self._strong[_pinned_token(key)]
            return True
        finally:
            self._exit()

    def contains(self, key: Any) -> bool:
        """Check if key has an entry."""
        kind = classify_key(key)
        self._enter()
        try:
            return self._lookup(key, kind) is not None
        finally:
            self._exit()

    def get_or_insert(self, key: Any, factory: Callable[[], V]) -> V:
        """
        Return the value under key, inserting factory() if there is none.

        Lookup and insertion happen under one lock hold, so concurrent
        callers agree on a single inserted value.
        """
        kind = classify_key(key)
        self._enter()
        try:
            entry = self._lookup(key, kind)
            if entry is not None:
                return entry[1]
            value = factory()
            self._store(key, kind, value)
            return value
        finally:
            self._exit()

    def clear(self) -> None:
        """Drop every entry."""
        self._enter()
        try:
            self._weak.clear()
            self._strong.clear()
        finally:
            self._exit()

    def __contains__(self, key: Any) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        self._enter()
        try:
            live = sum(1 for wr, _ in self._weak.values() if wr() is not None)
            return live + len(self._strong)
        finally:
            self._exit()

    def __repr__(self) -> str:
        return f"HybridKeyMap(weak={len(self._weak)}, strong={len(self._strong)})"


# ════════════════════════════════════════════════════════════════════════════
# MODULE EXPORTS
# ════════════════════════════════════════════════════════════════════════════


__all__ = [
    "MISSING",
    "KeyKind",
    "classify_key",
    "value_token",
    "HybridKeyMap",
]
