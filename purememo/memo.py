"""
PUREMEMO Memoized Wrappers

memoize() wraps a pure function so every distinct argument tuple is
computed once. Results live in the function's cache trie in the
registry; nothing is ever evicted by size or age, entries go away when
their argument objects are collected or when they are invalidated.

Usage
─────

    from purememo import memoize, clear_cache, clear_global_cache

    @memoize
    def add(x, y):
        return x + y

    add(1, 2)                   # computed
    add(1, 2)                   # cached

    @memoize(hash_function=[lambda user: user.id, None])
    def greet(user, greeting):
        return f"{greeting}, {user.name}"

    greet.clear_cache(alice)    # drop every entry for alice
    clear_cache(add)            # drop add's whole cache
    clear_global_cache()        # drop everything

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, TypeVar

from purememo.config import get_config
from purememo.observability import LogLevel, MemoLayer, describe_callable, get_logger
from purememo.registry import CacheRegistry, get_cache_registry
from purememo.trie import (
    HashFunctionOption,
    InvalidOptionsError,
    KeyDeriver,
    descend,
)

T = TypeVar("T")

logger = get_logger("memoize", MemoLayer.MEMOIZE)


class _KeywordMarker:
    """Edge label separating positional from keyword arguments."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<keywords>"


_KEYWORDS = _KeywordMarker()


def _derived_keys(
    deriver: KeyDeriver,
    args: Tuple[Any, ...],
    kwargs: Dict[str, Any],
) -> Iterator[Any]:
    # Keys are derived one position at a time so a failing hash function
    # stops the descent before its own node exists.
    for index, arg in enumerate(args):
        yield deriver.derive(index, arg)
    if kwargs:
        yield _KEYWORDS
        for name in sorted(kwargs):
            yield name
            yield deriver.derive_keyword(kwargs[name])


def _should_trace() -> bool:
    return logger.is_enabled_for(LogLevel.DEBUG) and get_config().memo.trace_calls.get()


# ════════════════════════════════════════════════════════════════════════════
# MEMOIZE
# ════════════════════════════════════════════════════════════════════════════


def memoize(
    fn: Optional[Callable[..., T]] = None,
    *,
    hash_function: HashFunctionOption = None,
    registry: Optional[CacheRegistry] = None,
) -> Callable[..., T]:
    """
    Memoize a pure function.

    Args:
        fn: The function to wrap. Omit it to get a configured decorator.
        hash_function: A callable applied to every argument, or a sequence
            of per-position callables (None entries use the argument
            itself). The returned value becomes the cache key. Keys are
            matched like arguments: numbers, strings, bytes and None by
            value, anything else by identity. A hash function that builds
            a fresh tuple or list on every call never hits and pins each
            new key; return a string or number instead.
        registry: Registry holding the cache. Defaults to the process-wide
            registry, resolved on every call.

    Returns:
        A wrapper with fn's signature and a clear_cache(*args_prefix)
        method. Wrappers around the same fn share one cache.

    Raises:
        InvalidOptionsError: fn is not callable or hash_function is malformed.
    """
    if fn is None:
        KeyDeriver(hash_function)
        return functools.partial(memoize, hash_function=hash_function, registry=registry)

    if not callable(fn):
        raise InvalidOptionsError(f"memoize() requires a callable, got {type(fn).__name__}")

    deriver = KeyDeriver(hash_function)
    (registry or get_cache_registry()).remember_deriver(fn, deriver)

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        reg = registry or get_cache_registry()
        node = descend(reg.root(fn), _derived_keys(deriver, args, kwargs))
        counting = get_config().memo.record_metrics.get()
        tracing = _should_trace()

        if node.is_cached:
            if counting:
                reg.count("hits")
            if tracing:
                logger.debug("cache hit", operation="call", function=describe_callable(fn))
            return node.result

        if counting:
            reg.count("misses")
        if tracing:
            logger.debug("cache miss", operation="call", function=describe_callable(fn))

        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            if counting:
                reg.count("errors")
            logger.debug(
                "memoized function raised; result not cached",
                operation="call",
                function=describe_callable(fn),
                error=type(e).__name__,
            )
            raise

        node.store(result)
        return result

    def clear(*args_prefix: Any) -> bool:
        return (registry or get_cache_registry()).invalidate(fn, *args_prefix, deriver=deriver)

    clear.__doc__ = f"Drop cached results of {describe_callable(fn)} under the given argument prefix."
    wrapper.clear_cache = clear  # type: ignore
    wrapper._purememo_target = fn  # type: ignore

    return wrapper


memoize_pure_function = memoize


# ════════════════════════════════════════════════════════════════════════════
# INVALIDATION
# ════════════════════════════════════════════════════════════════════════════


def clear_cache(
    fn: Callable[..., Any],
    *args_prefix: Any,
    hash_function: HashFunctionOption = None,
    registry: Optional[CacheRegistry] = None,
) -> bool:
    """
    Drop cached results for fn, addressed by the original function.

    A memoized wrapper is accepted in place of its function. Prefix
    arguments are derived with hash_function when given, otherwise with
    the options of the latest wrapper built around fn.

    Returns:
        True when fn's cache (or the prefix subtree) was dropped. With no
        prefix this is always True; a missing prefix gives False.
    """
    target = getattr(fn, "__dict__", {}).get("_purememo_target", fn)
    deriver = KeyDeriver(hash_function) if hash_function is not None else None
    return (registry or get_cache_registry()).invalidate(target, *args_prefix, deriver=deriver)


def clear_global_cache(registry: Optional[CacheRegistry] = None) -> None:
    """Drop every memoized function's cache."""
    (registry or get_cache_registry()).clear()


__all__ = [
    "memoize",
    "memoize_pure_function",
    "clear_cache",
    "clear_global_cache",
]
