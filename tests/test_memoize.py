"""
Tests for memoize()

Call counting, argument kinds, custom hash functions, error handling,
keyword arguments, methods and recursion.
"""

import gc
import random
from unittest.mock import Mock

import pytest


class Box:
    def __init__(self, **fields):
        self.__dict__.update(fields)


# ════════════════════════════════════════════════════════════════════════════
# BASIC MEMOIZATION
# ════════════════════════════════════════════════════════════════════════════


class TestMemoize:
    """Tests for cached calls."""

    def test_same_arguments_call_once(self):
        """Repeated arguments hit the cache."""
        from purememo import memoize

        fn = Mock(side_effect=lambda x, y: x + y)
        memoized = memoize(fn)

        assert memoized(1, 2) == 3
        assert memoized(1, 2) == 3
        assert fn.call_count == 1

    def test_different_arguments_call_again(self):
        """New arguments compute, old ones stay cached."""
        from purememo import memoize

        fn = Mock(side_effect=lambda x, y: x + y)
        memoized = memoize(fn)

        assert memoized(1, 2) == 3
        assert memoized(3, 4) == 7
        assert memoized(1, 2) == 3
        assert fn.call_count == 2

    def test_add_scenario_with_clear(self):
        """Compute, hit, compute, clear, recompute."""
        from purememo import clear_cache, memoize

        fn = Mock(side_effect=lambda x, y: x + y)
        memoized = memoize(fn)

        assert memoized(1, 2) == 3
        assert memoized(1, 2) == 3
        assert fn.call_count == 1
        assert memoized(3, 4) == 7
        assert fn.call_count == 2

        clear_cache(fn)

        assert memoized(1, 2) == 3
        assert fn.call_count == 3

    def test_no_arguments(self):
        """Zero-argument calls collapse to one slot."""
        from purememo import memoize

        fn = Mock(side_effect=random.random)
        memoized = memoize(fn)

        assert memoized() == memoized()
        assert fn.call_count == 1

    def test_single_argument(self):
        """One argument per call."""
        from purememo import memoize

        fn = Mock(side_effect=lambda x: x * 2)
        memoized = memoize(fn)

        assert memoized(5) == 10
        assert memoized(5) == 10
        assert memoized(10) == 20
        assert fn.call_count == 2

    def test_mixed_argument_types(self):
        """Strings, numbers and booleans key separately."""
        from purememo import memoize

        fn = Mock(side_effect=lambda s, n, b: f"{s}-{n}-{b}")
        memoized = memoize(fn)

        assert memoized("test", 42, True) == "test-42-True"
        assert memoized("test", 42, True) == "test-42-True"
        assert memoized("test", 42, False) == "test-42-False"
        assert fn.call_count == 2

    def test_object_arguments_key_by_identity(self):
        """Equal but distinct objects are separate calls."""
        from purememo import memoize

        fn = Mock(side_effect=lambda obj: obj.a * 2)
        memoized = memoize(fn)
        obj1 = Box(a=1)
        obj2 = Box(a=1)

        assert memoized(obj1) == 2
        assert memoized(obj1) == 2
        assert memoized(obj2) == 2
        assert fn.call_count == 2

    def test_list_and_dict_arguments(self):
        """Unhashable arguments key by identity."""
        from purememo import memoize

        fn = Mock(side_effect=lambda seq: sum(seq))
        memoized = memoize(fn)
        arr1 = [1, 2, 3]
        arr2 = [1, 2, 3]

        assert memoized(arr1) == 6
        assert memoized(arr1) == 6
        assert memoized(arr2) == 6
        assert fn.call_count == 2

        lookup = Mock(side_effect=lambda d: d["k"])
        memoized_lookup = memoize(lookup)
        table = {"k": "v"}
        assert memoized_lookup(table) == "v"
        assert memoized_lookup(table) == "v"
        assert lookup.call_count == 1

    def test_none_and_missing_arguments(self):
        """None and MISSING are different keys, in order."""
        from purememo import MISSING, memoize

        fn = Mock(side_effect=lambda a, b: f"{a}-{b}")
        memoized = memoize(fn)

        assert memoized(None, MISSING) == "None-MISSING"
        assert memoized(None, MISSING) == "None-MISSING"
        assert memoized(MISSING, None) == "MISSING-None"
        assert fn.call_count == 2

    def test_bool_int_float_keys(self):
        """True and 1 differ; 1 and 1.0 share; NaNs share."""
        from purememo import memoize

        fn = Mock(side_effect=lambda x: repr(x))
        memoized = memoize(fn)

        memoized(1)
        memoized(True)
        assert fn.call_count == 2

        memoized(1.0)
        assert fn.call_count == 2

        memoized(float("nan"))
        memoized(float("nan"))
        assert fn.call_count == 3

    def test_return_types_preserved(self):
        """Wrapped functions return what they return."""
        from purememo import memoize

        assert memoize(str)(42) == "42"
        assert memoize(int)("123") == 123
        assert memoize(lambda x: x > 0)(5) is True

    def test_none_result_is_cached(self):
        """A None result is still a cached result."""
        from purememo import memoize

        fn = Mock(return_value=None)
        memoized = memoize(fn)

        assert memoized() is None
        assert memoized() is None
        assert fn.call_count == 1

    def test_many_arguments(self):
        """Deep argument lists work like short ones."""
        from purememo import memoize

        fn = Mock(side_effect=lambda *args: sum(args))
        memoized = memoize(fn)

        assert memoized(1, 2, 3, 4, 5) == 15
        assert memoized(1, 2, 3, 4, 5) == 15
        assert memoized(1, 2, 3, 4, 6) == 16
        assert fn.call_count == 2

    def test_argument_order_matters(self):
        """(5, 3) and (3, 5) are different calls."""
        from purememo import memoize

        fn = Mock(side_effect=lambda a, b: a - b)
        memoized = memoize(fn)

        assert memoized(5, 3) == 2
        assert memoized(3, 5) == -2
        assert memoized(5, 3) == 2
        assert fn.call_count == 2

    def test_prefix_call_does_not_collide_with_longer_call(self):
        """f(1) and f(1, 2) have separate results."""
        from purememo import memoize

        fn = Mock(side_effect=lambda *args: len(args))
        memoized = memoize(fn)

        assert memoized(1, 2) == 2
        assert memoized(1) == 1
        assert memoized(1, 2) == 2
        assert fn.call_count == 2

    def test_wrapper_keeps_metadata(self):
        """functools.wraps metadata is carried over."""
        from purememo import memoize

        def area(width, height):
            """Rectangle area."""
            return width * height

        memoized = memoize(area)

        assert memoized.__name__ == "area"
        assert memoized.__doc__ == "Rectangle area."
        assert memoized.__wrapped__ is area
        assert callable(memoized.clear_cache)

    def test_decorator_forms(self):
        """@memoize and @memoize(...) both work."""
        from purememo import memoize

        calls = []

        @memoize
        def plain(x):
            calls.append(x)
            return x

        @memoize(hash_function=str.lower)
        def folded(x):
            calls.append(x)
            return x.lower()

        plain(1)
        plain(1)
        folded("A")
        folded("a")

        assert calls == [1, "A"]

    def test_rejects_non_callable(self):
        """memoize() needs a callable."""
        from purememo import InvalidOptionsError, memoize

        with pytest.raises(InvalidOptionsError):
            memoize(42)

    def test_memoize_pure_function_alias(self):
        """The long name is the same function."""
        from purememo import memoize, memoize_pure_function

        assert memoize_pure_function is memoize


# ════════════════════════════════════════════════════════════════════════════
# ERRORS
# ════════════════════════════════════════════════════════════════════════════


class TestErrors:
    """Tests for error propagation and non-caching."""

    def test_errors_are_not_cached(self):
        """A raising call retries next time."""
        from purememo import memoize

        def body(should_raise):
            if should_raise:
                raise ValueError("Test error")
            return "success"

        fn = Mock(side_effect=body)
        memoized = memoize(fn)

        with pytest.raises(ValueError, match="Test error"):
            memoized(True)
        with pytest.raises(ValueError, match="Test error"):
            memoized(True)
        assert memoized(False) == "success"
        assert memoized(False) == "success"
        assert fn.call_count == 3

    def test_node_stays_uncached_after_error(self):
        """The leaf exists but holds no result."""
        from purememo import get_cache_registry, memoize
        from purememo.trie import NodeStatus

        def fn(x):
            raise KeyError(x)

        memoized = memoize(fn)
        with pytest.raises(KeyError):
            memoized("k")

        leaf = get_cache_registry().peek_root(fn).children.get("k")
        assert leaf.status is NodeStatus.UNCACHED

    def test_success_after_failure_is_cached(self):
        """Once a retry succeeds, its result sticks."""
        from purememo import memoize

        attempts = []

        def flaky(x):
            attempts.append(x)
            if len(attempts) == 1:
                raise ConnectionError("first try fails")
            return x * 10

        memoized = memoize(flaky)

        with pytest.raises(ConnectionError):
            memoized(4)
        assert memoized(4) == 40
        assert memoized(4) == 40
        assert len(attempts) == 2


# ════════════════════════════════════════════════════════════════════════════
# HASH FUNCTIONS
# ════════════════════════════════════════════════════════════════════════════


class TestHashFunctions:
    """Tests for custom key derivation."""

    def test_single_hash_function(self):
        """One hash function for every argument."""
        from purememo import memoize

        fn = Mock(side_effect=lambda a, b: a.id + b.id)
        hash_fn = Mock(side_effect=lambda obj: obj.id)
        memoized = memoize(fn, hash_function=hash_fn)

        assert memoized(Box(id=1), Box(id=2)) == 3
        assert memoized(Box(id=1), Box(id=2)) == 3
        assert fn.call_count == 1
        assert hash_fn.call_count == 4

    def test_per_position_hash_functions(self):
        """Each position gets its own hash function."""
        from purememo import memoize

        fn = Mock(side_effect=lambda user, product: f"{user.name}-{product.price}")
        user_hash = Mock(side_effect=lambda user: user.name)
        product_hash = Mock(side_effect=lambda product: product.price)
        memoized = memoize(fn, hash_function=[user_hash, product_hash])

        assert memoized(Box(name="john"), Box(price=100)) == "john-100"
        assert memoized(Box(name="john"), Box(price=100)) == "john-100"
        assert fn.call_count == 1
        assert user_hash.call_count == 2
        assert product_hash.call_count == 2

    def test_hash_functions_see_their_own_position(self):
        """Position i's hash function only sees argument i."""
        from purememo import memoize

        first_hash = Mock(side_effect=lambda obj: f"first-{obj.val}")
        second_hash = Mock(side_effect=lambda obj: f"second-{obj.val}")
        memoized = memoize(lambda a, b: a.val + b.val, hash_function=[first_hash, second_hash])

        obj1 = Box(val=1)
        obj2 = Box(val=2)
        memoized(obj1, obj2)

        first_hash.assert_called_once_with(obj1)
        second_hash.assert_called_once_with(obj2)

    def test_hash_function_collapses_equal_objects(self):
        """Structurally equal arguments share a result."""
        from purememo import memoize

        fn = Mock(side_effect=lambda p: f"{p.name} is {p.age}")
        memoized = memoize(fn, hash_function=lambda p: f"{p.name}-{p.age}")

        assert memoized(Box(name="Alice", age=25)) == "Alice is 25"
        assert memoized(Box(name="Alice", age=25)) == "Alice is 25"
        assert memoized(Box(name="Bob", age=30)) == "Bob is 30"
        assert fn.call_count == 2

    def test_hash_function_returning_object(self):
        """An object derived key collapses every argument onto it."""
        from purememo import memoize

        key = Box(key="test")
        fn = Mock(side_effect=lambda obj: obj.data)
        memoized = memoize(fn, hash_function=lambda _: key)

        assert memoized(Box(data="value1")) == "value1"
        assert memoized(Box(data="value2")) == "value1"
        assert fn.call_count == 1

    def test_hash_function_returning_none(self):
        """None is a valid derived key."""
        from purememo import memoize

        fn = Mock(side_effect=lambda obj: obj.value)
        hash_fn = Mock(return_value=None)
        memoized = memoize(fn, hash_function=hash_fn)

        assert memoized(Box(value="first")) == "first"
        assert memoized(Box(value="second")) == "first"
        assert fn.call_count == 1
        assert hash_fn.call_count == 2

    def test_gaps_in_hash_function_list(self):
        """None entries use the argument itself."""
        from purememo import memoize

        fn = Mock(side_effect=lambda a, b, c: f"{a}-{b.id}-{c}")
        memoized = memoize(fn, hash_function=[None, lambda b: b.id, None])

        assert memoized("test", Box(id=1), 42) == "test-1-42"
        assert memoized("test", Box(id=1), 42) == "test-1-42"
        assert fn.call_count == 1

    def test_mixed_hash_function_list(self):
        """Upper-casing and boolean labelling around an identity slot."""
        from purememo import memoize

        fn = Mock(side_effect=lambda s, n, b: f"{s}-{n}-{b}")
        memoized = memoize(fn, hash_function=[str.upper, None, lambda b: "T" if b else "F"])

        assert memoized("test", 42, True) == "test-42-True"
        assert memoized("TEST", 42, True) == "test-42-True"
        assert fn.call_count == 1

    def test_hash_function_errors_propagate(self):
        """A failing hash function raises to the caller."""
        from purememo import memoize

        def explode(_):
            raise RuntimeError("Hash error")

        fn = Mock()
        memoized = memoize(fn, hash_function=explode)

        with pytest.raises(RuntimeError, match="Hash error"):
            memoized(Box(value="test"))
        assert fn.call_count == 0

    def test_hash_error_creates_no_node_at_its_position(self):
        """Earlier positions keep their nodes; the failing one gets none."""
        from purememo import get_cache_registry, memoize

        def second(_):
            raise RuntimeError("second position")

        def fn(a, b):
            return a

        memoized = memoize(fn, hash_function=[None, second])

        with pytest.raises(RuntimeError):
            memoized("first", "second")

        first = get_cache_registry().peek_root(fn).children.get("first")
        assert first is not None
        assert len(first.children) == 0

    def test_empty_options_keep_identity(self):
        """No hash_function means identity keys."""
        from purememo import memoize

        fn = Mock(side_effect=lambda a, b: a.a + b.b)
        memoized = memoize(fn, hash_function=None)
        obj1 = Box(a=1)
        obj2 = Box(b=2)

        assert memoized(obj1, obj2) == 3
        assert memoized(obj1, obj2) == 3
        assert memoized(Box(a=1), Box(b=2)) == 3
        assert fn.call_count == 2

    def test_no_argument_function_ignores_hash_function(self):
        """No arguments, nothing to hash."""
        from purememo import memoize

        fn = Mock(side_effect=random.random)
        memoized = memoize(fn, hash_function=lambda _: "key")

        assert memoized() == memoized()
        assert fn.call_count == 1

    def test_single_entry_hash_list(self):
        """A one-element list hashes the first argument."""
        from purememo import memoize

        fn = Mock(side_effect=lambda obj: obj.val.upper())
        memoized = memoize(fn, hash_function=[lambda obj: obj.val])

        assert memoized(Box(val="hello")) == "HELLO"
        assert memoized(Box(val="hello")) == "HELLO"
        assert fn.call_count == 1

    def test_tuple_keys_match_by_identity(self):
        """A fresh tuple per call is a new key; a string key collapses."""
        from purememo import get_cache_registry, memoize

        def by_tuple(p):
            return p.x + p.y

        def by_string(p):
            return p.x + p.y

        tupled = memoize(by_tuple, hash_function=lambda p: (p.x, p.y))
        stringed = memoize(by_string, hash_function=lambda p: f"{p.x},{p.y}")

        for _ in range(3):
            tupled(Box(x=1, y=2))
            stringed(Box(x=1, y=2))

        registry = get_cache_registry()
        assert len(registry.peek_root(by_tuple).children) == 3
        assert len(registry.peek_root(by_string).children) == 1
        assert registry.metrics.misses == 4
        assert "fresh tuple" in memoize.__doc__

    def test_malformed_hash_function_rejected(self):
        """Bad options fail at decoration time."""
        from purememo import InvalidOptionsError, memoize

        with pytest.raises(InvalidOptionsError):
            memoize(len, hash_function="len")
        with pytest.raises(InvalidOptionsError):
            memoize(hash_function=[1])


# ════════════════════════════════════════════════════════════════════════════
# KEYWORDS, METHODS, RECURSION
# ════════════════════════════════════════════════════════════════════════════


class TestCallShapes:
    """Tests for keyword arguments, methods and re-entrant calls."""

    def test_keyword_order_does_not_matter(self):
        """f(a=1, b=2) and f(b=2, a=1) share a result."""
        from purememo import memoize

        fn = Mock(side_effect=lambda a, b: a * 10 + b)
        memoized = memoize(fn)

        assert memoized(a=1, b=2) == 12
        assert memoized(b=2, a=1) == 12
        assert fn.call_count == 1

    def test_keywords_do_not_collide_with_positionals(self):
        """f(1, b=2) and f(1, 'b', 2) are different calls."""
        from purememo import memoize

        fn = Mock(side_effect=lambda *args, **kwargs: (args, kwargs))
        memoized = memoize(fn)

        assert memoized(1, b=2) == ((1,), {"b": 2})
        assert memoized(1, "b", 2) == ((1, "b", 2), {})
        assert fn.call_count == 2

    def test_single_hash_function_applies_to_keywords(self):
        """A common hash function also hashes keyword values."""
        from purememo import memoize

        fn = Mock(side_effect=lambda user: user.name)
        memoized = memoize(fn, hash_function=lambda u: u.name)

        assert memoized(user=Box(name="ann")) == "ann"
        assert memoized(user=Box(name="ann")) == "ann"
        assert fn.call_count == 1

    def test_methods_key_on_receiver(self):
        """Each instance gets its own cached result."""
        from purememo import memoize

        class Account:
            def __init__(self, balance):
                self.balance = balance
                self.calls = 0

            @memoize
            def doubled(self):
                self.calls += 1
                return self.balance * 2

        first = Account(10)
        second = Account(10)

        assert first.doubled() == 20
        assert first.doubled() == 20
        assert second.doubled() == 20
        assert first.calls == 1
        assert second.calls == 1

    def test_recursive_function(self):
        """Recursive calls reuse the cache as it grows."""
        from purememo import memoize

        calls = []

        @memoize
        def fib(n):
            calls.append(n)
            return n if n < 2 else fib(n - 1) + fib(n - 2)

        assert fib(30) == 832040
        assert sorted(calls) == list(range(31))

        assert fib(30) == 832040
        assert len(calls) == 31


# ════════════════════════════════════════════════════════════════════════════
# GARBAGE COLLECTION
# ════════════════════════════════════════════════════════════════════════════


class TestCollection:
    """Tests for weak release of argument objects."""

    def test_entry_released_with_argument(self):
        """Dropping the only reference to an argument drops its edge."""
        from purememo import get_cache_registry, memoize

        def name_of(box):
            return box.name

        memoized = memoize(name_of)
        arg = Box(name="temp")
        assert memoized(arg) == "temp"

        root = get_cache_registry().peek_root(name_of)
        assert len(root.children) == 1

        del arg
        gc.collect()

        assert len(root.children) == 0

    def test_subtree_released_with_middle_argument(self):
        """An object at any position takes its subtree with it."""
        from purememo import get_cache_registry, memoize

        def combine(a, b, c):
            return (a, c)

        memoized = memoize(combine)
        middle = Box()
        memoized("a", middle, "c")

        first = get_cache_registry().peek_root(combine).children.get("a")
        assert len(first.children) == 1

        del middle
        gc.collect()

        assert len(first.children) == 0
