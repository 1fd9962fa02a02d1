"""Decorator routing a function through RequestDeduplicator.execute."""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

from .deduplicator import RequestDeduplicator


class DeduplicatedWrapper:
    """Wrapper for functions decorated with @deduplicated.

    The operation name defaults to the function's qualified name and the
    parameters are the bound call arguments with defaults applied, so
    ``f(1)`` and ``f(x=1)`` share a key.

    Implements the descriptor protocol to support instance methods; the
    instance itself (``self``/``cls``) is never part of the key.

    Attributes:
        func: Original function
        deduplicator: Deduplicator handling the calls
        operation: Operation name used in keys
    """

    def __init__(
        self,
        func: Callable[..., Any],
        deduplicator: RequestDeduplicator,
        operation: str | None = None,
    ) -> None:
        if inspect.iscoroutinefunction(func):
            raise TypeError("@deduplicated does not support coroutine functions")

        self._func = func
        self._deduplicator = deduplicator
        self._operation = operation or func.__qualname__
        self._signature = inspect.signature(func)
        params = list(self._signature.parameters)
        self._skip_first = bool(params) and params[0] in ("self", "cls")

        wraps(func)(self)

    @property
    def operation(self) -> str:
        return self._operation

    def __get__(self, obj: Any, _objtype: type | None = None) -> "DeduplicatedWrapper | BoundDeduplicatedMethod":
        if obj is None:
            return self
        return BoundDeduplicatedMethod(self, obj)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        params = self._params(args, kwargs)
        return self._deduplicator.execute(self._operation, params, lambda: self._func(*args, **kwargs))

    def invalidate(self, *args: Any, **kwargs: Any) -> None:
        """Forget the cached result for these arguments."""
        self._deduplicator.invalidate(self._operation, self._params(args, kwargs))

    def _params(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        """Bind the call arguments to parameter names."""
        bound = self._signature.bind(*args, **kwargs)
        bound.apply_defaults()
        arguments = dict(bound.arguments)
        if self._skip_first:
            first = next(iter(self._signature.parameters))
            arguments.pop(first, None)
        return arguments


class BoundDeduplicatedMethod:
    """Wrapper for bound methods."""

    def __init__(self, wrapper: DeduplicatedWrapper, instance: Any) -> None:
        self._wrapper = wrapper
        self._instance = instance

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._wrapper(self._instance, *args, **kwargs)

    def invalidate(self, *args: Any, **kwargs: Any) -> None:
        self._wrapper.invalidate(self._instance, *args, **kwargs)


def deduplicated(
    deduplicator: RequestDeduplicator,
    operation: str | None = None,
) -> Callable[[Callable[..., Any]], DeduplicatedWrapper]:
    """Decorator deduplicating calls to a synchronous function.

    Args:
        deduplicator: Deduplicator handling the calls
        operation: Operation name (default: the function's qualified name)

    Returns:
        Decorator producing a DeduplicatedWrapper

    Example:
        ```python
        dedup = RequestDeduplicator(store)

        @deduplicated(dedup, operation="check")
        def check(user: str, relation: str, object: str) -> bool:
            return client.check(user=user, relation=relation, object=object)

        check("user:1", "viewer", "doc:1")
        check.invalidate("user:1", "viewer", "doc:1")
        ```
    """

    def decorator(fn: Callable[..., Any]) -> DeduplicatedWrapper:
        return DeduplicatedWrapper(fn, deduplicator, operation)

    return decorator
