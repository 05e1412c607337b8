from __future__ import annotations as _annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Generic

import anyio
from typing_extensions import TypeVar

__all__ = ('SharedStore',)

T = TypeVar('T')


class SharedStore(Generic[T]):
    """A store value guarded by a lock, for nodes which write to the store from `process`.

    The engine never locks the store itself: pipelines of the same cycle run concurrently, so a `process`
    step which reads and then writes the store can interleave with its siblings. Wrapping the value in a
    `SharedStore` and doing the read-modify-write under [`locked`][pinflow.store.SharedStore.locked] avoids that.

    Example:
    ```python
    from pinflow import SharedStore

    store = SharedStore({'count': 0})


    async def increment() -> None:
        async with store.locked() as value:
            value['count'] += 1
    ```
    """

    def __init__(self, value: T):
        self._value = value
        self._lock = anyio.Lock()

    @property
    def value(self) -> T:
        """The wrapped value, reading it does not take the lock."""
        return self._value

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[T]:
        """Hold the lock for the duration of the `async with` block and yield the wrapped value."""
        async with self._lock:
            yield self._value

    async def update(self, func: Callable[[T], T]) -> T:
        """Replace the wrapped value with `func(value)` while holding the lock, and return the new value."""
        async with self._lock:
            self._value = func(self._value)
            return self._value

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self._value!r})'
