from __future__ import annotations as _annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Awaitable, Iterable, Sequence
from functools import cache
from typing import Any, Generic, Union, overload

from typing_extensions import Self, TypeAlias, TypeVar, Unpack

from . import exceptions
from .settings import NodeConfig, NodeSettings, build_config

__all__ = 'Node', 'KILL', 'Kill', 'Action', 'Params', 'DEFAULT_ACTION', 'StoreT', 'ItemT', 'ResultT'

StoreT = TypeVar('StoreT', default=Any)
"""Type variable for the store shared by every node in a run."""
ItemT = TypeVar('ItemT', default=Any)
"""Type variable for the items a node produces."""
ResultT = TypeVar('ResultT', default=Any)
"""Type variable for the result of processing a single item."""

DEFAULT_ACTION = 'default'
"""Edge key used when `aggregate` does not return a named action."""

_logger = logging.getLogger('pinflow')


class Kill:
    """A singleton returned from `aggregate` to stop the run, whatever edges are configured."""

    _instance: Kill | None = None

    def __new__(cls) -> Kill:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'KILL'

    def __reduce__(self) -> str:
        return 'KILL'


KILL = Kill()

Action: TypeAlias = str | Kill | None
"""Routing decision returned by `aggregate`: a named edge, `None` for the default edge, or `KILL` to stop."""

Params: TypeAlias = dict[str, Any]

Produced: TypeAlias = Union[
    Iterable[Union[ItemT, Awaitable[ItemT]]],
    AsyncIterable[Union[ItemT, Awaitable[ItemT]]],
]


class Node(ABC, Generic[StoreT, ItemT, ResultT]):
    """Base class for a node.

    A node runs in cycles: `produce` yields the items to work on, each item is passed to `process`
    concurrently (with retries), and `aggregate` receives every item and result once they have all finished
    and decides where the run goes next.

    Example:
    ```python
    from pinflow import Node, run


    class Shout(Node[dict, str, str]):
        def produce(self, store):
            yield from store['words']

        async def process(self, store, item):
            return item.upper()

        async def aggregate(self, store, produced_items, processed_results):
            store['shouted'] = processed_results
    ```
    """

    config: NodeConfig
    """Retry and concurrency configuration, see [`NodeSettings`][pinflow.settings.NodeSettings]."""
    params: Params
    """Free-form parameters, replaced with [`set_params`][pinflow.nodes.Node.set_params]."""
    edges: dict[str, Node[StoreT, Any, Any]]
    """Outgoing edges of this node keyed by action."""

    def __init__(self, **settings: Unpack[NodeSettings]):
        self.config = build_config(settings)
        self.params = {}
        self.edges = {}

    @abstractmethod
    def produce(self, store: StoreT) -> Produced[ItemT]:
        """Return the items for this cycle.

        Either a sync or an async iterable, typically a (async) generator. Items may themselves be awaitables,
        they are awaited before being processed.
        """
        raise NotImplementedError

    @abstractmethod
    async def process(self, store: StoreT, item: ItemT) -> ResultT:
        """Do the work for a single item, raising an exception causes the item to be retried."""
        raise NotImplementedError

    @abstractmethod
    async def aggregate(
        self, store: StoreT, produced_items: list[ItemT], processed_results: list[ResultT]
    ) -> Action:
        """Handle the results of a cycle and return the action used to choose the next node.

        `produced_items` and `processed_results` are aligned with each other, but are in the order items
        finished processing, not the order they were produced in.
        """
        raise NotImplementedError

    async def degrade(self, store: StoreT, item: ItemT, error: Exception) -> ResultT:
        """Return a substitute result once every attempt at processing `item` has failed.

        By default the error is re-raised, which aborts the run.
        """
        raise error

    def on_failure(self, error: Exception, attempt: int, max_retries: int) -> None:
        """Called after a failed attempt which will be retried, by default logs a warning."""
        _logger.warning(
            'Error [%d/%d] Node [%s]: %s', attempt, max_retries, self.get_id(), error, exc_info=error
        )

    @overload
    def connect(self, target: Node[StoreT, Any, Any], /) -> Self: ...

    @overload
    def connect(self, action: str, target: Node[StoreT, Any, Any], /) -> Self: ...

    def connect(self, action: str | Node[StoreT, Any, Any], target: Node[StoreT, Any, Any] | None = None, /) -> Self:
        """Connect this node to `target`, either as the default edge or for a named action."""
        if target is None:
            if not isinstance(action, Node):
                raise exceptions.NodeSetupError(f'Expected a `Node` to connect to, got `{action!r}`.')
            action, target = DEFAULT_ACTION, action
        elif not isinstance(action, str):
            raise exceptions.NodeSetupError(f'Edge actions must be strings, got `{action!r}`.')
        elif not isinstance(target, Node):
            raise exceptions.NodeSetupError(f'Expected a `Node` to connect to, got `{target!r}`.')
        self.edges[action] = target
        return self

    def get_edge(self, action: str) -> Node[StoreT, Any, Any] | None:
        return self.edges.get(action)

    def set_params(self, params: Params) -> Self:
        self.params = dict(params)
        return self

    def __rshift__(self, other: Node[StoreT, Any, Any]) -> Node[StoreT, Any, Any]:
        self.connect(other)
        return other

    def __sub__(self, action: str) -> _ActionEdge[StoreT]:
        if not isinstance(action, str):
            raise exceptions.NodeSetupError(f'Edge actions must be strings, got `{action!r}`.')
        return _ActionEdge(self, action)

    @classmethod
    @cache
    def get_id(cls) -> str:
        return cls.__name__

    def __repr__(self) -> str:
        return f'{self.get_id()}(edges={sorted(self.edges)})'


class _ActionEdge(Generic[StoreT]):
    """Result of `node - 'action'`, completed by `>> target`."""

    def __init__(self, source: Node[StoreT, Any, Any], action: str):
        self.source = source
        self.action = action

    def __rshift__(self, other: Node[StoreT, Any, Any]) -> Node[StoreT, Any, Any]:
        self.source.connect(self.action, other)
        return other


def edge_targets(node: Node[Any, Any, Any]) -> Sequence[tuple[str, Node[Any, Any, Any]]]:
    """The outgoing edges of `node` as `(action, target)` pairs, default edge first."""
    default = node.edges.get(DEFAULT_ACTION)
    named = [(action, target) for action, target in node.edges.items() if action != DEFAULT_ACTION]
    return ([(DEFAULT_ACTION, default)] if default is not None else []) + named
