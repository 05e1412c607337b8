"""Execution driver which runs nodes cycle by cycle and follows their edges.

Each cycle runs a node's `produce` step and starts a pipeline per produced item as soon as it arrives,
so processing overlaps with production. Once every pipeline has finished, `aggregate` chooses the action
used to pick the next node.
"""

from __future__ import annotations as _annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from time import perf_counter
from typing import Any, Generic

import anyio
import logfire_api

from . import _utils, exceptions
from .nodes import DEFAULT_ACTION, KILL, Action, Kill, Node, StoreT
from .retry import execute_with_retry

__all__ = 'run', 'run_sync', 'CycleStep', 'resolve_next_node'

_logfire = logfire_api.Logfire(otel_scope='pinflow')
_logger = logging.getLogger('pinflow')


@dataclass
class CycleStep(Generic[StoreT]):
    """History step describing one completed cycle of a node."""

    node: Node[StoreT, Any, Any]
    """The node that was run."""
    action: Action
    """The action returned by the node's `aggregate` step."""
    item_count: int
    """How many items the node's `produce` step yielded."""
    start_ts: datetime = field(default_factory=_utils.now_utc)
    """The timestamp when the cycle started."""
    duration: float | None = None
    """The duration of the cycle in seconds."""


async def run(node: Node[StoreT, Any, Any], store: StoreT) -> list[CycleStep[StoreT]]:
    """Run a graph starting from `node` until a node returns `KILL` or has no edge to follow.

    The same `store` is passed to every node. A node routing back to itself or to an earlier node is run
    again, as many times as the edges lead there.

    Args:
        node: The first node to run.
        store: State shared by every node of this run.

    Returns:
        One [`CycleStep`][pinflow.graph.CycleStep] per cycle, in the order they ran.

    Raises:
        Exception: The first failure which was not recovered by retries or a node's `degrade` step,
            nodes after the failing one are not run.
    """
    history: list[CycleStep[StoreT]] = []
    current: Node[StoreT, Any, Any] | None = node
    with _logfire.span('run {start_id}', start_id=node.get_id()) as run_span:
        while current is not None:
            step = await _run_cycle(current, store)
            history.append(step)
            current = resolve_next_node(current, step.action)
        run_span.set_attribute('cycles', len(history))
    return history


def run_sync(node: Node[StoreT, Any, Any], store: StoreT) -> list[CycleStep[StoreT]]:
    """Synchronously run a graph, see [`run`][pinflow.graph.run].

    This is a convenience method that wraps [`run`][pinflow.graph.run] with `anyio.run`, so it cannot be
    called from inside a running event loop.
    """
    return anyio.run(partial(run, node, store))


def resolve_next_node(node: Node[StoreT, Any, Any], action: Action) -> Node[StoreT, Any, Any] | None:
    """Find the node to run after `node` returned `action`, `None` means the run stops."""
    if isinstance(action, Kill):
        return None
    if action is None:
        target = node.get_edge(DEFAULT_ACTION)
    elif isinstance(action, str):
        target = node.get_edge(action)
        if target is None:
            target = node.get_edge(DEFAULT_ACTION)
    else:
        raise exceptions.NodeRuntimeError(
            f'Invalid action returned by `{node.get_id()}.aggregate`: `{action!r}`. '
            f'Expected a string, `None` or `{KILL!r}`.'
        )
    if target is None:
        _logger.debug('Node [%s] has no edge for action %r, stopping', node.get_id(), action)
    return target


async def _run_cycle(node: Node[StoreT, Any, Any], store: StoreT) -> CycleStep[StoreT]:
    node_id = node.get_id()
    produced_items: list[Any] = []
    processed_results: list[Any] = []
    failures: list[Exception] = []
    item_count = 0

    max_concurrency = node.config.max_concurrency
    semaphore = anyio.Semaphore(max_concurrency) if max_concurrency is not None else None

    async def pipeline(item: Any) -> None:
        try:
            item = await _utils.resolve_item(item)
            result = await execute_with_retry(node, store, item)
        except Exception as e:
            failures.append(e)
        else:
            # both appended together so the lists stay aligned, in completion order
            produced_items.append(item)
            processed_results.append(result)
        finally:
            if semaphore is not None:
                semaphore.release()

    with _logfire.span('run node {node_id}', node_id=node_id, node=node) as span:
        start_ts = _utils.now_utc()
        start = perf_counter()
        async with anyio.create_task_group() as tg:
            items = _utils.iter_items(node.produce(store), node_id)
            try:
                while True:
                    # a slot is taken before the producer is resumed, so it never runs ahead of the pipelines
                    if semaphore is not None:
                        await semaphore.acquire()
                    try:
                        item = await anext(items)
                    except StopAsyncIteration:
                        break
                    item_count += 1
                    tg.start_soon(pipeline, item)
            except Exception as e:
                failures.append(e)

        if failures:
            raise failures[0]

        action = await node.aggregate(store, produced_items, processed_results)
        span.set_attribute('item_count', item_count)
        span.set_attribute('action', repr(action))
        duration = perf_counter() - start

    return CycleStep(node=node, action=action, item_count=item_count, start_ts=start_ts, duration=duration)
