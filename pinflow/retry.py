"""Bounded retries around a node's `process` step."""

from __future__ import annotations as _annotations

import logging
from contextlib import nullcontext
from typing import Any

import anyio
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from .nodes import ItemT, Node, ResultT, StoreT

__all__ = ('execute_with_retry',)

_logger = logging.getLogger('pinflow')


async def execute_with_retry(node: Node[StoreT, ItemT, ResultT], store: StoreT, item: ItemT) -> ResultT:
    """Process `item` with `node`, retrying failures according to `node.config`.

    After a failed attempt which will be retried, [`on_failure`][pinflow.nodes.Node.on_failure] is called and
    the configured delay is awaited. If the last attempt fails, the result of
    [`degrade`][pinflow.nodes.Node.degrade] is returned instead, by default that re-raises the error.

    Args:
        node: The node whose `process` step is run.
        store: The store of the current run.
        item: The produced item to process.

    Returns:
        The result of the first successful attempt, or the degraded result.
    """
    config = node.config
    max_retries = config.max_retries

    def before_sleep(retry_state: RetryCallState) -> None:
        assert retry_state.outcome is not None
        error = retry_state.outcome.exception()
        assert isinstance(error, Exception)
        node.on_failure(error, retry_state.attempt_number, max_retries)

    retryer = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_fixed(max(config.retry_delay, 0)),
        retry=retry_if_exception_type(Exception),
        before_sleep=before_sleep,
        sleep=anyio.sleep,
        reraise=True,
    )
    try:
        async for attempt in retryer:
            with attempt:
                with _deadline(config.timeout):
                    return await node.process(store, item)
    except Exception as e:
        _logger.debug('Node [%s] exhausted %d attempts, degrading', node.get_id(), max_retries)
        return await node.degrade(store, item, e)
    raise RuntimeError('Retrying finished without a result or an error')  # pragma: no cover


def _deadline(timeout: float | None) -> Any:
    if timeout is None:
        return nullcontext()
    return anyio.fail_after(timeout)
