from __future__ import annotations as _annotations

import inspect
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from datetime import datetime, timezone
from typing import Any

from . import exceptions


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


async def iter_items(produced: Any, node_id: str) -> AsyncIterator[Any]:
    """Iterate over what a node's `produce` step returned, whether it is sync or async.

    Items are passed through as-is, awaitable items are resolved later by the pipeline that handles them.
    """
    if inspect.isawaitable(produced):
        produced = await produced
    if isinstance(produced, AsyncIterable):
        async for item in produced:
            yield item
    elif isinstance(produced, Iterable) and not isinstance(produced, (str, bytes)):
        for item in produced:
            yield item
    else:
        raise exceptions.NodeRuntimeError(
            f'`{node_id}.produce` must return an iterable or async iterable, got `{type(produced).__name__}`.'
        )


async def resolve_item(item: Any) -> Any:
    if inspect.isawaitable(item):
        return await item
    return item
