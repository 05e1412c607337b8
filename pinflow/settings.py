from __future__ import annotations as _annotations

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import TypedDict

from . import exceptions

__all__ = 'NodeSettings', 'NodeConfig', 'DEFAULT_NODE_CONFIG', 'build_config'


class NodeSettings(TypedDict, total=False):
    """Keyword settings accepted by [`Node`][pinflow.nodes.Node] to configure retries and fan-out."""

    max_retries: int
    """Total number of attempts made for each item before giving up, must be at least 1."""

    retry_delay: float
    """Seconds to wait between attempts, negative values are treated as `0`."""

    timeout: float | None
    """Deadline in seconds for a single attempt of `process`, `None` means attempts are never cut short.

    An attempt which runs past its deadline fails with `TimeoutError` and is retried like any other failure.
    """

    max_concurrency: int | None
    """Maximum number of items processed at the same time, `None` means no limit."""


class NodeConfig(BaseModel):
    """Validated retry and concurrency configuration of a node."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = 2.0
    timeout: float | None = Field(default=None, gt=0)
    max_concurrency: int | None = Field(default=None, ge=1)


DEFAULT_NODE_CONFIG = NodeConfig()
"""Configuration used by nodes constructed without settings."""


def build_config(settings: NodeSettings) -> NodeConfig:
    if not settings:
        return DEFAULT_NODE_CONFIG
    try:
        return NodeConfig(**settings)
    except pydantic.ValidationError as e:
        raise exceptions.NodeSetupError(f'Invalid node settings: {e}') from e
