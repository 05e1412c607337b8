from __future__ import annotations as _annotations

import logging
from collections.abc import Iterator

import pytest
from dirty_equals import IsFloat, IsNow

__all__ = 'IsFloat', 'IsNow'


@pytest.fixture
def anyio_backend() -> str:
    return 'asyncio'


@pytest.fixture
def pinflow_logs(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    with caplog.at_level(logging.DEBUG, logger='pinflow'):
        yield caplog
