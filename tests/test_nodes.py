from __future__ import annotations as _annotations

import logging
import pickle
from typing import Any

import pytest
from inline_snapshot import snapshot

from pinflow import DEFAULT_ACTION, DEFAULT_NODE_CONFIG, KILL, Kill, Node, NodeConfig, NodeSetupError


class Echo(Node[dict[str, Any], str, str]):
    def produce(self, store: dict[str, Any]):
        yield store['input']

    async def process(self, store: dict[str, Any], item: str) -> str:
        return item

    async def aggregate(self, store: dict[str, Any], produced_items: list[str], processed_results: list[str]):
        store['output'] = processed_results[0]


class Other(Echo):
    pass


def test_default_config():
    node = Echo()
    assert node.config is DEFAULT_NODE_CONFIG
    assert node.config == snapshot(NodeConfig(max_retries=3, retry_delay=2.0, timeout=None, max_concurrency=None))
    assert node.params == {}
    assert node.edges == {}


def test_custom_config():
    node = Echo(max_retries=5, retry_delay=0.1, timeout=30.0)
    assert node.config.max_retries == 5
    assert node.config.retry_delay == 0.1
    assert node.config.timeout == 30.0
    assert node.config.max_concurrency is None
    # other nodes keep the defaults
    assert Echo().config.max_retries == 3


def test_config_is_frozen():
    node = Echo()
    with pytest.raises(ValueError):
        node.config.max_retries = 10  # type: ignore[misc]


@pytest.mark.parametrize(
    'settings',
    [
        {'max_retries': 0},
        {'timeout': 0},
        {'max_concurrency': 0},
        {'unknown_setting': 1},
    ],
)
def test_invalid_config(settings: dict[str, Any]):
    with pytest.raises(NodeSetupError, match='Invalid node settings'):
        Echo(**settings)


def test_negative_delay_is_accepted():
    # clamped when retrying, see test_retry.py
    assert Echo(retry_delay=-1).config.retry_delay == -1


def test_connect_default():
    a, b = Echo(), Other()
    assert a.connect(b) is a
    assert a.get_edge(DEFAULT_ACTION) is b
    assert a.get_edge('missing') is None


def test_connect_named_and_chained():
    a, b, c = Echo(), Other(), Echo()
    node = Echo(max_retries=2).set_params({'prefix': 'Prompt: '}).connect(a).connect('retry', b).connect('done', c)
    assert node.config.max_retries == 2
    assert node.params == {'prefix': 'Prompt: '}
    assert node.edges == {'default': a, 'retry': b, 'done': c}


def test_connect_last_wins():
    a, b, c = Echo(), Other(), Echo()
    a.connect('next', b).connect('next', c)
    assert a.get_edge('next') is c


def test_connect_invalid():
    node = Echo()
    with pytest.raises(NodeSetupError, match='Expected a `Node` to connect to'):
        node.connect('default')  # type: ignore[call-overload]
    with pytest.raises(NodeSetupError, match='Edge actions must be strings'):
        node.connect(KILL, Echo())  # type: ignore[call-overload]
    with pytest.raises(NodeSetupError, match='Expected a `Node` to connect to'):
        node.connect('next', 'not a node')  # type: ignore[call-overload]


def test_set_params_replaces_and_copies():
    params = {'a': 1}
    node = Echo().set_params(params)
    params['b'] = 2
    assert node.params == {'a': 1}
    node.set_params({'c': 3})
    assert node.params == {'c': 3}


def test_operators():
    a, b, c, d = Echo(), Other(), Echo(), Other()
    assert (a >> b >> c) is c
    assert a.get_edge(DEFAULT_ACTION) is b
    assert b.get_edge(DEFAULT_ACTION) is c

    assert (c - 'loop' >> d) is d
    assert c.get_edge('loop') is d
    assert c.get_edge(DEFAULT_ACTION) is None

    with pytest.raises(NodeSetupError, match='Edge actions must be strings'):
        c - 1  # type: ignore[operator]


def test_get_id_and_repr():
    a = Echo().connect('z', Other()).connect(Echo())
    assert Echo.get_id() == 'Echo'
    assert Other.get_id() == 'Other'
    assert repr(a) == snapshot("Echo(edges=['default', 'z'])")


def test_kill_sentinel():
    assert Kill() is KILL
    assert repr(KILL) == 'KILL'
    assert KILL != 'KILL'
    assert pickle.loads(pickle.dumps(KILL)) is KILL


def test_abstract_methods_required():
    class Incomplete(Node[Any, Any, Any]):
        def produce(self, store: Any):
            return []

    with pytest.raises(TypeError):
        Incomplete()  # type: ignore[abstract]


def test_default_on_failure_logs(pinflow_logs: pytest.LogCaptureFixture):
    node = Echo()
    try:
        raise ValueError('boom')
    except ValueError as e:
        node.on_failure(e, 1, 3)
    (record,) = [r for r in pinflow_logs.records if r.levelno == logging.WARNING]
    assert record.getMessage() == 'Error [1/3] Node [Echo]: boom'
    assert record.exc_info is not None
