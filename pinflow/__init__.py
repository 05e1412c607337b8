from .exceptions import NodeRuntimeError, NodeSetupError, PinflowError
from .graph import CycleStep, run, run_sync
from .nodes import DEFAULT_ACTION, KILL, Action, Kill, Node, Params
from .settings import DEFAULT_NODE_CONFIG, NodeConfig, NodeSettings
from .store import SharedStore

__all__ = (
    'run',
    'run_sync',
    'CycleStep',
    'Node',
    'KILL',
    'Kill',
    'Action',
    'Params',
    'DEFAULT_ACTION',
    'NodeConfig',
    'NodeSettings',
    'DEFAULT_NODE_CONFIG',
    'SharedStore',
    'PinflowError',
    'NodeSetupError',
    'NodeRuntimeError',
)
