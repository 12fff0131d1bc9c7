"""
minitopo
Shard topology templates, config codec and manifest reconciliation for a
partitioned, replicated data store.
"""

__version__ = "1.0.0"
__author__ = "The minitopo Contributors"

from .config import ClientConfig, TableConfig
from .errors import (
    TopologyError, ParseError, TemplateError, UnrecognizedKindError,
    InvalidComparisonError, RpcError, TransientRpcError,
)
from .nameserver import Nameserver
from .sharding import ShardTemplate, Manifest, from_config, load_template

__all__ = [
    # Config
    'ClientConfig',
    'TableConfig',
    # Errors
    'TopologyError',
    'ParseError',
    'TemplateError',
    'UnrecognizedKindError',
    'InvalidComparisonError',
    'RpcError',
    'TransientRpcError',
    # Topology
    'Nameserver',
    'ShardTemplate',
    'Manifest',
    'from_config',
    'load_template',
]
