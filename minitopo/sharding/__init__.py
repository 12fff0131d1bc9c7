"""Shard template and manifest components."""

from .template import ShardTemplate, compare, compare_shape, same_shape
from .codec import from_config, load_template, dump_template, parse_shard_definition
from .manifest import Manifest

__all__ = [
    'ShardTemplate',
    'compare',
    'compare_shape',
    'same_shape',
    'from_config',
    'load_template',
    'dump_template',
    'parse_shard_definition',
    'Manifest',
]
