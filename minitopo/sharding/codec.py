"""
Conversion between shard templates and their nested config form.

A node definition is "type[:arg1[:arg2]]":

    ReplicatingShard:2          logical kind with weight 2
    BlockedShard:hostA:2        fence, optional host annotation and weight
    SqlShard:db1.example:3      concrete kind on a host with weight 3

A node is a definition string (leaf) or a one-key mapping from the
definition to a single child node or to a list of child nodes.
"""

from typing import Any, List, Optional, Tuple

import yaml

from ..config import TableConfig, load_yaml
from ..errors import ParseError
from .template import DEFAULT_WEIGHT, LOGICAL_SHARD_TYPES, ShardTemplate


def _is_number(text: str) -> bool:
    """Whether a definition argument reads as a number (YAML scalar rules)."""
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError:
        return False
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_weight(text: Optional[str], definition: str) -> int:
    if text is None:
        return DEFAULT_WEIGHT
    try:
        weight = int(text)
    except ValueError:
        raise ParseError(f"weight must be an integer in: {definition!r}") from None
    if weight < 0:
        raise ParseError(f"weight must not be negative in: {definition!r}")
    return weight


def parse_shard_definition(definition: str) -> Tuple[str, Optional[str], int]:
    """
    Parse one node definition into (kind, host, weight).

    Raises:
        ParseError: if a host is missing for a concrete kind, supplied for
            a replicating kind, or a weight isn't an integer
    """
    if not isinstance(definition, str) or not definition:
        raise ParseError(f"invalid shard definition: {definition!r}")

    parts = definition.split(":")
    if len(parts) > 3:
        raise ParseError(f"too many fields in shard definition: {definition!r}")

    kind = parts[0]
    arg1 = parts[1] if len(parts) > 1 else None
    arg2 = parts[2] if len(parts) > 2 else None

    if kind in LOGICAL_SHARD_TYPES:
        if arg1 is None or _is_number(arg1):
            if arg2 is not None:
                raise ParseError(f"cannot specify a host for {kind} shard in: {definition!r}")
            return kind, None, _parse_weight(arg1, definition)

        if "ReplicatingShard" in kind:
            raise ParseError(f"cannot specify a host for {kind} shard in: {definition!r}")

        # Fences are identified by their derived host, so allow it to be echoed back
        return kind, arg1, _parse_weight(arg2, definition)

    if not arg1 or _is_number(arg1):
        raise ParseError(f"must specify a host for {kind} shard in: {definition!r}")

    return kind, arg1, _parse_weight(arg2, definition)


def parse_link_struct(node: Any) -> Tuple[str, List[Any]]:
    """Split a config node into its definition and child nodes."""
    if isinstance(node, str):
        return node, []

    if isinstance(node, dict) and len(node) == 1:
        definition, children = next(iter(node.items()))
        if children is None:
            return definition, []
        if isinstance(children, (str, dict)):
            return definition, [children]
        if isinstance(children, list):
            return definition, children

    raise ParseError(f"invalid shard tree: {node!r}")


def from_config(table_config: TableConfig, node: Any) -> ShardTemplate:
    """Build a template tree from its nested config form."""
    definition, child_nodes = parse_link_struct(node)
    kind, host, weight = parse_shard_definition(definition)
    children = [from_config(table_config, child) for child in child_nodes]

    return ShardTemplate(kind, host, weight, table_config.source_type,
                         table_config.dest_type, children)


def load_template(path: str) -> Tuple[TableConfig, ShardTemplate]:
    """
    Load a desired-state file.

    Expected keys: source_type, destination_type, table_prefix, template.
    """
    data = load_yaml(path)
    if "template" not in data:
        raise ParseError(f"missing 'template' in {path}")

    table_config = TableConfig.from_dict(data)
    return table_config, from_config(table_config, data["template"])


def dump_template(template: ShardTemplate) -> str:
    """YAML text for a template's config form."""
    return yaml.safe_dump(template.to_config(), default_flow_style=False, sort_keys=False)
