"""
Shard templates: comparable, immutable trees describing a shard topology.

A template is independent of any particular table. Concrete nodes are
physical shards on a host; logical nodes (replicating, read-only,
write-only, blocked) compose their children.
"""

from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import InvalidComparisonError, TemplateError, UnrecognizedKindError
from ..network.records import ShardId, ShardInfo


ABSTRACT_HOST = "localhost"
DEFAULT_WEIGHT = 1

LOGICAL_SHARD_TYPES = (
    "com.twitter.gizzard.shards.ReplicatingShard",
    "com.twitter.gizzard.shards.ReadOnlyShard",
    "com.twitter.gizzard.shards.WriteOnlyShard",
    "com.twitter.gizzard.shards.BlockedShard",
    "ReplicatingShard",
    "ReadOnlyShard",
    "WriteOnlyShard",
    "BlockedShard",
)

# Fencing kinds never hold data, so they can't be read from
INVALID_COPY_TYPES = ("ReadOnlyShard", "WriteOnlyShard", "BlockedShard")

SHARD_SUFFIXES = {
    "ReplicatingShard": "replicating",
    "ReadOnlyShard": "read_only",
    "WriteOnlyShard": "write_only",
    "BlockedShard": "blocked",
}


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _check_comparable(a, b):
    if not isinstance(a, ShardTemplate) or not isinstance(b, ShardTemplate):
        raise InvalidComparisonError(
            f"cannot compare {type(a).__name__} with {type(b).__name__}"
        )


def _compare_children(a: Sequence['ShardTemplate'], b: Sequence['ShardTemplate'],
                      include_weight: bool) -> int:
    """Lexicographic comparison of two sorted child sequences."""
    for left, right in zip(a, b):
        result = _compare(left, right, True, include_weight)
        if result:
            return result
    return _cmp(len(a), len(b))


def _compare(a: 'ShardTemplate', b: 'ShardTemplate', deep: bool, include_weight: bool) -> int:
    _check_comparable(a, b)

    result = _cmp((a.host, a.kind), (b.host, b.kind))
    if result:
        return result

    if include_weight:
        result = _cmp(a.weight, b.weight)
        if result:
            return result

    if deep:
        return _compare_children(a.children, b.children, include_weight)

    return 0


def compare(a: 'ShardTemplate', b: 'ShardTemplate') -> int:
    """
    Full structural ordering of two templates.

    Orders by (host, kind), then weight, then the children lexicographically.
    Returns -1, 0 or 1. This is the ordering behind ==, <, sorting and
    hashing.
    """
    return _compare(a, b, True, True)


def compare_shape(a: 'ShardTemplate', b: 'ShardTemplate', deep: bool = False) -> int:
    """
    Weight-insensitive ordering of two templates.

    With deep=False only the nodes themselves are compared by (host, kind);
    with deep=True the children are compared too, still ignoring weights.
    """
    return _compare(a, b, deep, False)


def same_shape(a: 'ShardTemplate', b: 'ShardTemplate') -> bool:
    """True if two trees have the same hosts and kinds throughout."""
    return compare_shape(a, b, deep=True) == 0


class ShardTemplate:
    """
    A node in a shard topology tree.

    Children are kept sorted in descending structural order, so two trees
    built from the same nodes in a different order are equal.
    """

    __slots__ = ("_kind", "_host", "_weight", "_source_type", "_dest_type",
                 "_children", "_hash")

    def __init__(self, kind: str, host: Optional[str], weight: int = DEFAULT_WEIGHT,
                 source_type: str = "", dest_type: str = "",
                 children: Iterable['ShardTemplate'] = ()):
        self._kind = kind
        self._weight = weight
        self._source_type = source_type or ""
        self._dest_type = dest_type or ""
        self._children: Tuple[ShardTemplate, ...] = tuple(
            sorted(children, key=cmp_to_key(compare), reverse=True)
        )

        if self.is_concrete():
            self._host = host
        elif self.is_replicating():
            self._host = ABSTRACT_HOST
        elif self._children:
            self._host = self._children[0].host
        elif host:
            # A childless fence keeps the host it was declared with
            self._host = host
        else:
            raise TemplateError(f"{kind} shard needs a child or a host to derive its host from")

        self._hash = hash((self._weight, self._host, self._kind, self._children))

    # ============ Accessors ============

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def host(self) -> str:
        return self._host

    @property
    def weight(self) -> int:
        return self._weight

    @property
    def source_type(self) -> str:
        return self._source_type

    @property
    def dest_type(self) -> str:
        return self._dest_type

    @property
    def children(self) -> Tuple['ShardTemplate', ...]:
        return self._children

    def is_concrete(self) -> bool:
        return self._kind not in LOGICAL_SHARD_TYPES

    def is_replicating(self) -> bool:
        return "ReplicatingShard" in self._kind

    def short_kind(self) -> str:
        return self._kind.split(".")[-1]

    def identifier(self) -> str:
        if self.is_replicating():
            return self.short_kind()
        return f"{self.short_kind()}:{self.host}"

    def descendant_identifiers(self) -> List[str]:
        """Sorted identifiers of every concrete shard in this subtree."""
        ids = set()
        for child in self._children:
            ids.update(child.descendant_identifiers())
        if self.is_concrete():
            ids.add(self.identifier())
        return sorted(ids)

    # ============ Copy sources ============

    def copy_sources(self, multiplier: float = 1.0) -> Dict['ShardTemplate', float]:
        """
        Map each readable concrete shard to its share of this subtree.

        Shares are split among children in proportion to their weights.
        Read-only, write-only and blocked subtrees contribute nothing.
        """
        if self.short_kind() in INVALID_COPY_TYPES:
            return {}

        if self.is_concrete():
            return {self: multiplier}

        total_weight = float(sum(child.weight for child in self._children))
        sources: Dict[ShardTemplate, float] = {}
        for child in self._children:
            share = 0 if total_weight == 0 else child.weight / total_weight * multiplier
            sources.update(child.copy_sources(share))
        return sources

    def copy_source(self) -> 'ShardTemplate':
        """The concrete shard with the smallest share, ties by identifier."""
        sources = self.copy_sources()
        if not sources:
            raise TemplateError(f"no valid copy source in {self!r}")
        return min(sources.items(), key=lambda item: (item[1], item[0].identifier()))[0]

    # ============ Materialization ============

    def to_shard_id(self, table_name: str) -> ShardId:
        suffix = SHARD_SUFFIXES.get(self.short_kind())
        name = f"{table_name}_{suffix}" if suffix else table_name
        return ShardId(self.host, name)

    def to_shard_info(self, table_name: str) -> ShardInfo:
        return ShardInfo(self.to_shard_id(table_name), self._kind,
                         self._source_type, self._dest_type, 0)

    @classmethod
    def from_shard_info(cls, info: ShardInfo, link_weight: int = DEFAULT_WEIGHT,
                        children: Iterable['ShardTemplate'] = (),
                        known_kinds: Optional[Iterable[str]] = None) -> 'ShardTemplate':
        """Build a node from a shard record fetched from the topology service."""
        kind = info.class_name
        if known_kinds is not None and kind not in LOGICAL_SHARD_TYPES and kind not in known_kinds:
            raise UnrecognizedKindError(kind)

        return cls(kind, info.id.hostname, link_weight,
                   info.source_type, info.destination_type, children)

    # ============ Similarity/Equality ============

    def similar(self, other) -> bool:
        """True if both trees touch at least one common physical shard."""
        if not isinstance(other, ShardTemplate):
            return False
        return bool(set(self.descendant_identifiers()) & set(other.descendant_identifiers()))

    def __eq__(self, other) -> bool:
        if not isinstance(other, ShardTemplate):
            return NotImplemented
        return self._hash == other._hash and compare(self, other) == 0

    def __lt__(self, other) -> bool:
        return compare(self, other) < 0

    def __le__(self, other) -> bool:
        return compare(self, other) <= 0

    def __gt__(self, other) -> bool:
        return compare(self, other) > 0

    def __ge__(self, other) -> bool:
        return compare(self, other) >= 0

    def __hash__(self) -> int:
        return self._hash

    # ============ Config ============

    def to_config(self):
        """
        Nested config form: a definition string for leaves, otherwise a
        one-key dict mapping the definition to its child (or child list).
        """
        definition = self.identifier()
        if self._weight != DEFAULT_WEIGHT:
            definition = f"{definition}:{self._weight}"

        if not self._children:
            return definition

        child_defs = [child.to_config() for child in self._children]
        if len(child_defs) == 1:
            return {definition: child_defs[0]}
        return {definition: child_defs}

    def __repr__(self) -> str:
        child_repr = f" {list(self._children)!r}" if self._children else ""
        return f"({self.identifier()} {self._weight}{child_repr})"
