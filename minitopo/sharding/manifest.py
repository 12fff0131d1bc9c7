"""
Manifest: a point-in-time snapshot of the live topology grouped by shape.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import TableConfig
from ..errors import ParseError
from ..network.records import Forwarding, ShardId, ShardInfo
from .template import DEFAULT_WEIGHT, ShardTemplate


ENUM_PATTERN = re.compile(r"\d{3,}")


def group_enum(shard_id: ShardId) -> int:
    """Group enumeration embedded in a shard's table prefix, e.g. status_0012 -> 12."""
    match = ENUM_PATTERN.search(shard_id.table_prefix)
    if not match:
        raise ParseError(f"no group enumeration in table prefix {shard_id.table_prefix!r}")
    return int(match.group(0))


class Manifest:
    """
    Reconciled view of forwardings, links and shards.

    Built in one pass from a nameserver (anything providing get_forwardings,
    list_downward_links and get_shard). Any failure aborts the whole build;
    rebuild to pick up remote changes.

    Attributes:
        forwardings: every forwarding known to the service
        links: parent id -> [(child id, weight), ...]
        shards: shard id -> ShardInfo
        template_map: template -> {table_id: [group enums]}
        existing_shard_ids: canonical shard id -> id actually stored
    """

    def __init__(self, nameserver, table_config: TableConfig,
                 known_kinds: Optional[Iterable[str]] = None,
                 max_workers: int = 1):
        self.table_config = table_config
        self.known_kinds = set(known_kinds) if known_kinds is not None else None
        self.max_workers = max_workers

        self.forwardings: List[Forwarding] = list(nameserver.get_forwardings())
        roots = [f.shard_id for f in self.forwardings]

        self.links = self._collect_links(nameserver, roots)
        self.shards = self._collect_shards(nameserver, roots, self.links)

        self.template_map: Dict[ShardTemplate, Dict[int, List[int]]] = {}
        self.existing_shard_ids: Dict[ShardId, ShardId] = {}
        self._build_template_map()

        print(f"[manifest] {len(self.forwardings)} forwardings, {len(self.shards)} shards, "
              f"{len(self.template_map)} templates")

    def _build_template_map(self):
        for forwarding in self.forwardings:
            enum = group_enum(forwarding.shard_id)
            tree = self._build_tree(forwarding.table_id, enum, forwarding.shard_id, DEFAULT_WEIGHT)

            tables = self.template_map.setdefault(tree, {})
            tables.setdefault(forwarding.table_id, []).append(enum)

    def _build_tree(self, table_id: int, enum: int, shard_id: ShardId,
                    link_weight: int) -> ShardTemplate:
        children = [
            self._build_tree(table_id, enum, child_id, child_weight)
            for child_id, child_weight in self.links.get(shard_id, [])
        ]

        template = ShardTemplate.from_shard_info(
            self.shards[shard_id], link_weight, children, self.known_kinds
        )

        canonical_id = template.to_shard_id(self.table_config.shard_name(table_id, enum))
        self.existing_shard_ids[canonical_id] = shard_id

        return template

    def _collect_links(self, nameserver, roots: List[ShardId]) -> Dict[ShardId, List[Tuple[ShardId, int]]]:
        links: Dict[ShardId, List[Tuple[ShardId, int]]] = {}
        visited = set()
        pending = list(reversed(roots))

        while pending:
            parent = pending.pop()
            if parent in visited:
                continue
            visited.add(parent)

            children = []
            for link in nameserver.list_downward_links(parent):
                links.setdefault(link.up_id, []).append((link.down_id, link.weight))
                children.append(link.down_id)

            pending.extend(reversed(children))

        return links

    def _collect_shards(self, nameserver, roots: List[ShardId],
                        links: Dict[ShardId, List[Tuple[ShardId, int]]]) -> Dict[ShardId, ShardInfo]:
        shard_ids: List[ShardId] = []
        seen = set()

        def add(shard_id):
            if shard_id not in seen:
                seen.add(shard_id)
                shard_ids.append(shard_id)

        for root in roots:
            add(root)
        for parent, children in links.items():
            add(parent)
            for child_id, _ in children:
                add(child_id)

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                infos = list(executor.map(nameserver.get_shard, shard_ids))
        else:
            infos = [nameserver.get_shard(shard_id) for shard_id in shard_ids]

        return dict(zip(shard_ids, infos))

    # ============ Queries ============

    def templates(self) -> List[ShardTemplate]:
        """Distinct templates, in descending structural order."""
        return sorted(self.template_map, reverse=True)

    def tables_for(self, template: ShardTemplate) -> Dict[int, List[int]]:
        """Tables (and their group enums) sharing a template."""
        return self.template_map.get(template, {})

    def drifted_shard_ids(self) -> Dict[ShardId, ShardId]:
        """Canonical ids whose stored shard is named differently."""
        return {
            canonical: actual
            for canonical, actual in self.existing_shard_ids.items()
            if canonical != actual
        }
