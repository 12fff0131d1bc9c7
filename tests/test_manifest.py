"""
Manifest Tests
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from minitopo.config import TableConfig
from minitopo.errors import ParseError, UnrecognizedKindError
from minitopo.network.records import Forwarding, ShardId, ShardInfo
from minitopo.service import TopologyService
from minitopo.sharding.codec import from_config
from minitopo.sharding.manifest import Manifest, group_enum


TABLE = TableConfig(table_prefix="status")


def add_table(service, table_id, enum, children, prefix="status"):
    """Add a replicating root over SqlShard children [(host, weight), ...]."""
    name = f"{prefix}_{table_id}_{enum:04d}"
    root = ShardId("localhost", f"{name}_replicating")
    service.create_shard(ShardInfo(root, "ReplicatingShard"))

    for host, weight in children:
        child = ShardId(host, name)
        service.create_shard(ShardInfo(child, "SqlShard"))
        service.add_link(root, child, weight)

    service.set_forwarding(Forwarding(table_id, enum, root))
    return root


def test_group_enum():
    """Test enum extraction from table prefixes."""
    assert group_enum(ShardId("h", "status_1_0012_replicating")) == 12
    assert group_enum(ShardId("h", "edges_n3_0400")) == 400

    with pytest.raises(ParseError):
        group_enum(ShardId("h", "status_1_12"))

    print("[OK] Group enum test passed")


def test_manifest_collects_links_and_shards():
    """Test the link closure and shard fetch."""
    service = TopologyService()
    root = add_table(service, 1, 1, [("a", 1), ("b", 3)])

    manifest = Manifest(service, TABLE)

    assert manifest.forwardings == [Forwarding(1, 1, root)]
    assert manifest.links == {root: [(ShardId("a", "status_1_0001"), 1),
                                     (ShardId("b", "status_1_0001"), 3)]}
    assert set(manifest.shards) == {root, ShardId("a", "status_1_0001"), ShardId("b", "status_1_0001")}

    print("[OK] Link/shard collection test passed")


def test_manifest_groups_identical_tables():
    """Tables with identical trees share one template key."""
    service = TopologyService()
    add_table(service, 1, 1, [("a", 1), ("b", 1)])
    add_table(service, 1, 2, [("a", 1), ("b", 1)])
    add_table(service, 2, 1, [("a", 1), ("b", 1)])
    add_table(service, 3, 1, [("a", 1), ("c", 1)])
    add_table(service, 4, 1, [("a", 2), ("b", 1)])

    manifest = Manifest(service, TABLE)

    shared = from_config(TABLE, {"ReplicatingShard": ["SqlShard:a", "SqlShard:b"]})
    assert len(manifest.template_map) == 3
    assert manifest.tables_for(shared) == {1: [1, 2], 2: [1]}
    assert manifest.tables_for(from_config(TABLE, {"ReplicatingShard": ["SqlShard:a", "SqlShard:c"]})) == {3: [1]}
    assert manifest.tables_for(from_config(TABLE, {"ReplicatingShard": ["SqlShard:a:2", "SqlShard:b"]})) == {4: [1]}

    templates = manifest.templates()
    assert templates == sorted(templates, reverse=True)

    print("[OK] Template grouping test passed")


def test_manifest_tracks_existing_shard_ids():
    """Test canonical -> actual shard id mapping and drift detection."""
    service = TopologyService()
    root = add_table(service, 1, 1, [("a", 1)])
    legacy = add_table(service, 5, 1, [("a", 1)], prefix="legacy")

    manifest = Manifest(service, TABLE)

    assert manifest.existing_shard_ids[ShardId("localhost", "status_1_0001_replicating")] == root
    assert manifest.existing_shard_ids[ShardId("a", "status_1_0001")] == ShardId("a", "status_1_0001")

    assert manifest.drifted_shard_ids() == {
        ShardId("localhost", "status_5_0001_replicating"): legacy,
        ShardId("a", "status_5_0001"): ShardId("a", "legacy_5_0001"),
    }

    print("[OK] Existing shard id test passed")


def test_manifest_leaf_forwarding():
    """A forwarding straight to a physical shard is a single-node template."""
    service = TopologyService()
    leaf = ShardId("db1", "status_7_0003")
    service.create_shard(ShardInfo(leaf, "SqlShard"))
    service.set_forwarding(Forwarding(7, 0, leaf))

    manifest = Manifest(service, TABLE)

    assert manifest.links == {}
    assert manifest.template_map == {from_config(TABLE, "SqlShard:db1"): {7: [3]}}

    print("[OK] Leaf forwarding test passed")


def test_manifest_shared_subtree_fetched_once():
    """Test that a parent reachable from two roots is listed once."""
    service = TopologyService()
    shared = ShardId("localhost", "status_1_0001_replicating")
    leaf = ShardId("db1", "status_1_0001")
    service.create_shard(ShardInfo(shared, "ReplicatingShard"))
    service.create_shard(ShardInfo(leaf, "SqlShard"))
    service.add_link(shared, leaf, 1)
    service.set_forwarding(Forwarding(1, 1, shared))
    service.set_forwarding(Forwarding(1, 2, shared))

    calls = []
    list_downward_links = service.list_downward_links

    def counting(shard_id):
        calls.append(shard_id)
        return list_downward_links(shard_id)

    service.list_downward_links = counting
    manifest = Manifest(service, TABLE)

    assert calls.count(shared) == 1
    assert manifest.links == {shared: [(leaf, 1)]}

    print("[OK] Shared subtree test passed")


def test_manifest_unrecognized_kind():
    """Unknown kinds abort the whole build."""
    service = TopologyService()
    add_table(service, 1, 1, [("a", 1)])

    assert len(Manifest(service, TABLE, known_kinds={"SqlShard"}).template_map) == 1

    with pytest.raises(UnrecognizedKindError):
        Manifest(service, TABLE, known_kinds={"TurboShard"})

    print("[OK] Unrecognized kind test passed")


def test_manifest_parallel_fetch_matches_sequential():
    """Test that the thread pool doesn't change the result."""
    service = TopologyService()
    for table_id in range(1, 6):
        for enum in range(1, 4):
            add_table(service, table_id, enum, [("a", 1), ("b", table_id % 2 + 1)])

    sequential = Manifest(service, TABLE)
    parallel = Manifest(service, TABLE, max_workers=4)

    assert parallel.shards == sequential.shards
    assert parallel.links == sequential.links
    assert parallel.template_map == sequential.template_map
    assert parallel.existing_shard_ids == sequential.existing_shard_ids

    print("[OK] Parallel fetch test passed")


if __name__ == "__main__":
    test_group_enum()
    test_manifest_collects_links_and_shards()
    test_manifest_groups_identical_tables()
    test_manifest_tracks_existing_shard_ids()
    test_manifest_leaf_forwarding()
    test_manifest_shared_subtree_fetched_once()
    test_manifest_unrecognized_kind()
    test_manifest_parallel_fetch_matches_sequential()
    print("\n=== All manifest tests passed! ===")
