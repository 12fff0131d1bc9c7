"""
Interactive demo of template parsing and manifest reconciliation.
Starts an in-memory topology service, seeds a few tables and groups
them by shape.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from minitopo.config import TableConfig
from minitopo.nameserver import Nameserver
from minitopo.network.records import Forwarding
from minitopo.service import TopologyServer
from minitopo.sharding import Manifest, dump_template, from_config


HERE = os.path.dirname(os.path.abspath(__file__))


def print_header(text):
    """Print a section header."""
    print("\n" + "=" * 60)
    print(f" {text}")
    print("=" * 60)


def seed_tables(nameserver, table_config, template, table_ids, enums):
    """Materialize a template for each (table, enum) pair."""
    def create(node, name):
        info = node.to_shard_info(name)
        nameserver.create_shard(info)
        for child in node.children:
            child_id = create(child, name)
            nameserver.add_link(info.id, child_id, child.weight)
        return info.id

    for table_id in table_ids:
        for enum in enums:
            name = table_config.shard_name(table_id, enum)
            root = create(template, name)
            nameserver.set_forwarding(Forwarding(table_id, enum, root))


def demo():
    """Run the topology demo."""
    print_header("minitopo Template & Manifest Demo")

    server = TopologyServer("localhost", 0)
    server.start()
    server.service.load_seed(os.path.join(HERE, "seed.yml"))

    nameserver = Nameserver(server.address)
    table_config = TableConfig(table_prefix="status")

    try:
        # Step 1: Parse a desired shape
        print_header("Step 1: Parsing a Template")

        template = from_config(table_config, {
            "ReplicatingShard": ["SqlShard:db1:1", "SqlShard:db2:3"]
        })
        print(dump_template(template))
        print(f"  Copy sources: { {t.identifier(): s for t, s in template.copy_sources().items()} }")
        print(f"  Copy source:  {template.copy_source().identifier()}")

        # Step 2: Materialize it for a few tables
        print_header("Step 2: Creating Shards")

        seed_tables(nameserver, table_config, template, table_ids=[1, 2], enums=[1, 2, 3])
        print("  Created tables 1 and 2, enums 1-3")

        # Step 3: Reconcile
        print_header("Step 3: Manifest")

        manifest = Manifest(nameserver, table_config)
        for shape in manifest.templates():
            print(dump_template(shape), end="")
            for table_id, enums in sorted(manifest.tables_for(shape).items()):
                print(f"    table {table_id}: enums {enums}")
            print()

        drift = manifest.drifted_shard_ids()
        print(f"  {len(drift)} shard(s) named off-convention")
        for canonical, actual in drift.items():
            print(f"    {actual} -> expected {canonical}")

        print_header("Demo Complete!")

    except KeyboardInterrupt:
        print("\n\nShutting down...")
    finally:
        nameserver.close()
        server.stop()


if __name__ == "__main__":
    demo()
