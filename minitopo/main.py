"""
Command line entry point for the topology tooling.
"""

import argparse
import json
import signal
import sys
import time

from .config import ClientConfig, DEFAULT_PORT, DEFAULT_RETRIES, TableConfig
from .errors import TopologyError
from .nameserver import Nameserver
from .service import TopologyServer, TopologyService
from .sharding import Manifest, dump_template, load_template


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="minitopo - shard topology templates and reconciliation"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Parse a template file and print it normalized")
    check.add_argument("file", help="Desired-state YAML file")

    copy_source = subparsers.add_parser("copy-source", help="Show copy source weights for a template")
    copy_source.add_argument("file", help="Desired-state YAML file")

    templates = subparsers.add_parser("templates", help="Group live tables by template")
    templates.add_argument(
        "--hosts",
        type=str,
        default=f"localhost:{DEFAULT_PORT}",
        help="Comma-separated list of nameserver addresses (host:port)"
    )
    templates.add_argument(
        "--config",
        type=str,
        default="",
        help="Desired-state YAML file supplying table_prefix and types"
    )
    templates.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Attempts per call (default: {DEFAULT_RETRIES})"
    )
    templates.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Parallel shard fetches (default: 1)"
    )
    templates.add_argument(
        "--kinds",
        type=str,
        default="",
        help="Comma-separated concrete shard kinds to accept (default: any)"
    )
    templates.add_argument(
        "--drift",
        action="store_true",
        help="Also list shards whose stored name differs from the canonical name"
    )

    serve = subparsers.add_parser("serve", help="Run the in-memory topology service")
    serve.add_argument("--host", type=str, default="localhost", help="Host to bind to")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT,
                       help=f"Port to bind to (default: {DEFAULT_PORT})")
    serve.add_argument("--seed", type=str, default="", help="YAML seed file")

    return parser.parse_args(argv)


def cmd_check(args) -> int:
    _, template = load_template(args.file)
    print(dump_template(template), end="")
    return 0


def cmd_copy_source(args) -> int:
    _, template = load_template(args.file)
    sources = {t.identifier(): share for t, share in template.copy_sources().items()}
    print(json.dumps({"copy_source": template.copy_source().identifier(),
                      "sources": sources}, indent=2))
    return 0


def cmd_templates(args) -> int:
    table_config = load_template(args.config)[0] if args.config else TableConfig()
    config = ClientConfig(retries=args.retries)
    for host in args.hosts.split(","):
        if host.strip():
            config.add_host(host.strip())

    known_kinds = [k.strip() for k in args.kinds.split(",") if k.strip()] or None

    nameserver = Nameserver.from_config(config)
    try:
        manifest = Manifest(nameserver, table_config, known_kinds=known_kinds,
                            max_workers=args.workers)
    finally:
        nameserver.close()

    for template in manifest.templates():
        tables = manifest.tables_for(template)
        print(dump_template(template), end="")
        print(json.dumps({str(k): sorted(v) for k, v in sorted(tables.items())}, indent=2))
        print()

    if args.drift:
        drift = manifest.drifted_shard_ids()
        print(f"{len(drift)} shard(s) with non-canonical names")
        for canonical, actual in sorted(drift.items(), key=lambda item: str(item[0])):
            print(f"  {actual} (expected {canonical})")

    return 0


def cmd_serve(args) -> int:
    service = TopologyService()
    if args.seed:
        service.load_seed(args.seed)

    server = TopologyServer(args.host, args.port, service)

    def signal_handler(signum, frame):
        print("\nReceived shutdown signal...")
        server.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server.start()
    print(f"Topology service running on {server.address}")

    while True:
        time.sleep(1)


COMMANDS = {
    "check": cmd_check,
    "copy-source": cmd_copy_source,
    "templates": cmd_templates,
    "serve": cmd_serve,
}


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        return COMMANDS[args.command](args)
    except (TopologyError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
