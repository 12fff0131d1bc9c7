"""
Configuration management for the topology tooling.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

from .errors import ParseError


DEFAULT_PORT = 7917
DEFAULT_RETRIES = 3


@dataclass
class ClientConfig:
    """Configuration for talking to the topology service."""
    hosts: List[str] = field(default_factory=list)  # ["host:port", ...]
    dry_run: bool = False
    retries: int = DEFAULT_RETRIES  # Total attempts per call
    timeout: float = 10.0           # Socket timeout in seconds

    def add_host(self, address: str):
        """Add a topology service address."""
        if address not in self.hosts:
            self.hosts.append(address)


@dataclass
class TableConfig:
    """
    Per-table settings used when materializing templates.

    source_type/dest_type are carried onto every shard built from a
    template; table_prefix drives the shard naming convention.
    """
    source_type: str = ""
    dest_type: str = ""
    table_prefix: str = ""

    def shard_name(self, table_id: int, enum: int) -> str:
        """
        Canonical table name for a (table_id, group enum) pair.

        Negative table ids render as "n<abs>", e.g. prefix "status",
        table -2, enum 7 -> "status_n2_0007".
        """
        if table_id is None:
            table_segment = ""
        elif table_id < 0:
            table_segment = f"n{abs(table_id)}"
        else:
            table_segment = str(table_id)

        parts = [self.table_prefix, table_segment, f"{enum:04d}"]
        return "_".join(p for p in parts if p)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TableConfig':
        return cls(
            source_type=data.get("source_type") or "",
            dest_type=data.get("destination_type") or data.get("dest_type") or "",
            table_prefix=data.get("table_prefix") or "",
        )


def load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML mapping from a file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(f"YAML root must be a mapping in {path}")
    return data

