"""
Shard, link and forwarding records exchanged with the topology service.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class ShardId:
    """Physical address of a shard: the host it lives on and its table name."""
    hostname: str
    table_prefix: str

    def to_dict(self) -> Dict:
        return {"hostname": self.hostname, "table_prefix": self.table_prefix}

    @classmethod
    def from_dict(cls, data: Dict) -> 'ShardId':
        return cls(hostname=data["hostname"], table_prefix=data["table_prefix"])

    def __str__(self) -> str:
        return f"{self.hostname}/{self.table_prefix}"


@dataclass(frozen=True)
class ShardInfo:
    """A shard record as stored by the topology service."""
    id: ShardId
    class_name: str
    source_type: str = ""
    destination_type: str = ""
    busy: int = 0

    def to_dict(self) -> Dict:
        return {
            "id": self.id.to_dict(),
            "class_name": self.class_name,
            "source_type": self.source_type,
            "destination_type": self.destination_type,
            "busy": self.busy
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ShardInfo':
        return cls(
            id=ShardId.from_dict(data["id"]),
            class_name=data["class_name"],
            source_type=data.get("source_type") or "",
            destination_type=data.get("destination_type") or "",
            busy=data.get("busy", 0)
        )


@dataclass(frozen=True)
class LinkInfo:
    """A weighted parent -> child edge."""
    up_id: ShardId
    down_id: ShardId
    weight: int = 1

    def to_dict(self) -> Dict:
        return {
            "up_id": self.up_id.to_dict(),
            "down_id": self.down_id.to_dict(),
            "weight": self.weight
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'LinkInfo':
        return cls(
            up_id=ShardId.from_dict(data["up_id"]),
            down_id=ShardId.from_dict(data["down_id"]),
            weight=data.get("weight", 1)
        )


@dataclass(frozen=True)
class Forwarding:
    """Routes one logical table partition to its root shard."""
    table_id: int
    base_id: int
    shard_id: ShardId

    def to_dict(self) -> Dict:
        return {
            "table_id": self.table_id,
            "base_id": self.base_id,
            "shard_id": self.shard_id.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Forwarding':
        return cls(
            table_id=data["table_id"],
            base_id=data.get("base_id", 0),
            shard_id=ShardId.from_dict(data["shard_id"])
        )
