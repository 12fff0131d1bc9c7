"""
In-memory reference implementation of the topology service.
"""

import threading
from typing import Any, Dict, List, Optional

from .config import load_yaml
from .network import Command, Message, Protocol, TCPServer
from .network.records import Forwarding, LinkInfo, ShardId, ShardInfo


class TopologyService:
    """
    Stores shards, links and forwardings in memory and answers protocol
    commands against them.
    """

    def __init__(self):
        self._shards: Dict[ShardId, ShardInfo] = {}
        self._links: List[LinkInfo] = []
        self._forwardings: Dict[tuple, Forwarding] = {}  # (table_id, base_id) -> forwarding
        self._lock = threading.RLock()

        self.reload_count = 0

    # ============ State ============

    def create_shard(self, info: ShardInfo):
        with self._lock:
            self._shards[info.id] = info

    def add_link(self, up_id: ShardId, down_id: ShardId, weight: int):
        with self._lock:
            self._require(up_id)
            self._require(down_id)
            self._links = [l for l in self._links if not (l.up_id == up_id and l.down_id == down_id)]
            self._links.append(LinkInfo(up_id, down_id, weight))

    def set_forwarding(self, forwarding: Forwarding):
        with self._lock:
            self._require(forwarding.shard_id)
            self._forwardings[(forwarding.table_id, forwarding.base_id)] = forwarding

    def get_shard(self, shard_id: ShardId) -> ShardInfo:
        with self._lock:
            return self._require(shard_id)

    def list_downward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        with self._lock:
            return [l for l in self._links if l.up_id == shard_id]

    def list_upward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        with self._lock:
            return [l for l in self._links if l.down_id == shard_id]

    def get_forwardings(self) -> List[Forwarding]:
        with self._lock:
            return [self._forwardings[k] for k in sorted(self._forwardings)]

    def _require(self, shard_id: ShardId) -> ShardInfo:
        info = self._shards.get(shard_id)
        if info is None:
            raise KeyError(f"no such shard: {shard_id}")
        return info

    def load_seed(self, path: str):
        """
        Load shards, links and forwardings from a YAML seed file.

        Each entry uses the same field names as the wire records.
        """
        data = load_yaml(path)
        for shard in data.get("shards", []):
            self.create_shard(ShardInfo.from_dict(shard))
        for link in data.get("links", []):
            info = LinkInfo.from_dict(link)
            self.add_link(info.up_id, info.down_id, info.weight)
        for forwarding in data.get("forwardings", []):
            self.set_forwarding(Forwarding.from_dict(forwarding))

    # ============ Protocol ============

    def handle_message(self, message: Message) -> Message:
        """Handle one command message."""
        cmd, args = Protocol.parse_command(message.payload)

        try:
            command = Command(cmd)
        except ValueError:
            return Protocol.create_response(False, error=f"Unknown command: {cmd}")

        try:
            return Protocol.create_response(True, data=self._dispatch(command, args))
        except (KeyError, ValueError, TypeError, IndexError) as e:
            return Protocol.create_response(False, error=f"{cmd}: {e}")

    def _dispatch(self, command: Command, args: List[Any]) -> Any:
        if command == Command.PING:
            return "PONG"
        elif command == Command.GET_FORWARDINGS:
            return [f.to_dict() for f in self.get_forwardings()]
        elif command == Command.SET_FORWARDING:
            self.set_forwarding(Forwarding.from_dict(args[0]))
        elif command == Command.RELOAD_FORWARDINGS:
            with self._lock:
                self.reload_count += 1
        elif command == Command.LIST_DOWNWARD_LINKS:
            return [l.to_dict() for l in self.list_downward_links(ShardId.from_dict(args[0]))]
        elif command == Command.LIST_UPWARD_LINKS:
            return [l.to_dict() for l in self.list_upward_links(ShardId.from_dict(args[0]))]
        elif command == Command.ADD_LINK:
            self.add_link(ShardId.from_dict(args[0]), ShardId.from_dict(args[1]), int(args[2]))
        elif command == Command.GET_SHARD:
            return self.get_shard(ShardId.from_dict(args[0])).to_dict()
        elif command == Command.CREATE_SHARD:
            self.create_shard(ShardInfo.from_dict(args[0]))
        return None


class TopologyServer:
    """A TopologyService exposed over TCP."""

    def __init__(self, host: str = "localhost", port: int = 0,
                 service: Optional[TopologyService] = None):
        self.service = service or TopologyService()
        self._server = TCPServer(host, port, self.service.handle_message)

    @property
    def address(self) -> str:
        return self._server.address

    def start(self):
        self._server.start()

    def stop(self):
        self._server.stop()
