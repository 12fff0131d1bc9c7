"""
TCP clients for the topology service.
"""

import socket
import threading
from typing import Any, List, Optional

from ..config import DEFAULT_PORT
from ..errors import RpcError, TransientRpcError
from .protocol import Command, Message, Protocol
from .records import Forwarding, LinkInfo, ShardId, ShardInfo


class TCPClient:
    """
    Line-framed TCP client for a single topology service host.
    """

    def __init__(self, host: str = "localhost", port: int = DEFAULT_PORT,
                 timeout: float = 10.0, client_id: str = ""):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.client_id = client_id

        self._socket: Optional[socket.socket] = None
        self._connected = False
        self._lock = threading.Lock()

    def connect(self) -> bool:
        """Connect to the server."""
        try:
            self._socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self._connected = True
            return True
        except OSError:
            self._connected = False
            return False

    def disconnect(self):
        """Disconnect from the server."""
        with self._lock:
            self._connected = False
            if self._socket:
                try:
                    self._socket.close()
                except OSError:
                    pass
                self._socket = None

    def send_message(self, message: Message) -> Optional[Message]:
        """
        Send a message and wait for its response.

        Returns:
            Response message or None if the connection failed
        """
        with self._lock:
            if not self._connected and not self.connect():
                return None

            try:
                if not Protocol.send_message(self._socket, message):
                    self._connected = False
                    return None

                buffer = b""
                while True:
                    chunk = self._socket.recv(Protocol.BUFFER_SIZE)
                    if not chunk:
                        self._connected = False
                        return None
                    buffer += chunk

                    if b"\n" in buffer:
                        line, _ = buffer.split(b"\n", 1)
                        return Message.decode(line)

            except (OSError, ValueError):
                self._connected = False
                return None


class ShardManagerClient:
    """
    Typed topology operations against one service host.

    Transport failures raise TransientRpcError; error responses from the
    service raise RpcError.
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: float = 10.0,
                 client_id: str = "minitopo"):
        self.host = host
        self.port = port
        self._client = TCPClient(host, port, timeout, client_id)

    @classmethod
    def from_address(cls, address: str, timeout: float = 10.0) -> 'ShardManagerClient':
        """Create a client from a "host[:port]" string."""
        host, _, port = address.partition(":")
        return cls(host, int(port) if port else DEFAULT_PORT, timeout)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def close(self):
        self._client.disconnect()

    def _call(self, command: Command, *args) -> Any:
        message = Protocol.create_command(command, list(args), self._client.client_id)
        response = self._client.send_message(message)

        if response is None:
            self._client.disconnect()
            raise TransientRpcError(f"{command.value} to {self.address} failed: no response")

        if not response.success:
            raise RpcError(response.payload.get("error") or f"{command.value} failed")

        return response.payload.get("data")

    # ============ Queries ============

    def ping(self) -> bool:
        return self._call(Command.PING) == "PONG"

    def get_forwardings(self) -> List[Forwarding]:
        return [Forwarding.from_dict(f) for f in self._call(Command.GET_FORWARDINGS)]

    def list_downward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        data = self._call(Command.LIST_DOWNWARD_LINKS, shard_id.to_dict())
        return [LinkInfo.from_dict(link) for link in data]

    def list_upward_links(self, shard_id: ShardId) -> List[LinkInfo]:
        data = self._call(Command.LIST_UPWARD_LINKS, shard_id.to_dict())
        return [LinkInfo.from_dict(link) for link in data]

    def get_shard(self, shard_id: ShardId) -> ShardInfo:
        return ShardInfo.from_dict(self._call(Command.GET_SHARD, shard_id.to_dict()))

    # ============ Writes ============

    def create_shard(self, info: ShardInfo):
        self._call(Command.CREATE_SHARD, info.to_dict())

    def add_link(self, up_id: ShardId, down_id: ShardId, weight: int):
        self._call(Command.ADD_LINK, up_id.to_dict(), down_id.to_dict(), weight)

    def set_forwarding(self, forwarding: Forwarding):
        self._call(Command.SET_FORWARDING, forwarding.to_dict())

    def reload_forwardings(self):
        self._call(Command.RELOAD_FORWARDINGS)

    def __repr__(self) -> str:
        return f"ShardManagerClient({self.address!r})"
