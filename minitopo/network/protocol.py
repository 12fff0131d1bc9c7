"""
Line-oriented JSON protocol used between topology clients and the service.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field


class MessageType(Enum):
    """Protocol message types."""
    COMMAND = "CMD"
    RESPONSE = "RSP"
    ERROR = "ERR"


class Command(Enum):
    """Topology service commands."""
    PING = "PING"
    GET_FORWARDINGS = "GET_FORWARDINGS"
    SET_FORWARDING = "SET_FORWARDING"
    RELOAD_FORWARDINGS = "RELOAD_FORWARDINGS"
    LIST_DOWNWARD_LINKS = "LIST_DOWNWARD_LINKS"
    LIST_UPWARD_LINKS = "LIST_UPWARD_LINKS"
    ADD_LINK = "ADD_LINK"
    GET_SHARD = "GET_SHARD"
    CREATE_SHARD = "CREATE_SHARD"


@dataclass
class Message:
    """
    Protocol message structure.

    Format: LENGTH:JSON_PAYLOAD\n
    """
    msg_type: MessageType
    payload: Dict[str, Any] = field(default_factory=dict)
    sender_id: str = ""
    sequence: int = 0

    def encode(self) -> bytes:
        """Encode message to bytes for transmission."""
        data = {
            "type": self.msg_type.value,
            "sender": self.sender_id,
            "seq": self.sequence,
            "payload": self.payload
        }
        json_str = json.dumps(data)
        msg = f"{len(json_str)}:{json_str}\n"
        return msg.encode("utf-8")

    @classmethod
    def decode(cls, data: bytes) -> 'Message':
        """
        Decode message from bytes.

        Raises:
            ValueError: if the frame is not a well-formed message
        """
        text = data.decode("utf-8").strip()

        # Strip the length prefix; JSON always starts with "{"
        length, sep, body = text.partition(":")
        if sep and length.isdigit():
            text = body

        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")

        try:
            msg_type = MessageType(parsed["type"])
        except KeyError:
            raise ValueError("missing message type") from None

        payload = parsed.get("payload", {})
        if not isinstance(payload, dict):
            raise ValueError("payload must be a JSON object")

        return cls(
            msg_type=msg_type,
            payload=payload,
            sender_id=parsed.get("sender", ""),
            sequence=parsed.get("seq", 0)
        )

    @property
    def success(self) -> bool:
        return self.msg_type == MessageType.RESPONSE and bool(self.payload.get("success"))


class Protocol:
    """
    Protocol handler for building and framing messages.
    """

    BUFFER_SIZE = 65536

    @staticmethod
    def create_command(command: Command, args: Optional[List[Any]] = None,
                       sender_id: str = "") -> Message:
        """Create a command message."""
        return Message(
            msg_type=MessageType.COMMAND,
            payload={"cmd": command.value, "args": list(args or [])},
            sender_id=sender_id
        )

    @staticmethod
    def create_response(success: bool, data: Any = None, error: str = None) -> Message:
        """Create a response message."""
        return Message(
            msg_type=MessageType.RESPONSE if success else MessageType.ERROR,
            payload={"success": success, "data": data, "error": error}
        )

    @staticmethod
    def parse_command(payload: Dict) -> tuple:
        """Parse a command payload into (command, args)."""
        return payload.get("cmd", ""), payload.get("args", [])

    @staticmethod
    def send_message(sock, message: Message) -> bool:
        """Send a message through a socket."""
        try:
            sock.sendall(message.encode())
            return True
        except OSError:
            return False
