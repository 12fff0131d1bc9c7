"""Network layer components."""

from .protocol import Protocol, Message, MessageType, Command
from .records import ShardId, ShardInfo, LinkInfo, Forwarding
from .server import TCPServer
from .client import TCPClient, ShardManagerClient

__all__ = [
    'Protocol', 'Message', 'MessageType', 'Command',
    'ShardId', 'ShardInfo', 'LinkInfo', 'Forwarding',
    'TCPServer', 'TCPClient', 'ShardManagerClient',
]
