"""
TCP Server and Framing Tests
"""

import socket
import threading
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from minitopo.errors import TransientRpcError
from minitopo.network.client import ShardManagerClient
from minitopo.network.protocol import Command, Message, MessageType, Protocol
from minitopo.network.records import ShardId
from minitopo.network.server import TCPServer
from minitopo.service import TopologyServer


def exchange(address, frame):
    """Send one raw frame and return the decoded response line."""
    host, _, port = address.partition(":")
    with socket.create_connection((host, int(port)), timeout=5.0) as sock:
        sock.sendall(frame)
        buffer = b""
        while b"\n" not in buffer:
            chunk = sock.recv(Protocol.BUFFER_SIZE)
            assert chunk, "connection closed without a response"
            buffer += chunk
    return Message.decode(buffer.split(b"\n", 1)[0])


def test_decode_rejects_malformed_frames():
    """Test that every malformed frame decodes to a ValueError."""
    for frame in (b'{"payload": {}}', b'[1]', b'"CMD"', b'{"type": "NOPE"}',
                  b'{"type": "CMD", "payload": [1]}', b'not json', b'\xff\xfe'):
        with pytest.raises(ValueError):
            Message.decode(frame)

    print("[OK] Malformed frame decode test passed")


def test_server_answers_malformed_frames():
    """Test that bad frames get an error response and the connection keeps working."""
    server = TopologyServer("127.0.0.1", 0)
    server.start()

    try:
        for frame in (b'{"payload": {}}\n', b'[1]\n', b'12:{"type": 7}\n'):
            response = exchange(server.address, frame)
            assert response.msg_type == MessageType.ERROR
            assert response.payload["error"].startswith("bad message")

        host, _, port = server.address.partition(":")
        with socket.create_connection((host, int(port)), timeout=5.0) as sock:
            sock.sendall(b'[1]\n' + Protocol.create_command(Command.PING).encode())
            buffer = b""
            while buffer.count(b"\n") < 2:
                chunk = sock.recv(Protocol.BUFFER_SIZE)
                assert chunk
                buffer += chunk

        first, second = buffer.split(b"\n")[:2]
        assert Message.decode(first).msg_type == MessageType.ERROR
        assert Message.decode(second).payload["data"] == "PONG"
    finally:
        server.stop()

    print("[OK] Malformed frame response test passed")


def test_server_logs_failed_commands(capsys):
    """Test that failed commands are reported with the peer address."""
    server = TopologyServer("127.0.0.1", 0)
    server.start()

    try:
        command = Protocol.create_command(Command.GET_SHARD, [ShardId("db9", "missing").to_dict()])
        response = exchange(server.address, command.encode())
        assert not response.success
    finally:
        server.stop()

    out = capsys.readouterr().out
    assert "[server] GET_SHARD from 127.0.0.1:" in out
    assert "no such shard" in out

    print("[OK] Failed command logging test passed")


def test_port_zero_binds_ephemeral_port():
    """Test that port 0 is replaced by the bound port."""
    server = TCPServer("127.0.0.1", 0, lambda message: Protocol.create_response(True, data="ok"))
    server.start()

    try:
        assert server.port != 0
        assert server.address == f"127.0.0.1:{server.port}"
        assert exchange(server.address, Protocol.create_command(Command.PING).encode()).success
    finally:
        server.stop()

    print("[OK] Ephemeral port test passed")


def test_client_treats_malformed_response_as_transient():
    """Test that a garbage response surfaces as a retryable error."""
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]

    def reply_once():
        conn, _ = listener.accept()
        with conn:
            conn.recv(Protocol.BUFFER_SIZE)
            conn.sendall(b'{"payload": {}}\n')

    thread = threading.Thread(target=reply_once, daemon=True)
    thread.start()

    client = ShardManagerClient("127.0.0.1", port, timeout=5.0)
    try:
        with pytest.raises(TransientRpcError):
            client.get_forwardings()
    finally:
        client.close()
        thread.join(timeout=5.0)
        listener.close()

    print("[OK] Malformed response test passed")


if __name__ == "__main__":
    test_decode_rejects_malformed_frames()
    test_server_answers_malformed_frames()
    test_port_zero_binds_ephemeral_port()
    test_client_treats_malformed_response_as_transient()
    print("\n=== All server tests passed! ===")
