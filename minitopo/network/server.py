"""
Line-framed TCP front end for the topology service.

Every request line gets exactly one response line back, including lines
that fail to decode, so a client never waits on a dropped request.
"""

import socket
import threading
from typing import Callable, Iterator, Optional, Set

from .protocol import Message, Protocol


class TCPServer:
    """
    Threaded request/response server.

    One thread accepts connections; each connection is served on its own
    thread and handed to `handler` one decoded message at a time.
    """

    def __init__(self, host: str, port: int, handler: Callable[[Message], Message]):
        self.host = host
        self.port = port
        self.handler = handler

        self._listener: Optional[socket.socket] = None
        self._connections: Set[socket.socket] = set()
        self._lock = threading.Lock()
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def start(self):
        """Bind and start accepting. Port 0 is replaced by the bound port."""
        self._listener = socket.create_server((self.host, self.port), backlog=128)
        self._listener.settimeout(1.0)  # Lets the accept loop notice stop()
        self.port = self._listener.getsockname()[1]

        self._running = True
        self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._accept_thread.start()

        print(f"[server] Listening on {self.address}")

    def stop(self):
        """Stop accepting and close every open connection."""
        self._running = False

        if self._listener:
            try:
                self._listener.close()
            except OSError:
                pass

        with self._lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            self._close(conn)

        if self._accept_thread:
            self._accept_thread.join(timeout=2.0)

        print(f"[server] Stopped on {self.address}")

    def _accept_loop(self):
        while self._running:
            try:
                conn, peer = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    print(f"[server] Accept error: {e}")
                continue

            conn.settimeout(30.0)
            threading.Thread(
                target=self._serve_connection,
                args=(conn, f"{peer[0]}:{peer[1]}"),
                daemon=True
            ).start()

    def _serve_connection(self, conn: socket.socket, peer: str):
        with self._lock:
            self._connections.add(conn)

        try:
            for line in self._read_frames(conn):
                if not Protocol.send_message(conn, self._dispatch(line, peer)):
                    break
        finally:
            with self._lock:
                self._connections.discard(conn)
            self._close(conn)

    def _read_frames(self, conn: socket.socket) -> Iterator[bytes]:
        """Yield non-empty lines until the peer hangs up or the server stops."""
        buffer = b""
        while self._running:
            try:
                chunk = conn.recv(Protocol.BUFFER_SIZE)
            except socket.timeout:
                continue
            except OSError:
                return

            if not chunk:
                return
            buffer += chunk

            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if line.strip():
                    yield line

    def _dispatch(self, line: bytes, peer: str) -> Message:
        """Decode one frame and run it through the handler."""
        try:
            message = Message.decode(line)
        except ValueError as e:
            print(f"[server] Bad frame from {peer}: {e}")
            return Protocol.create_response(False, error=f"bad message: {e}")

        response = self.handler(message) or Protocol.create_response(True)
        if not response.success:
            cmd, _ = Protocol.parse_command(message.payload)
            print(f"[server] {cmd or message.msg_type.value} from {peer} failed: "
                  f"{response.payload.get('error')}")
        return response

    @staticmethod
    def _close(conn: socket.socket):
        try:
            conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        conn.close()
