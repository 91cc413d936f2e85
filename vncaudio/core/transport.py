import socket
import logging
from typing import Optional

from .errors import ConnectionFailed, GracefulEof, IoFailure

logger = logging.getLogger(__name__)

# Upper bound per recv call; lengths on the wire are server-controlled
RECV_CHUNK = 64 * 1024


class SocketTransport:
    """Blocking byte stream to a single VNC server.

    Every protocol step reads and writes through ``recv_exact`` and
    ``send_all`` so short reads, broken pipes and end-of-stream surface as
    ``IoFailure`` / ``GracefulEof`` instead of raw socket errors.
    """

    def __init__(self, sock: Optional[socket.socket] = None):
        self.socket = sock

    @classmethod
    def connect(cls, host: str, port: int) -> "SocketTransport":
        """Open a TCP connection to host:port"""
        try:
            sock = socket.create_connection((host, port))
        except OSError as e:
            raise ConnectionFailed(f"Failed to connect to {host}:{port}: {e}") from e
        # No timeouts: a stalled server blocks the session indefinitely
        sock.settimeout(None)
        logger.debug(f"Socket connected to {host}:{port}")
        return cls(sock)

    def recv_exact(self, size: int, eof_ok: bool = False) -> bytes:
        """Receive exactly size bytes from socket.

        With ``eof_ok`` set, a stream that ends before the first byte raises
        ``GracefulEof``; end-of-stream anywhere else is an ``IoFailure``.
        """
        if self.socket is None:
            raise IoFailure("Transport is closed")

        data = bytearray()
        while len(data) < size:
            try:
                chunk = self.socket.recv(min(size - len(data), RECV_CHUNK))
            except OSError as e:
                raise IoFailure(f"Error receiving {size} bytes: {e}") from e
            if not chunk:
                if eof_ok and not data:
                    raise GracefulEof("Server closed the connection")
                raise IoFailure(
                    f"Connection closed after {len(data)} of {size} bytes")
            data += chunk
        return bytes(data)

    def send_all(self, data: bytes):
        if self.socket is None:
            raise IoFailure("Transport is closed")
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise IoFailure(f"Error sending {len(data)} bytes: {e}") from e

    def close(self):
        if self.socket:
            try:
                self.socket.close()
            except OSError as e:
                logger.debug(f"Error closing socket: {e}")
            self.socket = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
