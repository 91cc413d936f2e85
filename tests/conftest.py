import logging
import socket
import struct
import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vncaudio.core.events import EventEmitter
from vncaudio.core.transport import SocketTransport


# ============================================================================
# Server-side byte builders
# ============================================================================


class RFBBytes:
    """Builds what a QEMU VNC server would send."""

    VERSION = b'RFB 003.008\n'

    # Everything the client writes during a successful handshake, in order
    CLIENT_HANDSHAKE = (
        b'RFB 003.008\n'
        + b'\x01'                                   # security type None
        + b'\x01'                                   # shared flag
        + b'\x02\x00\x00\x01\xff\xff\xfe\xfd'       # SetEncodings [-259]
        + b'\xff\x01\x00\x02\x03\x02\x00\x00\xbb\x80'  # S16, 2ch, 48000
        + b'\xff\x01\x00\x00'                       # enable audio capture
    )

    @staticmethod
    def security_types(*types):
        return bytes([len(types), *types])

    @staticmethod
    def security_result(result=0, reason=b''):
        data = struct.pack('!I', result)
        if result:
            data += struct.pack('!I', len(reason)) + reason
        return data

    @staticmethod
    def server_init(width=0x0a00, height=0x0500, name=b''):
        return (struct.pack('!HH', width, height) + bytes(16)
                + struct.pack('!I', len(name)) + name)

    @classmethod
    def handshake(cls, name=b''):
        return (cls.VERSION + cls.security_types(1) + cls.security_result(0)
                + cls.server_init(name=name))

    @staticmethod
    def audio_data(payload):
        return struct.pack('!BBHI', 255, 1, 2, len(payload)) + payload

    @staticmethod
    def audio_start():
        return struct.pack('!BBH', 255, 1, 1)

    @staticmethod
    def audio_stop():
        return struct.pack('!BBH', 255, 1, 0)

    @staticmethod
    def framebuffer_update(*rects):
        data = struct.pack('!BxH', 0, len(rects))
        for x, y, w, h, encoding in rects:
            data += struct.pack('!HHHHi', x, y, w, h, encoding)
        return data


@pytest.fixture
def rfb():
    return RFBBytes


class RecordingEmitter(EventEmitter):
    def __init__(self):
        super().__init__()
        self.events = []

    def emit(self, kind, message='', **fields):
        event = super().emit(kind, message, **fields)
        self.events.append(event)
        return event

    def kinds(self):
        return [event.kind for event in self.events]


@pytest.fixture
def events():
    return RecordingEmitter()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    app_logger = logging.getLogger('vncaudio')
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True


# ============================================================================
# Connections
# ============================================================================


class ServerEnd:
    """The server half of a socketpair with a prepared script."""

    def __init__(self, sock):
        self.sock = sock

    def send(self, data, close=True):
        self.sock.sendall(data)
        if close:
            self.sock.shutdown(socket.SHUT_WR)

    def received(self):
        """Everything the client wrote; call after the client side is closed."""
        data = b''
        while True:
            chunk = self.sock.recv(4096)
            if not chunk:
                return data
            data += chunk


@pytest.fixture
def connection():
    client_sock, server_sock = socket.socketpair()
    server_sock.settimeout(5)
    transport = SocketTransport(client_sock)
    server = ServerEnd(server_sock)
    yield transport, server
    transport.close()
    server_sock.close()


class ScriptedVNCServer:
    """Single-connection TCP server replaying a fixed conversation.

    Sends ``greeting``, waits for ``expect`` bytes from the client, sends
    ``trailer``, then half-closes and waits for the client to hang up.
    """

    def __init__(self, greeting, expect=0, trailer=b''):
        self.greeting = greeting
        self.expect = expect
        self.trailer = trailer
        self.received = b''
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(('127.0.0.1', 0))
        self.listener.listen(1)
        self.listener.settimeout(5)
        self.port = self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        with conn:
            try:
                self._converse(conn)
            except OSError:
                pass

    def _converse(self, conn):
        conn.settimeout(5)
        conn.sendall(self.greeting)
        while len(self.received) < self.expect:
            chunk = conn.recv(4096)
            if not chunk:
                return
            self.received += chunk
        conn.sendall(self.trailer)
        conn.shutdown(socket.SHUT_WR)
        while conn.recv(4096):
            pass

    def close(self):
        self.thread.join(timeout=5)
        self.listener.close()


@pytest.fixture
def vnc_server():
    servers = []

    def start(greeting, expect=0, trailer=b''):
        server = ScriptedVNCServer(greeting, expect, trailer)
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()
