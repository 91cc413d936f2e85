import struct
import logging
from typing import BinaryIO, Optional

from . import messages
from .errors import (AuthenticationFailed, GracefulEof, IoFailure, SecurityUnavailable,
                     UnknownAudioOperation, UnknownMessageType)
from .events import EventEmitter, EventKind
from .messages import AudioFormat, RectangleHeader, ServerInit
from .transport import SocketTransport

logger = logging.getLogger(__name__)


class AudioVNCClient:
    """A VNC client that only listens to QEMU guest audio.

    ``handshake`` negotiates RFB 3.8 with security type None and asks the
    server for audio capture; ``serve`` then forwards every audio data chunk
    to ``sink`` until the server closes the connection. Framebuffer updates
    are read and dropped.
    """

    def __init__(self, transport: SocketTransport, sink: BinaryIO,
                 events: Optional[EventEmitter] = None,
                 audio_format: Optional[AudioFormat] = None):
        self.transport = transport
        self.sink = sink
        self.events = events or EventEmitter()
        self.audio_format = audio_format or AudioFormat()
        self.server_version = None
        self.server_init = None

    def run(self):
        """Handshake, then forward audio until the server hangs up"""
        self.handshake()
        self.serve()

    def handshake(self) -> ServerInit:
        """Perform the full handshake; any error leaves the connection unusable"""
        self._do_version()
        self._do_security()
        self._do_client_init()
        self._set_encodings()
        self._set_audio_format()
        self._enable_audio_capture()
        return self.server_init

    def _do_version(self):
        version = self.transport.recv_exact(messages.VERSION_LENGTH)
        self.server_version = version.decode('ascii', errors='replace')
        self.events.log(f"Server version: {self.server_version.strip()}",
                        version=self.server_version)

        self.transport.send_all(messages.CLIENT_VERSION)
        self.events.log("Sent client version: RFB 003.008")

    def _do_security(self):
        """Negotiate security type None"""
        num_types = self.transport.recv_exact(1)[0]
        if num_types == 0:
            raise SecurityUnavailable([], reason=self._read_reason())

        security_types = list(self.transport.recv_exact(num_types))
        self.events.log(f"Number of security types: {num_types}")
        self.events.log(f"Security types: {security_types}", security_types=security_types)

        if messages.SECURITY_NONE not in security_types:
            raise SecurityUnavailable(security_types)

        self.transport.send_all(struct.pack('!B', messages.SECURITY_NONE))
        self.events.log(f"Sent selected security type: {messages.SECURITY_NONE}")

        result = struct.unpack('!I', self.transport.recv_exact(4))[0]
        if result != 0:
            raise AuthenticationFailed(self._read_reason())
        self.events.log("Security authentication succeeded")

    def _read_reason(self) -> str:
        """Read a length-prefixed failure reason string"""
        reason_length = struct.unpack('!I', self.transport.recv_exact(4))[0]
        return self.transport.recv_exact(reason_length).decode('utf-8', errors='replace')

    def _do_client_init(self):
        self.transport.send_all(struct.pack('!B', messages.SHARED_FLAG))
        self.events.log(f"Sent shared-flag: {messages.SHARED_FLAG}")

        width, height = struct.unpack('!HH', self.transport.recv_exact(4))
        self.events.log(f"Received framebuffer size: {width}x{height}",
                        width=width, height=height)

        pixel_format = self.transport.recv_exact(messages.PIXEL_FORMAT_LENGTH)
        self.events.log(f"Received pixel format: {list(pixel_format)}")

        name_length = struct.unpack('!I', self.transport.recv_exact(4))[0]
        name = self.transport.recv_exact(name_length).decode('utf-8', errors='replace')
        self.events.log(f"Received desktop name: {name}", name=name)

        self.server_init = ServerInit(width, height, pixel_format, name)

    def _set_encodings(self):
        self.transport.send_all(messages.encode_set_encodings([messages.QEMU_AUDIO_ENCODING]))
        self.events.log("Sent SetEncodings message with QEMU Audio encoding.")

    def _set_audio_format(self):
        fmt = self.audio_format
        self.transport.send_all(messages.encode_audio_set_format(fmt))
        self.events.log(
            "Sent QEMU Audio Client Message with operation 2 (Set Audio Sample Format): "
            f"Sample Format: {int(fmt.sample_format)}, Channels: {fmt.channels}, "
            f"Frequency: {fmt.frequency}")

    def _enable_audio_capture(self):
        self.transport.send_all(messages.encode_audio_enable())
        self.events.log("Sent QEMU Audio Client Message with operation 0 (Enable Audio Capture)")

    def serve(self):
        """Dispatch server messages until the server closes the connection.

        Returns normally on a clean close between messages; every other
        problem is raised.
        """
        while True:
            try:
                message_type = self.transport.recv_exact(1, eof_ok=True)[0]
            except GracefulEof:
                self.events.log("Server closed the connection")
                return

            if message_type == messages.FRAMEBUFFER_UPDATE:
                self._handle_framebuffer_update()
            elif message_type == messages.QEMU_SERVER_MESSAGE:
                self._handle_qemu_audio_message()
            else:
                raise UnknownMessageType(message_type)

    def _handle_framebuffer_update(self):
        # Rectangle payloads are assumed empty for the audio pseudo-encoding
        _, num_rects = struct.unpack('!BH', self.transport.recv_exact(3))
        logger.debug(f"Framebuffer update: {num_rects} rectangles")
        for _ in range(num_rects):
            rect = RectangleHeader.from_bytes(
                self.transport.recv_exact(messages.RECTANGLE_HEADER_LENGTH))
            logger.debug(f"Rectangle ({rect.x},{rect.y}) {rect.width}x{rect.height} "
                         f"encoding={rect.encoding}")

    def _handle_qemu_audio_message(self):
        _, operation = struct.unpack('!BH', self.transport.recv_exact(3))

        if operation == messages.AUDIO_STOPPED:
            self.events.emit(EventKind.AUDIOSTOP)
        elif operation == messages.AUDIO_STARTED:
            self.events.emit(EventKind.AUDIOSTART)
        elif operation == messages.AUDIO_DATA:
            length = struct.unpack('!I', self.transport.recv_exact(4))[0]
            self._write_audio(self.transport.recv_exact(length))
        else:
            raise UnknownAudioOperation(operation)

    def _write_audio(self, data: bytes):
        try:
            self.sink.write(data)
            self.sink.flush()
        except OSError as e:
            raise IoFailure(f"Failed to write audio data: {e}") from e
