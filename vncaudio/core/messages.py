"""RFB wire constants and the client messages this client sends.

All integers on the wire are big-endian.
"""
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable

from dataclasses_json import dataclass_json

CLIENT_VERSION = b'RFB 003.008\n'
VERSION_LENGTH = 12

SECURITY_NONE = 1
SHARED_FLAG = 1

# Client message types
SET_ENCODINGS = 2
QEMU_CLIENT_MESSAGE = 255

# Server message types
FRAMEBUFFER_UPDATE = 0
QEMU_SERVER_MESSAGE = 255

# Pseudo-encodings
QEMU_AUDIO_ENCODING = -259

# QEMU client submessage for audio control
QEMU_AUDIO_SUBMESSAGE = 1

# QEMU audio client operations
AUDIO_ENABLE = 0
AUDIO_SET_FORMAT = 2

# QEMU audio server operations
AUDIO_STOPPED = 0
AUDIO_STARTED = 1
AUDIO_DATA = 2

PIXEL_FORMAT_LENGTH = 16
RECTANGLE_HEADER_LENGTH = 12


class SampleFormat(IntEnum):
    """QEMU audio sample formats"""
    U8 = 0
    S8 = 1
    U16 = 2
    S16 = 3
    U32 = 4
    S32 = 5


@dataclass_json
@dataclass
class AudioFormat:
    sample_format: int = SampleFormat.S16
    channels: int = 2
    frequency: int = 48000

    def __post_init__(self):
        # Raises ValueError for ids QEMU does not know
        self.sample_format = SampleFormat(self.sample_format)
        if not 0 < self.channels < 256:
            raise ValueError(f"Invalid channel count: {self.channels}")
        if not 0 < self.frequency < 2 ** 32:
            raise ValueError(f"Invalid frequency: {self.frequency}")


@dataclass
class ServerInit:
    width: int
    height: int
    pixel_format: bytes
    name: str


@dataclass
class RectangleHeader:
    x: int
    y: int
    width: int
    height: int
    encoding: int

    @classmethod
    def from_bytes(cls, block: bytes) -> "RectangleHeader":
        return cls(*struct.unpack('!HHHHi', block))


def encode_set_encodings(encodings: Iterable[int]) -> bytes:
    encodings = list(encodings)
    message = struct.pack('!BxH', SET_ENCODINGS, len(encodings))
    for encoding in encodings:
        message += struct.pack('!i', encoding)
    return message


def encode_audio_enable() -> bytes:
    return struct.pack('!BBH', QEMU_CLIENT_MESSAGE, QEMU_AUDIO_SUBMESSAGE, AUDIO_ENABLE)


def encode_audio_set_format(audio_format: AudioFormat) -> bytes:
    return struct.pack('!BBHBBI',
        QEMU_CLIENT_MESSAGE,
        QEMU_AUDIO_SUBMESSAGE,
        AUDIO_SET_FORMAT,
        audio_format.sample_format,
        audio_format.channels,
        audio_format.frequency
    )
