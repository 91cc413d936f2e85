"""Stream QEMU guest audio from a VNC server to standard output."""

__version__ = "0.1.0"
