"""Structured diagnostic events.

The protocol engine reports what it does through an ``EventEmitter``; how
events are presented is left to whatever handlers are installed on the
``vncaudio.events`` logger. The command line installs ``EventFormatter``,
which renders one ``EVT.<KIND> <message>`` line per record on stderr.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

EVENT_LOGGER = 'vncaudio.events'


class EventKind(str, Enum):
    CONNECTING = 'CONNECTING'
    CONNECTED = 'CONNECTED'
    LOG = 'LOG'
    ERROR_LOG = 'ERROR_LOG'
    AUDIOSTART = 'AUDIOSTART'
    AUDIOSTOP = 'AUDIOSTOP'


@dataclass
class Event:
    kind: EventKind
    message: str = ''
    fields: Dict[str, Any] = field(default_factory=dict)


class EventEmitter:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(EVENT_LOGGER)

    def emit(self, kind: EventKind, message: str = '', **fields) -> Event:
        """Emit one event; returns it for callers that want to inspect it."""
        event = Event(kind, message, fields)
        level = logging.ERROR if kind is EventKind.ERROR_LOG else logging.INFO
        self.logger.log(level, message,
                        extra={'event': kind.value, 'event_fields': fields})
        return event

    def log(self, message: str, **fields) -> Event:
        return self.emit(EventKind.LOG, message, **fields)

    def error(self, message: str, **fields) -> Event:
        return self.emit(EventKind.ERROR_LOG, message, **fields)


class EventFormatter(logging.Formatter):
    """Render records as ``EVT.<KIND> <message>`` lines.

    Records that did not come from an ``EventEmitter`` are shown as ``LOG``,
    or ``ERROR_LOG`` from level ERROR up. The rendered line is available to
    ``fmt`` as ``%(event_line)s``, so a file handler can add timestamps and
    still keep one line per record.
    """

    def __init__(self, fmt: str = '%(event_line)s', datefmt: Optional[str] = None):
        super().__init__(fmt, datefmt)

    def event_line(self, record: logging.LogRecord) -> str:
        kind = getattr(record, 'event', None)
        if kind is None:
            kind = EventKind.ERROR_LOG.value if record.levelno >= logging.ERROR else EventKind.LOG.value
        message = record.getMessage()
        if record.exc_info:
            message = f"{message} ({record.exc_info[1]})"
        # One line per event
        message = ' '.join(message.split())
        return f"EVT.{kind} {message}" if message else f"EVT.{kind}"

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        record.event_line = self.event_line(record)
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)
        # Tracebacks are folded into event_line rather than appended
        return self.formatMessage(record)
