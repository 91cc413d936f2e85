import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import click

from .config.manager import ConfigManager, DEFAULT_CONFIG_DIR
from .core.errors import VNCError
from .core.events import EventEmitter, EventFormatter, EventKind
from .core.transport import SocketTransport
from .core.vnc_client import AudioVNCClient


def setup_logging(config_manager: Optional[ConfigManager] = None, debug: bool = False):
    """Configure diagnostics: EVT lines on stderr, optional rotating log file.

    Without a config manager only the stderr handler is installed, so that
    messages from loading the configuration are already EVT lines.
    """
    logging_config = config_manager.config['logging'] if config_manager else {}
    level = logging.DEBUG if debug else logging.getLevelName(str(logging_config.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app_logger = logging.getLogger('vncaudio')
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    # stdout carries PCM, so diagnostics must stay on stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(EventFormatter())
    app_logger.addHandler(console_handler)

    if logging_config.get('file'):
        file_handler = RotatingFileHandler(config_manager.get_log_path('vncaudio'),
                                           maxBytes=1024*1024, backupCount=10)
        file_handler.setFormatter(EventFormatter(
            '%(asctime)s %(levelname)s: %(event_line)s [in %(pathname)s:%(lineno)d]'
        ))
        app_logger.addHandler(file_handler)

    app_logger.setLevel(level)
    app_logger.propagate = False


@click.command()
@click.option('-a', '--address', default=None, help='VNC server address')
@click.option('-p', '--port', default=None, type=int, help='VNC server port')
@click.option('--debug/--no-debug', default=False, help='Enable debug diagnostics')
@click.option('--config-dir', type=click.Path(path_type=Path), default=None,
              help=f'Configuration directory (default: {DEFAULT_CONFIG_DIR})')
def run(address, port, debug, config_dir):
    """Stream QEMU guest audio from a VNC server to stdout as raw PCM"""
    setup_logging(debug=debug)
    config_manager = ConfigManager(config_dir)
    setup_logging(config_manager, debug)
    events = EventEmitter()

    # Override config with CLI arguments if provided
    server_config = config_manager.config['server'].copy()
    if address is not None:
        server_config['address'] = address
    if port is not None:
        server_config['port'] = port
    server_address = f"{server_config['address']}:{server_config['port']}"

    try:
        audio_format = config_manager.audio_format()
    except (TypeError, ValueError) as e:
        events.error(f"Invalid audio configuration: {e}")
        sys.exit(1)

    events.emit(EventKind.CONNECTING)
    events.log(f"Connecting to {server_address}")
    try:
        with SocketTransport.connect(server_config['address'], server_config['port']) as transport:
            events.emit(EventKind.CONNECTED)
            events.log(f"Connected to {server_address}")

            sink = click.get_binary_stream('stdout')
            client = AudioVNCClient(transport, sink, events, audio_format)
            client.run()
    except VNCError as e:
        events.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    run()
