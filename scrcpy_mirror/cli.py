"""
Command line entry point.

Mirrors a forwarded scrcpy video socket in-process (host and view wired
directly) and logs the video size and pipeline statistics once per second.

The scrcpy server must not send the dummy byte, device meta or codec meta,
so the socket starts with the first video packet.

Example:
    $ adb forward tcp:27183 localabstract:scrcpy
    $ scrcpy-mirror --connect 127.0.0.1:27183 --framed --duration 30
"""

import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

from scrcpy_mirror.client import MirrorConfig, MirrorHost, MirrorView
from scrcpy_mirror.core.channel import connect
from scrcpy_mirror.core.decoder import BACKEND_ECHO, BACKEND_PYAV, DecoderError


logger = logging.getLogger(__name__)


# Seconds between two statistics reports
STATS_INTERVAL = 1.0


def parse_address(value: str) -> Tuple[str, int]:
    """Parse ``HOST:PORT``."""
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"Expected HOST:PORT, got '{value}'")
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port: '{port}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrcpy-mirror",
        description="scrcpy-mirror - Decode an Android H.264 screen stream",
    )
    parser.add_argument(
        "--connect", type=parse_address, required=True, metavar="HOST:PORT",
        help="Forwarded scrcpy video socket",
    )
    parser.add_argument(
        "--framed", action="store_true",
        help="Stream carries scrcpy frame meta headers (server started with "
             "send_dummy_byte=false send_device_meta=false send_codec_meta=false)",
    )
    parser.add_argument(
        "--decoder", choices=[BACKEND_PYAV, BACKEND_ECHO], default=BACKEND_PYAV,
        help="Decoder backend (default: pyav)",
    )
    parser.add_argument("--hw", action="store_true", help="Try hardware decoding first")
    parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop after this many seconds (default: until Ctrl+C)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point for the scrcpy-mirror command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = MirrorConfig(framed=args.framed, decoder=args.decoder, hw_accel=args.hw)
    host_name, port = args.connect

    try:
        view = MirrorView(config)
    except DecoderError as e:
        logger.error(f"Error: {e}")
        return 1

    try:
        channel = connect(
            host_name, port, framed=config.framed, chunk_size=config.read_chunk_size
        )
    except OSError as e:
        logger.error(f"Failed to connect to {host_name}:{port}: {e}")
        return 1

    host = MirrorHost(view.handle_message, config)
    view.start()
    host.start(channel)

    deadline = None if args.duration is None else time.monotonic() + args.duration
    try:
        while host.is_active:
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(STATS_INTERVAL)
            view.surface.consume()
            width, height = view.video_size
            stats = view.get_stats()
            logger.info(
                f"{width}x{height} "
                f"decoded={stats.get('frames_decoded', 0)} "
                f"dropped={stats.get('dropped_frames', 0)} "
                f"bytes={stats.get('bytes_received', 0)}"
            )
    except KeyboardInterrupt:
        print("\nDisconnected")
    finally:
        host.stop()
        view.close()

    return 0 if view.last_error is None else 1


if __name__ == "__main__":
    sys.exit(main())
