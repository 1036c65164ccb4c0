"""
Configuration for the mirror client.

This module contains the configuration dataclass shared by the host side
(reader + batcher) and the UI side (transport adapter + decoder).
"""

from dataclasses import dataclass

from scrcpy_mirror.core.protocol import (
    DEFAULT_BATCH_INTERVAL,
    DEFAULT_MAX_BATCH_BYTES,
    DEFAULT_MAX_DECODE_QUEUE,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SCRATCH_MIN_SIZE,
)


@dataclass
class MirrorConfig:
    """
    Configuration for mirroring.

    Defaults keep end-to-end latency low at the cost of dropped frames.
    """
    # Host side batching
    batch_interval: float = DEFAULT_BATCH_INTERVAL  # Flush delay in seconds
    max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES  # Discard whole batch beyond this

    # Device channel
    read_timeout: float = DEFAULT_READ_TIMEOUT  # Idle timeout, then retry
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    framed: bool = False  # Channel carries scrcpy frame meta headers

    # Decoding
    max_decode_queue: int = DEFAULT_MAX_DECODE_QUEUE  # Drop delta frames beyond this
    scratch_min_size: int = DEFAULT_SCRATCH_MIN_SIZE
    decoder: str = "pyav"  # pyav or echo
    hw_accel: bool = False  # Try hardware decoders first (pyav only)
