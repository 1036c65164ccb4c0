"""
scrcpy_mirror/core/protocol.py

Protocol constants and enumerations for scrcpy_mirror.

This module defines the bitstream-level constants (NAL unit types, Annex-B
start codes), the host/UI wire message types, and the tuning constants of
the video pipeline.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Final


# ============================================================================
# H.264 NAL Unit Types
# ============================================================================

class NalType(IntEnum):
    """H.264 NAL unit types handled by the parser. All others are ignored."""
    NON_IDR = 1  # Non-IDR slice (delta frame)
    IDR = 5      # IDR slice (key frame)
    SPS = 7      # Sequence parameter set
    PPS = 8      # Picture parameter set


NAL_TYPE_MASK: Final[int] = 0x1F  # Lower 5 bits of the NAL header byte


# ============================================================================
# Annex-B Start Codes
# ============================================================================

START_CODE_3: Final[bytes] = b"\x00\x00\x01"
START_CODE_4: Final[bytes] = b"\x00\x00\x00\x01"


# ============================================================================
# Parser Limits
# ============================================================================

# Packets shorter than this are dropped before parsing (partial/garbage chunks)
MIN_PACKET_SIZE: Final[int] = 5

# NAL units shorter than this (start code + header) are skipped
MIN_NAL_SIZE: Final[int] = 4

# SPS layout: header byte followed by profile_idc, constraint flags, level_idc
SPS_PROFILE_BYTES: Final[int] = 3

CODEC_PREFIX_AVC: Final[str] = "avc1"


# ============================================================================
# Pipeline Tuning
# ============================================================================

DEFAULT_MAX_DECODE_QUEUE: Final[int] = 3            # Backpressure threshold
DEFAULT_SCRATCH_MIN_SIZE: Final[int] = 256 * 1024   # 256KB scratch floor
DEFAULT_BATCH_INTERVAL: Final[float] = 0.008        # ~120Hz flush rate
DEFAULT_MAX_BATCH_BYTES: Final[int] = 2 * 1024 * 1024  # 2MB batch ceiling
DEFAULT_READ_TIMEOUT: Final[float] = 10.0           # Idle vs lost boundary
DEFAULT_READ_CHUNK_SIZE: Final[int] = 64 * 1024     # 64KB per recv


# ============================================================================
# scrcpy Frame Meta (framed channel mode)
# ============================================================================

# Packet header is 12 bytes:
# [8 bytes: PTS + flags][4 bytes: data size]
#
# bit 63: config packet, bit 62: key frame, lower 62 bits: PTS

FRAME_HEADER_SIZE: Final[int] = 12
PACKET_FLAG_CONFIG: Final[int] = 1 << 63
PACKET_FLAG_KEY_FRAME: Final[int] = 1 << 62
PACKET_PTS_MASK: Final[int] = PACKET_FLAG_KEY_FRAME - 1
MAX_PACKET_SIZE: Final[int] = 16 * 1024 * 1024  # 16MB


# ============================================================================
# Host <-> UI Wire Messages
# ============================================================================

class MessageType(str, Enum):
    """Types of messages posted from the host to the UI."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    VIDEO = "video"


class LogLevel(str, Enum):
    """Levels of log events surfaced to the UI."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class LogEvent:
    """A log record surfaced to the UI."""
    message: str
    level: LogLevel = LogLevel.INFO


# ============================================================================
# Utilities
# ============================================================================

def nal_type_to_string(nal_type: int) -> str:
    """Convert a NAL type to a human-readable name."""
    try:
        return NalType(nal_type).name
    except ValueError:
        return f"OTHER({nal_type})"
