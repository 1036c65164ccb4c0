"""
scrcpy_mirror Core Module

This module provides the video pipeline of the mirror:
- Protocol definitions and constants
- Annex-B NAL splitting and classification
- Parameter set caching and access-unit assembly
- Decoder session and decoder backends
- UI-side transport adapter and drawable surface
- Host-side batching, device channels and the stream reader
"""

# ============================================================================
# Protocol Module
# ============================================================================
from .protocol import (
    NalType,
    NAL_TYPE_MASK,
    START_CODE_3,
    START_CODE_4,
    MIN_PACKET_SIZE,
    MIN_NAL_SIZE,
    MessageType,
    LogLevel,
    LogEvent,
    nal_type_to_string,
)

# ============================================================================
# Bitstream Parsing
# ============================================================================
from .nal import (
    MalformedNalError,
    NalUnit,
    NalInfo,
    SpsProfile,
    split_nal_units,
    get_nal_type,
    classify_nal,
    parse_sps_profile,
    codec_string,
)
from .assembler import (
    ParameterSetCache,
    AccessUnit,
    AccessUnitAssembler,
)

# ============================================================================
# Decoder Module
# ============================================================================
from .decoder import (
    DecoderBackend,
    DecoderConfig,
    EncodedChunk,
    DecodedFrame,
    ChunkType,
    DecoderSession,
    SessionState,
    VideoGeometry,
    DecoderError,
    CodecNotSupportedError,
    DecoderInitializationError,
    DecodeError,
    PyAVDecoderBackend,
    EchoDecoderBackend,
    create_backend_factory,
)

# ============================================================================
# UI Side
# ============================================================================
from .surface import FrameSurface
from .transport import (
    ScratchBuffer,
    TransportAdapter,
    encode_video_message,
    decode_video_data,
)

# ============================================================================
# Host Side
# ============================================================================
from .batcher import VideoBatcher
from .reader import VideoStreamReader
from .channel import (
    DeviceChannel,
    SocketDeviceChannel,
    ChannelError,
    ChannelTimeoutError,
    ChannelClosedError,
)


__all__ = [
    # Protocol
    "NalType",
    "NAL_TYPE_MASK",
    "START_CODE_3",
    "START_CODE_4",
    "MIN_PACKET_SIZE",
    "MIN_NAL_SIZE",
    "MessageType",
    "LogLevel",
    "LogEvent",
    "nal_type_to_string",
    # Bitstream parsing
    "MalformedNalError",
    "NalUnit",
    "NalInfo",
    "SpsProfile",
    "split_nal_units",
    "get_nal_type",
    "classify_nal",
    "parse_sps_profile",
    "codec_string",
    "ParameterSetCache",
    "AccessUnit",
    "AccessUnitAssembler",
    # Decoder
    "DecoderBackend",
    "DecoderConfig",
    "EncodedChunk",
    "DecodedFrame",
    "ChunkType",
    "DecoderSession",
    "SessionState",
    "VideoGeometry",
    "DecoderError",
    "CodecNotSupportedError",
    "DecoderInitializationError",
    "DecodeError",
    "PyAVDecoderBackend",
    "EchoDecoderBackend",
    "create_backend_factory",
    # UI side
    "FrameSurface",
    "ScratchBuffer",
    "TransportAdapter",
    "encode_video_message",
    "decode_video_data",
    # Host side
    "VideoBatcher",
    "VideoStreamReader",
    "DeviceChannel",
    "SocketDeviceChannel",
    "ChannelError",
    "ChannelTimeoutError",
    "ChannelClosedError",
]
