"""
scrcpy-mirror - H.264 screen mirroring pipeline

A Python implementation of the video path of an Android screen mirror
driven by scrcpy.

This package provides functionality to:
- Split a raw Annex-B H.264 stream into NAL units
- Cache parameter sets and assemble decodable access units
- Decode access units with PyAV (FFmpeg), with latency-bounded backpressure
- Batch raw video on the host side and carry it to the UI as base64 messages

Based on scrcpy from Genymobile:
https://github.com/Genymobile/scrcpy

Example:
    >>> from scrcpy_mirror import MirrorConfig, MirrorHost, MirrorView
    >>> from scrcpy_mirror.core.channel import connect
    >>>
    >>> view = MirrorView(MirrorConfig())
    >>> host = MirrorHost(view.handle_message)
    >>> host.start(connect("127.0.0.1", 27183))
"""

from .core import (
    NalType,
    split_nal_units,
    classify_nal,
    codec_string,
    ParameterSetCache,
    AccessUnit,
    AccessUnitAssembler,
    DecoderSession,
    SessionState,
    DecodedFrame,
    FrameSurface,
    TransportAdapter,
    VideoBatcher,
    VideoStreamReader,
    SocketDeviceChannel,
    create_backend_factory,
)
from .client import (
    MirrorConfig,
    MirrorHost,
    MirrorView,
    ViewStatus,
)

__version__ = "0.1.0"
__all__ = [
    # Client
    "MirrorConfig",
    "MirrorHost",
    "MirrorView",
    "ViewStatus",
    # Bitstream
    "NalType",
    "split_nal_units",
    "classify_nal",
    "codec_string",
    "ParameterSetCache",
    "AccessUnit",
    "AccessUnitAssembler",
    # Decoding
    "DecoderSession",
    "SessionState",
    "DecodedFrame",
    "FrameSurface",
    "TransportAdapter",
    "create_backend_factory",
    # Host side
    "VideoBatcher",
    "VideoStreamReader",
    "SocketDeviceChannel",
]
