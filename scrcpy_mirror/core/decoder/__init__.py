"""
scrcpy_mirror/core/decoder

Video decoder package for scrcpy_mirror.

This package contains:
- backend: DecoderBackend capability interface and chunk/frame types
- session: DecoderSession state machine (configure once, decode, backpressure)
- pyav: PyAV (FFmpeg) backend, software or hardware accelerated
- hw: Hardware decoder detection helpers
- echo: Echo backend for dry runs and tests
- exceptions: Decoder exception hierarchy
"""

from .backend import (
    ChunkType,
    DecoderConfig,
    EncodedChunk,
    DecodedFrame,
    DecoderBackend,
    BackendFactory,
)
from .exceptions import (
    DecoderError,
    CodecNotSupportedError,
    DecoderInitializationError,
    DecodeError
)
from .session import DecoderSession, SessionState, VideoGeometry
from .echo import EchoDecoderBackend
from .pyav import PyAVDecoderBackend
from .hw import HWAccelConfig, HWDeviceType, list_available_hw_decoders
from .factory import create_backend_factory, BACKEND_PYAV, BACKEND_ECHO


__all__ = [
    # Interface
    'ChunkType',
    'DecoderConfig',
    'EncodedChunk',
    'DecodedFrame',
    'DecoderBackend',
    'BackendFactory',

    # Exceptions
    'DecoderError',
    'CodecNotSupportedError',
    'DecoderInitializationError',
    'DecodeError',

    # Session
    'DecoderSession',
    'SessionState',
    'VideoGeometry',

    # Backends
    'EchoDecoderBackend',
    'PyAVDecoderBackend',
    'create_backend_factory',
    'BACKEND_PYAV',
    'BACKEND_ECHO',

    # Hardware acceleration
    'HWAccelConfig',
    'HWDeviceType',
    'list_available_hw_decoders',
]
