"""
scrcpy_mirror/core/decoder/exceptions.py

Exception classes for decoder errors.

This module defines the exception hierarchy used by the decoder backends
and the decoder session.
"""


__all__ = [
    'DecoderError',
    'CodecNotSupportedError',
    'DecoderInitializationError',
    'DecodeError'
]


class DecoderError(Exception):
    """Base exception for decoder errors."""
    pass


class CodecNotSupportedError(DecoderError):
    """Raised when a codec identifier is not supported."""
    pass


class DecoderInitializationError(DecoderError):
    """Raised when decoder configuration fails."""
    pass


class DecodeError(DecoderError):
    """Raised when chunk decoding fails."""
    pass
