"""
Factory functions for creating decoder backends.

This module maps configuration names to backend factories usable by
DecoderSession.
"""

import functools

from .backend import BackendFactory
from .echo import EchoDecoderBackend
from .exceptions import CodecNotSupportedError
from .hw import HWAccelConfig
from .pyav import PyAVDecoderBackend


BACKEND_PYAV = "pyav"
BACKEND_ECHO = "echo"


def create_backend_factory(name: str = BACKEND_PYAV, hw_accel: bool = False) -> BackendFactory:
    """
    Get a backend factory by name.

    Args:
        name: "pyav" or "echo"
        hw_accel: Probe for a hardware decoder (pyav only)

    Returns:
        Callable creating a backend from the frame and error callbacks

    Raises:
        CodecNotSupportedError: If the backend name is unknown
    """
    if name == BACKEND_PYAV:
        hw_config = HWAccelConfig.auto_detect() if hw_accel else None
        return functools.partial(PyAVDecoderBackend, hw_config=hw_config)

    if name == BACKEND_ECHO:
        return EchoDecoderBackend

    raise CodecNotSupportedError(f"Unknown decoder backend: {name}")
