"""
scrcpy_mirror/core/channel/__init__.py

Device channels delivering the raw video stream.
"""

from .base import (
    ChannelClosedError,
    ChannelError,
    ChannelTimeoutError,
    DeviceChannel,
)
from .socket import SocketDeviceChannel, connect

__all__ = [
    # Interface
    "DeviceChannel",
    # Exceptions
    "ChannelError",
    "ChannelTimeoutError",
    "ChannelClosedError",
    # Socket binding
    "SocketDeviceChannel",
    "connect",
]
