"""
Mirror client for scrcpy_mirror.

This package wires the core pipeline into the two halves of a mirror:
- MirrorHost: reads the device channel and posts batched wire messages
- MirrorView: receives wire messages and decodes video onto a surface
"""

from scrcpy_mirror.client.config import MirrorConfig
from scrcpy_mirror.client.host import MirrorHost
from scrcpy_mirror.client.view import MirrorView, ViewStatus

__all__ = [
    "MirrorConfig",
    "MirrorHost",
    "MirrorView",
    "ViewStatus",
]
