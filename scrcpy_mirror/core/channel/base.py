"""
scrcpy_mirror/core/channel/base.py

Device channel interface and exceptions.

A device channel delivers the raw video byte stream coming from the device.
Reads are bounded by a timeout so an idle device can be told apart from a
lost one.
"""

from abc import ABC, abstractmethod


class ChannelError(Exception):
    """Base exception for device channel operations"""

    pass


class ChannelTimeoutError(ChannelError):
    """No data arrived within the read timeout (device idle, retry)"""

    pass


class ChannelClosedError(ChannelError):
    """The channel reached end of stream or was closed"""

    pass


class DeviceChannel(ABC):
    """Source of raw video bytes from a device."""

    @abstractmethod
    def read(self, timeout: float) -> bytes:
        """
        Read the next chunk of video bytes.

        Args:
            timeout: Maximum time to wait for data, in seconds

        Returns:
            A non-empty chunk

        Raises:
            ChannelTimeoutError: If nothing arrived within the timeout
            ChannelClosedError: If the stream ended or the channel was closed
            OSError: If the transport failed while the channel was open
        """

    @abstractmethod
    def close(self) -> None:
        """Close the channel, unblocking any pending read."""
