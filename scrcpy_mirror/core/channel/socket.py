"""
scrcpy_mirror/core/channel/socket.py

Device channel over a connected TCP socket (e.g. an adb forward tunnel).

Two modes are supported:
- raw: the socket carries a bare Annex-B stream, every recv() is a chunk
- framed: the socket carries scrcpy's video packets, each preceded by a
  12-byte frame meta header; one read() returns one packet payload

Frame meta header (big-endian):

    [. . . . . . . .|. . . .]. . . . . . . . . . . . . . . ...
     <-------------> <-----> <-----------------------------...
           PTS        packet        raw packet
                       size
     <--------------------->
           frame header

The most significant bits of the PTS are used for packet flags:

    byte 7   byte 6   byte 5   byte 4   byte 3   byte 2   byte 1   byte 0
   CK...... ........ ........ ........ ........ ........ ........ ........
   ^^<------------------------------------------------------------------->
   ||                                PTS
   | `- key frame
    `-- config packet
"""

import logging
import socket
import struct
import threading
from typing import Optional

from .base import ChannelClosedError, ChannelTimeoutError, DeviceChannel
from ..protocol import (
    DEFAULT_READ_CHUNK_SIZE,
    FRAME_HEADER_SIZE,
    MAX_PACKET_SIZE,
    PACKET_FLAG_CONFIG,
    PACKET_FLAG_KEY_FRAME,
)


logger = logging.getLogger(__name__)


__all__ = ["SocketDeviceChannel", "connect"]


_FRAME_HEADER = struct.Struct(">QI")


class SocketDeviceChannel(DeviceChannel):
    """
    Device channel reading from a connected socket.

    Example:
        >>> channel = SocketDeviceChannel(sock, framed=True)
        >>> payload = channel.read(timeout=10.0)
        >>> channel.close()
    """

    def __init__(
        self,
        sock: socket.socket,
        framed: bool = False,
        chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ):
        """
        Initialize the channel.

        Args:
            sock: Connected socket, owned by the channel from now on
            framed: Parse scrcpy frame meta headers
            chunk_size: Maximum bytes per recv() call
        """
        self._socket: Optional[socket.socket] = sock
        self.framed = framed
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._closed = False

        # Statistics
        self._bytes_received = 0
        self._packets_received = 0
        self._config_packets = 0
        self._key_frames = 0

    def read(self, timeout: float) -> bytes:
        sock = self._get_socket()
        try:
            sock.settimeout(timeout)
        except OSError as e:
            # Closed concurrently
            raise ChannelClosedError(f"Channel is closed: {e}")
        if self.framed:
            return self._read_packet(sock)
        return self._recv(sock, self._chunk_size)

    def _get_socket(self) -> socket.socket:
        with self._lock:
            if self._closed or self._socket is None:
                raise ChannelClosedError("Channel is closed")
            return self._socket

    def _recv(self, sock: socket.socket, size: int) -> bytes:
        try:
            data = sock.recv(size)
        except socket.timeout:
            raise ChannelTimeoutError("Receive timeout")
        except OSError:
            if self._closed:
                raise ChannelClosedError("Channel is closed")
            raise

        if not data:
            raise ChannelClosedError("Connection closed by remote")
        self._bytes_received += len(data)
        return data

    def _read_packet(self, sock: socket.socket) -> bytes:
        """Read one frame meta header and its payload."""
        # Only a timeout before the first header byte means idle
        first = self._recv(sock, FRAME_HEADER_SIZE)
        header = first + self._recv_exact(sock, FRAME_HEADER_SIZE - len(first))

        pts_flags, size = _FRAME_HEADER.unpack(header)
        if size == 0 or size > MAX_PACKET_SIZE:
            raise ChannelClosedError(f"Invalid packet size: {size}")

        payload = self._recv_exact(sock, size)

        self._packets_received += 1
        if pts_flags & PACKET_FLAG_CONFIG:
            self._config_packets += 1
        elif pts_flags & PACKET_FLAG_KEY_FRAME:
            self._key_frames += 1
        return payload

    def _recv_exact(self, sock: socket.socket, size: int) -> bytes:
        """
        Receive exactly ``size`` bytes.

        A timeout in the middle of a packet loses framing, so it is terminal.

        Raises:
            ChannelClosedError: If the stream ends or stalls mid-packet
        """
        buffer = bytearray()
        remaining = size

        while remaining > 0:
            try:
                chunk = self._recv(sock, min(remaining, self._chunk_size))
            except ChannelTimeoutError:
                raise ChannelClosedError(
                    f"Timeout in the middle of a packet ({len(buffer)}/{size} bytes)"
                )
            buffer.extend(chunk)
            remaining -= len(chunk)

        return bytes(buffer)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sock, self._socket = self._socket, None

        if sock is not None:
            try:
                # Shutdown first: close() alone may not wake a blocked recv()
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Already disconnected
            sock.close()
            logger.debug("Device channel closed")

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def get_stats(self) -> dict:
        """Get channel statistics."""
        return {
            "bytes_received": self._bytes_received,
            "packets_received": self._packets_received,
            "config_packets": self._config_packets,
            "key_frames": self._key_frames,
        }


def connect(
    host: str,
    port: int,
    framed: bool = False,
    timeout: float = 5.0,
    chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
) -> SocketDeviceChannel:
    """
    Connect to a forwarded video socket.

    Raises:
        OSError: If the connection fails
    """
    sock = socket.create_connection((host, port), timeout=timeout)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    logger.info(f"Video socket connected to {host}:{port}")
    return SocketDeviceChannel(sock, framed=framed, chunk_size=chunk_size)
