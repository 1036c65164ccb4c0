"""
scrcpy_mirror/core/assembler.py

Parameter set caching and access unit assembly.

Each transport packet is split into NAL units, SPS/PPS units update the
cache, and the slice units are concatenated into one access unit. Key frames
are prefixed with the cached SPS and PPS so the decoder can always start
from them; delta frames carry the slices only.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .nal import MalformedNalError, NalUnit, parse_sps_profile, split_nal_units
from .protocol import MIN_NAL_SIZE, MIN_PACKET_SIZE, NalType


logger = logging.getLogger(__name__)


__all__ = ["ParameterSetCache", "AccessUnit", "AccessUnitAssembler"]


# Called once both parameter sets are cached; returns True if the decoder
# accepted a configuration built from them
ConfigureCallback = Callable[[bytes, bytes], bool]


class ParameterSetCache:
    """
    Most recent SPS and PPS of a stream session.

    Last write wins: no history is kept. ``configured`` flips to True once per
    session, when the decoder accepts a configuration built from both sets.
    """

    def __init__(self) -> None:
        self.sps: Optional[bytes] = None
        self.pps: Optional[bytes] = None
        self.configured = False

    @property
    def ready(self) -> bool:
        """Check if both parameter sets are cached."""
        return self.sps is not None and self.pps is not None

    def clear(self) -> None:
        """Drop both parameter sets and the configured flag."""
        self.sps = None
        self.pps = None
        self.configured = False


@dataclass
class AccessUnit:
    """
    One picture worth of Annex-B data, submitted to the decoder as one chunk.

    Attributes:
        data: SPS + PPS + slices for key frames, slices only otherwise
        is_key_frame: True if the unit contains an IDR slice
    """
    data: bytes
    is_key_frame: bool

    @property
    def size(self) -> int:
        """Return the size of the access unit in bytes."""
        return len(self.data)


class AccessUnitAssembler:
    """
    Groups the NAL units of one packet into an access unit.

    Example:
        >>> assembler = AccessUnitAssembler()
        >>> unit = assembler.assemble(packet)
        >>> if unit is not None:
        ...     decoder.decode(unit)
    """

    def __init__(
        self,
        cache: Optional[ParameterSetCache] = None,
        on_parameter_sets: Optional[ConfigureCallback] = None,
    ) -> None:
        """
        Initialize the assembler.

        Args:
            cache: Parameter set cache (creates one if None)
            on_parameter_sets: Decoder configuration hook, invoked the first
                time both parameter sets are available
        """
        self.cache = cache if cache is not None else ParameterSetCache()
        self._on_parameter_sets = on_parameter_sets

        # Statistics
        self._packets_rejected = 0
        self._nals_skipped = 0

    def assemble(self, packet, size: Optional[int] = None) -> Optional[AccessUnit]:
        """
        Parse one transport packet.

        Args:
            packet: Annex-B bytes (bytes, bytearray or memoryview)
            size: Number of valid bytes in ``packet`` (default: all)

        Returns:
            The access unit, or None if the packet holds no slice
        """
        if size is None:
            size = len(packet)
        if size < MIN_PACKET_SIZE:
            self._packets_rejected += 1
            return None

        has_key_frame = False
        slices: List[NalUnit] = []

        for nal in split_nal_units(packet, size):
            if len(nal) < MIN_NAL_SIZE:
                self._nals_skipped += 1
                continue

            nal_type = nal.nal_type
            if nal_type == NalType.SPS:
                sps = nal.to_bytes()
                try:
                    parse_sps_profile(sps)
                except MalformedNalError:
                    self._nals_skipped += 1
                    continue
                self.cache.sps = sps
            elif nal_type == NalType.PPS:
                self.cache.pps = nal.to_bytes()
            elif nal_type == NalType.IDR:
                has_key_frame = True
                slices.append(nal)
            elif nal_type == NalType.NON_IDR:
                slices.append(nal)

        self._maybe_configure()

        if not slices:
            return None
        return AccessUnit(self._build(slices, has_key_frame), has_key_frame)

    def _maybe_configure(self) -> None:
        """Trigger the one-time decoder configuration."""
        cache = self.cache
        if cache.configured or not cache.ready or self._on_parameter_sets is None:
            return
        cache.configured = bool(self._on_parameter_sets(cache.sps, cache.pps))

    def _build(self, slices: List[NalUnit], has_key_frame: bool) -> bytes:
        """Concatenate the access unit bytes."""
        out = bytearray()
        if has_key_frame and self.cache.ready:
            out += self.cache.sps
            out += self.cache.pps
        for nal in slices:
            out += nal.view()
        return bytes(out)

    def reset(self) -> None:
        """Clear the parameter set cache (on teardown or reconnect)."""
        self.cache.clear()

    def get_stats(self) -> dict:
        """Get assembler statistics."""
        return {
            "packets_rejected": self._packets_rejected,
            "nals_skipped": self._nals_skipped,
            "configured": self.cache.configured,
        }
