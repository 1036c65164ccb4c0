"""
scrcpy_mirror/core/nal.py

H.264 Annex-B NAL unit splitting and classification.

This module handles the lowest layer of the video pipeline:
- Locating 3-byte (00 00 01) and 4-byte (00 00 00 01) start codes
- Slicing a buffer into start-code-prefixed NAL units
- Extracting the NAL type from the header byte
- Reading profile/constraint/level from an SPS and deriving the codec string
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from .protocol import (
    CODEC_PREFIX_AVC,
    NAL_TYPE_MASK,
    SPS_PROFILE_BYTES,
    START_CODE_3,
    START_CODE_4,
    NalType,
)


BytesLike = Union[bytes, bytearray, memoryview]


__all__ = [
    "MalformedNalError",
    "NalUnit",
    "NalInfo",
    "SpsProfile",
    "split_nal_units",
    "start_code_length",
    "get_nal_type",
    "parse_sps_profile",
    "classify_nal",
    "codec_string",
]


class MalformedNalError(Exception):
    """Raised when a NAL unit is too short for the requested field."""
    pass


@dataclass(frozen=True)
class NalUnit:
    """
    A start-code-prefixed NAL unit inside a source buffer.

    The unit does not own its bytes: ``source`` may be a scratch buffer that
    is overwritten by the next packet, so anything kept past the current
    packet must be copied with ``to_bytes()``.

    Attributes:
        source: Buffer the unit was sliced from
        start: Offset of the first start code byte
        end: Offset one past the last byte of the unit
    """
    source: Union[bytes, bytearray] = field(repr=False)
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    @property
    def prefix_length(self) -> int:
        """Length of the start code prefix (3 or 4)."""
        return start_code_length(self.source, self.start)

    @property
    def nal_type(self) -> int:
        """NAL type (0-31) from the header byte following the start code."""
        return get_nal_type(self.source, self.start, self.end)

    def to_bytes(self) -> bytes:
        """Return an owned copy of the unit, start code included."""
        return bytes(self.source[self.start:self.end])

    def view(self) -> memoryview:
        """Return a zero-copy view of the unit."""
        return memoryview(self.source)[self.start:self.end]


@dataclass(frozen=True)
class SpsProfile:
    """
    Profile, constraint flags and level read from an SPS.

    Attributes:
        profile_idc: profile_idc byte (e.g. 0x64 for High)
        constraint_flags: constraint_set flags byte
        level_idc: level_idc byte (e.g. 0x28 for level 4.0)
    """
    profile_idc: int
    constraint_flags: int
    level_idc: int

    @property
    def codec_string(self) -> str:
        """Codec identifier in the ``avc1.PPCCLL`` form."""
        return (
            f"{CODEC_PREFIX_AVC}."
            f"{self.profile_idc:02x}{self.constraint_flags:02x}{self.level_idc:02x}"
        )


@dataclass(frozen=True)
class NalInfo:
    """Classification result for one NAL unit."""
    nal_type: int
    sps_profile: Optional[SpsProfile] = None


def _find_start_code(data: Union[bytes, bytearray], pos: int, end: int):
    """
    Find the next start code at or after ``pos``.

    A 4-byte start code is preferred over the 3-byte one it contains.

    Returns:
        Tuple of (offset, length), or (-1, 0) if none is found
    """
    p = data.find(START_CODE_3, pos, end)
    if p < 0:
        return -1, 0
    if p > pos and data[p - 1] == 0:
        return p - 1, 4
    return p, 3


def split_nal_units(data: BytesLike, end: Optional[int] = None) -> List[NalUnit]:
    """
    Split an Annex-B buffer into NAL units.

    Each unit begins at its start code and ends right before the next start
    code, or at ``end``. Bytes before the first start code are discarded. A
    buffer without any start code yields an empty list. Units are not length
    checked here: dropping short units is the caller's job.

    Args:
        data: Buffer to scan (memoryview input is copied once)
        end: Number of valid bytes in ``data`` (default: the whole buffer)

    Returns:
        Ordered list of NalUnit slices over ``data``
    """
    if isinstance(data, memoryview):
        data = data.tobytes()
    if end is None:
        end = len(data)

    start, length = _find_start_code(data, 0, end)
    if start < 0:
        return []

    units: List[NalUnit] = []
    cursor = start + length
    while cursor < end:
        pos, length = _find_start_code(data, cursor, end)
        if pos < 0:
            break
        units.append(NalUnit(data, start, pos))
        start = pos
        cursor = pos + length

    units.append(NalUnit(data, start, end))
    return units


def start_code_length(data: BytesLike, offset: int = 0) -> int:
    """
    Get the length of the start code at ``offset``.

    Returns:
        4 or 3 for a start code, 0 when the data does not start with one
    """
    if data[offset:offset + 4] == START_CODE_4:
        return 4
    if data[offset:offset + 3] == START_CODE_3:
        return 3
    return 0


def get_nal_type(data: BytesLike, offset: int = 0, end: Optional[int] = None) -> int:
    """
    Parse the H.264 NAL type from a unit (with or without start code).

    Returns:
        NAL type (1-31), or 0 when there is no header byte
    """
    if end is None:
        end = len(data)
    header = offset + start_code_length(data, offset)
    if header < end:
        return data[header] & NAL_TYPE_MASK
    return 0


def parse_sps_profile(sps: BytesLike) -> SpsProfile:
    """
    Read profile_idc, constraint flags and level_idc from an SPS unit.

    This is NOT a general SPS parser: no Exp-Golomb decoding is done. The
    three bytes are read at fixed offsets right after the NAL header, which
    holds for the Annex-B SPS emitted by Android encoders through scrcpy.

    Args:
        sps: SPS unit, start code optional

    Raises:
        MalformedNalError: If the unit is too short
    """
    header = start_code_length(sps)
    if len(sps) < header + 1 + SPS_PROFILE_BYTES:
        raise MalformedNalError(
            f"SPS too short: need {header + 1 + SPS_PROFILE_BYTES} bytes, got {len(sps)}"
        )
    return SpsProfile(
        profile_idc=sps[header + 1],
        constraint_flags=sps[header + 2],
        level_idc=sps[header + 3],
    )


def classify_nal(data: BytesLike) -> NalInfo:
    """
    Classify one NAL unit.

    Args:
        data: NAL unit with its start code prefix

    Returns:
        NalInfo with the type and, for SPS units, the profile bytes

    Raises:
        MalformedNalError: If an SPS is too short to read its profile bytes
    """
    nal_type = get_nal_type(data)
    if nal_type == NalType.SPS:
        return NalInfo(nal_type, parse_sps_profile(data))
    return NalInfo(nal_type)


def codec_string(sps: BytesLike) -> str:
    """
    Derive the decoder codec identifier from an SPS.

    Example:
        >>> codec_string(b"\\x00\\x00\\x00\\x01\\x67\\x64\\x00\\x28")
        'avc1.640028'
    """
    return parse_sps_profile(sps).codec_string
