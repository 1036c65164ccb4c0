"""
scrcpy_mirror/core/decoder/hw.py

Hardware-accelerated H.264 decoding helpers for the PyAV backend.

Platform-specific FFmpeg decoders (NVDEC/CUVID, QSV, VideoToolbox, D3D11VA,
VAAPI, VDPAU) are probed by name; when none is usable the PyAV backend falls
back to the software ``h264`` decoder.
"""

import logging
import platform
from enum import Enum
from typing import Dict, Optional

import av


logger = logging.getLogger(__name__)


__all__ = [
    "HWDeviceType",
    "HWAccelConfig",
    "get_hw_decoder_name",
    "create_hw_codec_context",
    "transfer_hw_frame",
    "list_available_hw_decoders",
]


class HWDeviceType(Enum):
    """Hardware device types for video decoding."""
    NVIDIA = "cuda"          # NVIDIA NVDEC (Windows, Linux)
    INTEL_QSV = "qsv"        # Intel Quick Sync Video (Windows, Linux)
    APPLE = "videotoolbox"   # Apple VideoToolbox (macOS)
    D3D11VA = "d3d11va"      # D3D11VA (Windows)
    VAAPI = "vaapi"          # VAAPI (Linux)
    VDPAU = "vdpau"          # VDPAU (Linux, legacy)
    NONE = "none"            # Software decoding


# FFmpeg decoder name suffix per device type
_DECODER_SUFFIXES: Dict[HWDeviceType, str] = {
    HWDeviceType.NVIDIA: "cuvid",
    HWDeviceType.INTEL_QSV: "qsv",
    HWDeviceType.APPLE: "videotoolbox",
    HWDeviceType.D3D11VA: "d3d11va",
    HWDeviceType.VAAPI: "vaapi",
    HWDeviceType.VDPAU: "vdpau",
}

# Probe order per platform
_PLATFORM_PREFERENCES = {
    "Darwin": [HWDeviceType.APPLE],
    "Windows": [HWDeviceType.D3D11VA, HWDeviceType.NVIDIA, HWDeviceType.INTEL_QSV],
    "Linux": [HWDeviceType.VAAPI, HWDeviceType.NVIDIA, HWDeviceType.INTEL_QSV, HWDeviceType.VDPAU],
}

_HW_PIXEL_FORMATS = ("cuda", "qsv", "videotoolbox", "d3d11", "vaapi", "vdpau")


class HWAccelConfig:
    """Configuration for hardware acceleration."""

    def __init__(
        self,
        device_type: HWDeviceType = HWDeviceType.NONE,
        device_index: int = 0,
        enable_fallback: bool = True
    ):
        """
        Initialize hardware acceleration configuration.

        Args:
            device_type: Hardware device type to use
            device_index: GPU device index (for multi-GPU systems)
            enable_fallback: Fall back to software decoding if HW fails
        """
        self.device_type = device_type
        self.device_index = device_index
        self.enable_fallback = enable_fallback

    @classmethod
    def auto_detect(cls) -> 'HWAccelConfig':
        """
        Pick the first usable hardware decoder for the current platform.

        Returns:
            HWAccelConfig with the detected device type (NONE if nothing is usable)
        """
        system = platform.system()
        for device_type in _PLATFORM_PREFERENCES.get(system, []):
            decoder_name = get_hw_decoder_name(device_type)
            if decoder_name and cls._is_codec_available(decoder_name):
                logger.info(f"Auto-detected {decoder_name} for hardware decoding")
                return cls(device_type)

        logger.warning(f"No hardware decoder available on {system}, will use software decoding")
        return cls(HWDeviceType.NONE)

    @staticmethod
    def _is_codec_available(codec_name: str) -> bool:
        """Check if FFmpeg can open a decoder with this name."""
        try:
            av.CodecContext.create(codec_name, 'r')
            return True
        except (ValueError, av.error.FFmpegError):
            return False


def get_hw_decoder_name(device_type: HWDeviceType) -> Optional[str]:
    """
    Get the FFmpeg H.264 decoder name for a device type.

    Returns:
        Decoder name string, or None for software decoding
    """
    suffix = _DECODER_SUFFIXES.get(device_type)
    if suffix is None:
        return None
    return f"h264_{suffix}"


def create_hw_codec_context(hw_config: HWAccelConfig) -> Optional[av.CodecContext]:
    """
    Create a hardware-accelerated H.264 codec context.

    Args:
        hw_config: Hardware acceleration configuration

    Returns:
        av.CodecContext, or None if hardware decoding is disabled or unavailable
    """
    decoder_name = get_hw_decoder_name(hw_config.device_type)
    if decoder_name is None:
        return None

    try:
        codec_context = av.CodecContext.create(decoder_name, 'r')
    except (ValueError, av.error.FFmpegError) as e:
        logger.warning(f"Hardware decoder '{decoder_name}' not available: {e}")
        return None

    options = {'threads': '1'}
    if hw_config.device_type == HWDeviceType.VAAPI:
        options['device'] = '/dev/dri/renderD128'
    elif hw_config.device_type in (HWDeviceType.D3D11VA, HWDeviceType.NVIDIA):
        options['device'] = str(hw_config.device_index)
    codec_context.options = options

    logger.info(f"Created hardware decoder '{decoder_name}'")
    return codec_context


def transfer_hw_frame(frame: av.VideoFrame, target_format: str = 'rgb24') -> av.VideoFrame:
    """
    Bring a frame to CPU memory in ``target_format``.

    Hardware frames are transferred by reformat(); CPU frames are only
    converted when their format differs.
    """
    if frame.format.name in _HW_PIXEL_FORMATS or frame.format.name != target_format:
        return frame.reformat(format=target_format)
    return frame


def list_available_hw_decoders() -> Dict[str, bool]:
    """
    List the hardware H.264 decoders known to this module.

    Returns:
        Dictionary mapping decoder names to availability
    """
    available = {}
    for device_type in _DECODER_SUFFIXES:
        decoder_name = get_hw_decoder_name(device_type)
        available[decoder_name] = HWAccelConfig._is_codec_available(decoder_name)
    return available
