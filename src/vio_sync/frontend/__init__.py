"""Frontend components: image decoding, frame dispatch and tracking."""

from .dispatcher import FrameDispatcher, FrameResult, FrameTiming
from .image_decoding import ImageDecodeError, RawImage, decode_mono8
from .track_handler import OrbTrackHandler

__all__ = [
    # Dispatch
    "FrameDispatcher",
    "FrameResult",
    "FrameTiming",
    # Decoding
    "RawImage",
    "ImageDecodeError",
    "decode_mono8",
    # Tracking
    "OrbTrackHandler",
]
