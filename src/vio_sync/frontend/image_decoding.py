"""Decode incoming images to single-channel 8-bit arrays."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

# Colour encodings and the OpenCV conversion to grayscale
_COLOR_CONVERSIONS = {
    "bgr8": cv2.COLOR_BGR2GRAY,
    "rgb8": cv2.COLOR_RGB2GRAY,
    "bgra8": cv2.COLOR_BGRA2GRAY,
    "rgba8": cv2.COLOR_RGBA2GRAY,
}

_CHANNELS = {"mono8": 1, "mono16": 1, "bgr8": 3, "rgb8": 3, "bgra8": 4, "rgba8": 4}

_COMPRESSED = {"png", "jpeg", "jpg"}


class ImageDecodeError(ValueError):
    """Raised when an image cannot be converted to mono8."""


@dataclass
class RawImage:
    """Image as delivered by the transport layer.

    Attributes:
        data: Pixel array, or encoded bytes for compressed encodings
        encoding: "mono8", "mono16", "bgr8", "rgb8", "bgra8", "rgba8",
            "png" or "jpeg"
        width: Image width in pixels (0 when unknown, e.g. compressed)
        height: Image height in pixels (0 when unknown)
    """

    data: np.ndarray | bytes
    encoding: str
    width: int = 0
    height: int = 0

    @classmethod
    def from_array(cls, image: np.ndarray, encoding: str = "mono8") -> RawImage:
        """Wrap an in-memory pixel array."""
        return cls(
            data=image,
            encoding=encoding,
            width=int(image.shape[1]),
            height=int(image.shape[0]),
        )


def decode_mono8(raw: RawImage) -> np.ndarray:
    """Convert a raw image to a contiguous (H, W) uint8 array.

    Args:
        raw: Image from the transport layer

    Returns:
        Grayscale uint8 image (always a copy)

    Raises:
        ImageDecodeError: If the encoding is unsupported or the data does not
            match it
    """
    if not isinstance(raw.encoding, str):
        raise ImageDecodeError(f"Image encoding must be a string, got {raw.encoding!r}")
    encoding = raw.encoding.lower()

    if encoding in _COMPRESSED:
        return _decode_compressed(raw.data, encoding)

    if encoding not in _CHANNELS:
        raise ImageDecodeError(f"Unsupported image encoding: {raw.encoding}")

    image = _as_array(raw, encoding)

    if encoding == "mono8":
        return np.ascontiguousarray(image).copy()
    if encoding == "mono16":
        return (image >> 8).astype(np.uint8)

    try:
        return cv2.cvtColor(np.ascontiguousarray(image), _COLOR_CONVERSIONS[encoding])
    except cv2.error as e:
        raise ImageDecodeError(f"Failed to convert {encoding} image: {e}") from e


def _as_array(raw: RawImage, encoding: str) -> np.ndarray:
    channels = _CHANNELS[encoding]
    dtype = np.uint16 if encoding == "mono16" else np.uint8

    if isinstance(raw.data, (bytes, bytearray, memoryview)):
        if not isinstance(raw.width, int) or not isinstance(raw.height, int):
            raise ImageDecodeError(
                f"Raw {encoding} buffer size must be integers, got {raw.width!r}x{raw.height!r}"
            )
        if raw.width <= 0 or raw.height <= 0:
            raise ImageDecodeError(
                f"Raw {encoding} buffer needs width and height, "
                f"got {raw.width}x{raw.height}"
            )
        expected = raw.width * raw.height * channels * np.dtype(dtype).itemsize
        if len(raw.data) != expected:
            raise ImageDecodeError(
                f"Raw {encoding} buffer has {len(raw.data)} bytes, expected {expected}"
            )
        image = np.frombuffer(bytes(raw.data), dtype=dtype)
        shape = (raw.height, raw.width) if channels == 1 else (raw.height, raw.width, channels)
        return image.reshape(shape)

    try:
        image = np.asarray(raw.data)
    except (TypeError, ValueError) as e:
        raise ImageDecodeError(f"Cannot read {encoding} image data: {e}") from e
    if image.dtype != dtype:
        raise ImageDecodeError(f"Expected {np.dtype(dtype).name} data for {encoding}, got {image.dtype}")

    if channels == 1:
        if image.ndim == 3 and image.shape[2] == 1:
            image = image[:, :, 0]
        if image.ndim != 2:
            raise ImageDecodeError(f"Expected (H, W) array for {encoding}, got {image.shape}")
    elif image.ndim != 3 or image.shape[2] != channels:
        raise ImageDecodeError(
            f"Expected (H, W, {channels}) array for {encoding}, got {image.shape}"
        )

    if image.size == 0:
        raise ImageDecodeError(f"Empty {encoding} image")
    return image


def _decode_compressed(data: np.ndarray | bytes, encoding: str) -> np.ndarray:
    try:
        if isinstance(data, np.ndarray):
            buffer = data.astype(np.uint8, copy=False).ravel()
        else:
            buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    except (TypeError, ValueError) as e:
        raise ImageDecodeError(f"Cannot read {encoding} buffer: {e}") from e

    if buffer.size == 0:
        raise ImageDecodeError(f"Empty {encoding} buffer")

    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_GRAYSCALE)
    except cv2.error as e:
        raise ImageDecodeError(f"Failed to decode {encoding} image: {e}") from e
    if image is None:
        raise ImageDecodeError(f"Failed to decode {encoding} image")
    return image
