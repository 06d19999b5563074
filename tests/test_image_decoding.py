"""Tests for mono8 image decoding."""

import cv2
import numpy as np
import pytest

from vio_sync.frontend import ImageDecodeError, RawImage, decode_mono8


@pytest.fixture
def gray() -> np.ndarray:
    """Deterministic 40x60 gradient image."""
    return np.tile(np.arange(60, dtype=np.uint8) * 4, (40, 1))


class TestDecodeMono8:
    """Test suite for decode_mono8."""

    def test_mono8_passthrough_copies(self, gray: np.ndarray):
        decoded = decode_mono8(RawImage.from_array(gray, "mono8"))

        np.testing.assert_array_equal(decoded, gray)
        assert decoded is not gray
        assert decoded.dtype == np.uint8

    def test_single_channel_3d_array(self, gray: np.ndarray):
        decoded = decode_mono8(RawImage(data=gray[:, :, None], encoding="mono8"))

        assert decoded.shape == (40, 60)

    def test_bgr8(self, gray: np.ndarray):
        bgr = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

        decoded = decode_mono8(RawImage.from_array(bgr, "bgr8"))

        assert decoded.shape == (40, 60)
        np.testing.assert_array_equal(decoded, gray)

    def test_rgb8_channel_order(self):
        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[:, :, 0] = 255  # pure red

        as_rgb = decode_mono8(RawImage.from_array(rgb, "rgb8"))
        as_bgr = decode_mono8(RawImage.from_array(rgb, "bgr8"))

        # 0.299 * 255 for red, 0.114 * 255 when read as blue
        assert as_rgb[0, 0] == 76
        assert as_bgr[0, 0] == 29

    def test_mono16_scaled(self):
        image = np.full((4, 4), 0x8000, dtype=np.uint16)

        decoded = decode_mono8(RawImage.from_array(image, "mono16"))

        assert decoded.dtype == np.uint8
        assert np.all(decoded == 0x80)

    def test_raw_byte_buffer(self, gray: np.ndarray):
        raw = RawImage(data=gray.tobytes(), encoding="mono8", width=60, height=40)

        np.testing.assert_array_equal(decode_mono8(raw), gray)

    def test_raw_byte_buffer_wrong_size(self, gray: np.ndarray):
        raw = RawImage(data=gray.tobytes()[:-1], encoding="mono8", width=60, height=40)

        with pytest.raises(ImageDecodeError, match="expected 2400"):
            decode_mono8(raw)

    def test_raw_byte_buffer_without_size(self, gray: np.ndarray):
        with pytest.raises(ImageDecodeError, match="needs width and height"):
            decode_mono8(RawImage(data=gray.tobytes(), encoding="mono8"))

    def test_png_bytes(self, gray: np.ndarray):
        ok, encoded = cv2.imencode(".png", gray)
        assert ok

        decoded = decode_mono8(RawImage(data=encoded.tobytes(), encoding="png"))

        np.testing.assert_array_equal(decoded, gray)

    def test_corrupt_png(self):
        with pytest.raises(ImageDecodeError, match="Failed to decode png"):
            decode_mono8(RawImage(data=b"not a png at all", encoding="png"))

    def test_empty_png(self):
        with pytest.raises(ImageDecodeError, match="Empty png buffer"):
            decode_mono8(RawImage(data=b"", encoding="png"))

    def test_unsupported_encoding(self, gray: np.ndarray):
        with pytest.raises(ImageDecodeError, match="Unsupported image encoding: yuv422"):
            decode_mono8(RawImage.from_array(gray, "yuv422"))

    def test_wrong_dtype(self):
        with pytest.raises(ImageDecodeError, match="Expected uint8"):
            decode_mono8(RawImage.from_array(np.zeros((4, 4), dtype=np.float32), "mono8"))

    def test_wrong_channel_count(self, gray: np.ndarray):
        with pytest.raises(ImageDecodeError, match=r"Expected \(H, W, 3\)"):
            decode_mono8(RawImage.from_array(gray, "bgr8"))

    def test_missing_encoding(self):
        with pytest.raises(ImageDecodeError, match="encoding must be a string"):
            decode_mono8(RawImage(data=b"\x00", encoding=None))

    def test_text_payload_for_png(self):
        with pytest.raises(ImageDecodeError, match="Cannot read png buffer"):
            decode_mono8(RawImage(data="not an image", encoding="png"))

    def test_ragged_array_payload(self):
        with pytest.raises(ImageDecodeError):
            decode_mono8(RawImage(data=[[1, 2], [3]], encoding="mono8"))

    def test_non_integer_size(self, gray: np.ndarray):
        raw = RawImage(data=gray.tobytes(), encoding="mono8", width=None, height=40)

        with pytest.raises(ImageDecodeError, match="size must be integers"):
            decode_mono8(raw)
