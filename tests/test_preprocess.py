import numpy as np
import pytest

from armorvision.model import TARGET_SIZE
from armorvision.preprocess import gamma_lut, letterbox_geometry, preprocess_image


def test_gamma_lut_identity():
    lut = gamma_lut(1.0)
    assert lut.dtype == np.uint8
    assert np.array_equal(lut, np.arange(256, dtype=np.uint8))


def test_gamma_lut_endpoints_and_monotonic():
    lut = gamma_lut(0.5)
    assert lut[0] == 0
    assert lut[255] == 255
    assert np.all(np.diff(lut.astype(int)) >= 0)
    assert np.all(lut[1:255] >= np.arange(1, 255))


def test_gamma_above_one_darkens():
    lut = gamma_lut(2.0)
    assert lut.shape == (256,)
    assert lut[0] == 0
    assert lut[255] == 255
    middle = lut[1:255].astype(int)
    assert np.all(middle < np.arange(1, 255))
    assert np.all(np.diff(lut.astype(int)) >= 0)


@pytest.mark.parametrize("size", [(1280, 720), (720, 1280), (640, 640), (333, 97), (1, 1)])
def test_letterbox_fills_target(size):
    width, height = size
    scale, new_w, new_h, left, top, right, bottom = letterbox_geometry(width, height)
    assert new_w + left + right == TARGET_SIZE
    assert new_h + top + bottom == TARGET_SIZE
    assert 0 <= right - left <= 1
    assert 0 <= bottom - top <= 1
    assert max(new_w, new_h) <= TARGET_SIZE
    assert scale > 0


def test_letterbox_wide_image():
    scale, new_w, new_h, left, top, right, bottom = letterbox_geometry(1280, 720)
    assert scale == 0.5
    assert (new_w, left, right) == (640, 0, 0)
    assert top == bottom


def test_letterbox_rejects_empty():
    with pytest.raises(ValueError):
        letterbox_geometry(0, 10)


def test_preprocess_shapes_and_range():
    image = np.full((48, 64, 3), (20, 120, 200), dtype=np.uint8)
    data = preprocess_image(image, 0.5, 0.0)
    assert data.blob.shape == (1, 3, TARGET_SIZE, TARGET_SIZE)
    assert data.blob.dtype == np.float32
    assert data.blob.min() >= 0.0
    assert data.blob.max() <= 1.0
    assert data.input is image
    scale, _, _, left, top, _, _ = letterbox_geometry(64, 48)
    assert data.scale == pytest.approx(scale)
    assert (data.pad_left, data.pad_top) == (left, top)


def test_preprocess_padding_is_black():
    image = np.full((32, 64, 3), 200, dtype=np.uint8)
    data = preprocess_image(image, 1.0, 0.0)
    assert data.pad_top > 0
    assert np.all(data.blob[0, :, : data.pad_top, :] == 0)
    assert np.all(data.blob[0, :, data.pad_top + 1, :] > 0)


def test_preprocess_swaps_channels():
    image = np.zeros((64, 64, 3), dtype=np.uint8)
    image[..., 2] = 255
    data = preprocess_image(image, 1.0, 0.0)
    centre = data.blob[0, :, 320, 320]
    assert centre[0] > 0.9
    assert centre[2] < 0.1


def test_dark_frame_is_brightened_only_below_threshold():
    image = np.full((64, 64, 3), 30, dtype=np.uint8)
    untouched = preprocess_image(image, 0.5, 0.0)
    brightened = preprocess_image(image, 0.5, 255.0)
    assert brightened.blob[0, :, 320, 320].mean() > untouched.blob[0, :, 320, 320].mean()