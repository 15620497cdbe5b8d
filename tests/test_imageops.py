import numpy as np
import pytest

from armorvision.imageops import (
    bgr_to_gray,
    bgr_to_hsv,
    bgr_to_lab,
    blob_from_image,
    contour_area,
    external_contours,
    in_range,
    lab_to_bgr,
    min_area_rect,
    morph_close,
    nms_boxes,
    resize,
)
from armorvision.model import RotatedRect


def _pixel(b, g, r):
    return np.array([[[b, g, r]]], dtype=np.uint8)


def test_gray_extremes_and_weights():
    assert bgr_to_gray(_pixel(255, 255, 255))[0, 0] == 255
    assert bgr_to_gray(_pixel(0, 0, 0))[0, 0] == 0
    green = bgr_to_gray(_pixel(0, 200, 0))[0, 0]
    red = bgr_to_gray(_pixel(0, 0, 200))[0, 0]
    blue = bgr_to_gray(_pixel(200, 0, 0))[0, 0]
    assert green > red > blue


def test_gray_rejects_single_channel():
    with pytest.raises(ValueError):
        bgr_to_gray(np.zeros((4, 4), dtype=np.uint8))


def test_hsv_pure_blue():
    assert bgr_to_hsv(_pixel(255, 0, 0))[0, 0].tolist() == [120, 255, 255]


def test_hsv_value_is_max_and_grays_unsaturated():
    rng = np.random.default_rng(1)
    img = rng.integers(0, 256, size=(6, 7, 3), dtype=np.uint8)
    hsv = bgr_to_hsv(img)
    assert np.array_equal(hsv[..., 2], img.max(axis=-1))
    assert np.all(hsv[..., 0] < 180)
    gray = np.repeat(np.arange(0, 256, 15, dtype=np.uint8)[None, :, None], 3, axis=2)
    assert not bgr_to_hsv(gray)[..., 1].any()


def test_lab_round_trip():
    rng = np.random.default_rng(7)
    img = rng.integers(20, 236, size=(8, 8, 3), dtype=np.uint8)
    back = lab_to_bgr(bgr_to_lab(img))
    assert np.abs(back.astype(int) - img.astype(int)).max() <= 6


def test_lab_white_and_neutral_grays():
    assert bgr_to_lab(_pixel(255, 255, 255))[0, 0, 0] == 255
    gray = np.repeat(np.arange(10, 250, 20, dtype=np.uint8)[None, :, None], 3, axis=2)
    lab = bgr_to_lab(gray).astype(int)
    assert np.all(np.abs(lab[..., 1] - lab[..., 2]) <= 1)
    assert np.all(np.diff(lab[0, :, 0]) > 0)


def test_resize_shape_and_constant():
    img = np.full((10, 20, 3), 77, dtype=np.uint8)
    out = resize(img, 7, 13)
    assert out.shape == (13, 7, 3)
    assert np.all(out == 77)


def test_resize_same_size_is_identity():
    rng = np.random.default_rng(3)
    img = rng.integers(0, 256, size=(9, 11), dtype=np.uint8)
    assert np.array_equal(resize(img, 11, 9), img)


def test_resize_keeps_gradient_monotonic():
    row = np.arange(0, 200, 20, dtype=np.uint8)[None, :]
    out = resize(row, 37, 1)
    assert np.all(np.diff(out[0].astype(int)) >= 0)
    assert out[0, 0] >= row[0, 0] and out[0, -1] <= row[0, -1]


def test_resize_rejects_bad_size():
    with pytest.raises(ValueError):
        resize(np.zeros((4, 4), dtype=np.uint8), 0, 4)


def test_in_range_is_inclusive():
    img = np.array([[[10, 20, 30], [9, 20, 30], [10, 21, 31]]], dtype=np.uint8)
    mask = in_range(img, (10, 20, 30), (10, 21, 31))
    assert mask.shape == (1, 3)
    assert (mask > 0).tolist() == [[True, False, True]]


def test_morph_close_bridges_gap():
    mask = np.zeros((30, 15), dtype=np.uint8)
    mask[2:21, 5] = 255
    mask[10, 5] = 0
    closed = morph_close(mask, 3, 7)
    assert closed[10, 5] == 255
    assert np.all(closed >= mask)
    assert np.array_equal(morph_close(closed, 3, 7), closed)


def test_morph_close_keeps_border_shapes():
    mask = np.zeros((12, 12), dtype=np.uint8)
    mask[0:5, 0:4] = 255
    assert np.array_equal(morph_close(mask, 3, 7), mask)


def test_contour_of_rectangle_is_its_corners():
    mask = np.zeros((15, 12), dtype=np.uint8)
    mask[3:10, 2:7] = 255
    contours = external_contours(mask)
    assert len(contours) == 1
    corners = {(2, 3), (6, 3), (6, 9), (2, 9)}
    assert {tuple(p) for p in contours[0].tolist()} == corners
    assert contour_area(contours[0]) == pytest.approx(
        contour_area([(2, 3), (6, 3), (6, 9), (2, 9)])
    )


def test_contours_skip_nested_and_count_separate():
    mask = np.zeros((20, 30), dtype=np.uint8)
    mask[2:12, 2:12] = 255
    mask[4:10, 4:10] = 0
    mask[6, 6] = 255
    mask[3:8, 20:25] = 255
    contours = external_contours(mask)
    assert len(contours) == 2
    assert all(c.shape[1] == 2 for c in contours)


def test_contours_single_pixel_and_empty():
    mask = np.zeros((5, 5), dtype=np.uint8)
    assert external_contours(mask) == []
    mask[2, 3] = 1
    contours = external_contours(mask)
    assert [c.tolist() for c in contours] == [[[3, 2]]]


def test_contour_area_orientation_independent():
    square = [(0, 0), (4, 0), (4, 4), (0, 4)]
    assert contour_area(square) == pytest.approx(16.0)
    assert contour_area(square[::-1]) == contour_area(square)
    assert contour_area(square[:2]) == 0.0


@pytest.mark.parametrize("angle", [15.0, 45.0, 75.0])
def test_min_area_rect_round_trip(angle):
    rect = RotatedRect((50.0, 40.0), (30.0, 10.0), angle)
    found = min_area_rect(rect.points())
    assert found.center == pytest.approx((50.0, 40.0))
    assert found.angle == pytest.approx(angle)
    assert found.size == pytest.approx((30.0, 10.0))


def test_min_area_rect_axis_aligned_convention():
    found = min_area_rect([(0, 0), (8, 0), (8, 3), (0, 3), (4, 1)])
    assert found.angle == pytest.approx(90.0)
    assert found.size == pytest.approx((3.0, 8.0))
    assert found.center == pytest.approx((4.0, 1.5))


def test_min_area_rect_degenerate_inputs():
    single = min_area_rect([(5, 6)])
    assert single.center == (5.0, 6.0)
    assert single.size == (0.0, 0.0)
    with pytest.raises(ValueError):
        min_area_rect([])


def test_nms_identical_boxes_keeps_best():
    boxes = [(0, 0, 10, 10)] * 3
    scores = [0.5, 0.9, 0.7]
    assert nms_boxes(boxes, scores, 0.3, 0.3) == [scores.index(max(scores))]


def test_nms_disjoint_boxes_sorted_by_score():
    boxes = [(0, 0, 5, 5), (20, 0, 5, 5), (40, 0, 5, 5)]
    scores = [0.4, 0.8, 0.6]
    kept = nms_boxes(boxes, scores, 0.3, 0.3)
    assert set(kept) == set(range(len(boxes)))
    assert [scores[i] for i in kept] == sorted(scores, reverse=True)


def test_nms_drops_low_scores_and_checks_lengths():
    boxes = [(0, 0, 5, 5), (20, 0, 5, 5)]
    scores = [0.2, 0.3]
    assert nms_boxes(boxes, scores, 0.3, 0.5) == []
    with pytest.raises(ValueError):
        nms_boxes(boxes, [0.5], 0.3, 0.5)


def test_blob_layout_and_swap():
    rng = np.random.default_rng(5)
    img = rng.integers(0, 256, size=(4, 6, 3), dtype=np.uint8)
    blob = blob_from_image(img, 1.0 / 255.0, True)
    assert blob.shape == (1, 3, 4, 6)
    assert blob.dtype == np.float32
    assert np.allclose(blob[0, 0], img[..., 2] / 255.0)
    assert np.allclose(blob[0, 2], img[..., 0] / 255.0)
    plain = blob_from_image(img, 1.0, False)
    assert np.array_equal(plain[0, 0], img[..., 0].astype(np.float32))