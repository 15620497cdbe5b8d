import math

import numpy as np
import pytest

from armorvision.model import Bar, FinalArmor, InferredArmor, RotatedRect, TargetColor


@pytest.mark.parametrize("angle", [0.0, 17.5, 45.0, 90.0, 123.0])
def test_points_are_centred_on_center(angle):
    rect = RotatedRect((12.0, -3.0), (10.0, 4.0), angle)
    pts = rect.points()
    assert pts.shape == (4, 2)
    assert pts.mean(axis=0) == pytest.approx([12.0, -3.0])


@pytest.mark.parametrize("angle", [5.0, 30.0, 60.0, 85.0])
def test_points_side_lengths_and_direction(angle):
    rect = RotatedRect((0.0, 0.0), (10.0, 4.0), angle)
    p0, p1, p2, p3 = rect.points()
    assert np.linalg.norm(p1 - p0) == pytest.approx(rect.height)
    assert np.linalg.norm(p2 - p1) == pytest.approx(rect.width)
    edge = p2 - p1
    assert math.degrees(math.atan2(edge[1], edge[0])) == pytest.approx(angle)
    assert p2 == pytest.approx(-p0)
    assert p3 == pytest.approx(-p1)


def test_zero_size_collapses_to_center():
    rect = RotatedRect((7.0, 8.0), (0.0, 0.0), 33.0)
    assert np.allclose(rect.points(), [[7.0, 8.0]] * 4)


def test_target_color_label():
    assert TargetColor(1).label == "red"
    assert TargetColor.BLUE.label == "blue"


def test_record_defaults_are_independent():
    rect = RotatedRect((0.0, 0.0), (1.0, 5.0), 90.0)
    first = Bar(rect, (0.0, 0.0), 5.0, 90.0)
    second = Bar(rect, (1.0, 1.0), 5.0, 90.0)
    first.sorted_points.append((1.0, 2.0))
    assert second.sorted_points == []

    armor_a = InferredArmor(0.9, (0, 0, 5, 5))
    armor_b = InferredArmor(0.8, (1, 1, 5, 5))
    armor_a.bars.append(first)
    assert armor_b.bars == []


def test_final_armor_has_empty_label_until_classified():
    armor = FinalArmor(0.7, [(0.0, 0.0)] * 4, (1.0, 1.0))
    assert armor.label == ""
    assert armor.num_roi is None