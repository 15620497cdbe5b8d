"""Light bar search inside armor boxes and pairing of bars into plates."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from armorvision.imageops import (
    contour_area,
    external_contours,
    min_area_rect,
    morph_close,
)
from armorvision.model import (
    MAX_BARS_ANGLE,
    MAX_BARS_DISTANCE,
    MAX_BARS_RATIO,
    MAX_LW_RATIO,
    MIN_BAR_ANGLE,
    MIN_BARS_DISTANCE,
    MIN_LW_RATIO,
    Bar,
    Point,
)

logger = logging.getLogger(__name__)

_MIN_CONTOUR_AREA = 20
_CLOSE_KERNEL = (3, 7)
_EPSILON = 1e-5


def is_valid_bar(bar: Bar) -> bool:
    """Check a bar's length-to-width ratio and its tilt."""
    logger.debug("bar ratio %s, angle %s", bar.ratio, bar.angle)
    if bar.ratio >= MAX_LW_RATIO or bar.ratio <= MIN_LW_RATIO:
        logger.debug("bar ratio rejected")
        return False
    if abs(bar.angle) <= MIN_BAR_ANGLE:
        logger.debug("bar angle rejected")
        return False
    return True


def standardize_bar(bar: Bar) -> Bar:
    """Order the bar's corners as left-bottom, left-top, right-top, right-bottom.

    Sets ``sorted_points`` and ``long_one`` on the bar and returns it.
    """
    corners = [(float(x), float(y)) for x, y in bar.rect.points()]
    corners.sort(key=lambda p: -p[1])
    bottom, top = corners[:2], corners[2:]
    lb, rb = bottom if bottom[0][0] < bottom[1][0] else bottom[::-1]
    lt, rt = top if top[0][0] < top[1][0] else top[::-1]

    norm_width = math.hypot(rt[0] - lt[0], rt[1] - lt[1])
    norm_height = math.hypot(lt[0] - lb[0], lt[1] - lb[1])

    bar.sorted_points = [lb, lt, rt, rb]
    bar.long_one = max(norm_width, norm_height)
    return bar


def find_bars(mask: np.ndarray) -> list[Bar]:
    """Find valid light bars in a colour mask, sorted left to right."""
    closed = morph_close(mask, *_CLOSE_KERNEL)
    bars = []
    for contour in external_contours(closed):
        if contour_area(contour) < _MIN_CONTOUR_AREA:
            continue
        rect = min_area_rect(contour)
        max_len = max(rect.width, rect.height)
        min_len = min(rect.width, rect.height)
        ratio = max_len / min_len if min_len > 0 else math.inf
        angle = rect.angle + 90.0 if max_len == rect.height else rect.angle
        bar = Bar(rect=rect, center=rect.center, ratio=ratio, angle=angle)
        if is_valid_bar(bar):
            bars.append(bar)

    bars.sort(key=lambda b: b.center[0])
    for bar in bars:
        standardize_bar(bar)
    logger.debug("%d bars found", len(bars))
    return bars


def _bars_match(left: Bar, right: Bar) -> bool:
    distance = math.hypot(left.center[0] - right.center[0], left.center[1] - right.center[1])
    bars_length = left.long_one + right.long_one
    shorter = min(left.long_one, right.long_one)
    longer = max(left.long_one, right.long_one)
    ratio = longer / shorter if shorter > 0 else math.inf
    angle = math.fmod(abs(left.angle - right.angle), 180.0)
    if angle > 90:
        angle = 180.0 - angle

    if distance <= bars_length * MIN_BARS_DISTANCE or distance >= bars_length * MAX_BARS_DISTANCE:
        logger.debug("armor distance rejected")
        return False
    if ratio > MAX_BARS_RATIO:
        logger.debug("armor ratio rejected")
        return False
    if angle > MAX_BARS_ANGLE:
        logger.debug("armor angle rejected")
        return False
    return True


def pair_bars(bars: Sequence[Bar]) -> tuple[int, int] | None:
    """Return the indices of the first pair of bars that form a plate, or None."""
    for i, left in enumerate(bars):
        for j in range(i + 1, len(bars)):
            if _bars_match(left, bars[j]):
                logger.debug("bars matched: %d %d", i, j)
                return i, j
    return None


def armor_corners(
    left: Sequence[Point], right: Sequence[Point], offset: Point = (0.0, 0.0)
) -> list[Point]:
    """Plate corners (lb, lt, rt, rb) from two bars' ordered corners, shifted by ``offset``."""
    if len(left) != 4 or len(right) != 4:
        raise ValueError("each bar needs exactly four ordered corners")
    ox, oy = offset

    def mid(a: Point, b: Point) -> Point:
        return ((a[0] + b[0]) * 0.5 + ox, (a[1] + b[1]) * 0.5 + oy)

    return [
        mid(left[0], left[3]),
        mid(left[1], left[2]),
        mid(right[1], right[2]),
        mid(right[0], right[3]),
    ]


def diagonal_center(points: Sequence[Point]) -> Point:
    """Intersection of the plate's diagonals p0-p2 and p3-p1."""
    if len(points) != 4:
        raise ValueError("a plate has exactly four corners")
    p0, p1, p2, p3 = points
    k1 = (p2[1] - p0[1]) / (p2[0] - p0[0] + _EPSILON)
    k2 = (p1[1] - p3[1]) / (p1[0] - p3[0] + _EPSILON)
    b1 = p2[1] - k1 * p2[0]
    b2 = p1[1] - k2 * p1[0]
    x = (b1 - b2) / (k2 - k1 + _EPSILON)
    y = k1 * x + b1
    return float(x), float(y)