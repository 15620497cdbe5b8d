"""Shared enums, tuning constants and data records for armor detection."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

TARGET_SIZE = 640
"""Side length of the square network input."""

COLOR_NAMES = ("blue", "red")

# HSV ranges (OpenCV 8-bit convention: H in [0, 180), S and V in [0, 255]).
RED_LOW_RANGE = ((0, 40, 140), (25, 255, 255))
RED_HIGH_RANGE = ((140, 40, 140), (180, 255, 255))
BLUE_RANGE = ((80, 30, 190), (130, 255, 255))

# Light bar limits.
MIN_LW_RATIO = 2
MAX_LW_RATIO = 10
MIN_BAR_ANGLE = 55

# Bar pairing limits.
MAX_BARS_RATIO = 1.5
MIN_BARS_DISTANCE = 0.4
MAX_BARS_DISTANCE = 2
MAX_BARS_ANGLE = 45

Point = tuple[float, float]


class TargetColor(IntEnum):
    """Colour of the armor to look for."""

    BLUE = 0
    RED = 1

    @property
    def label(self) -> str:
        return COLOR_NAMES[self.value]


class DrawType(IntEnum):
    """What the debug image shows."""

    DISABLE = 0
    RAW = 1
    ARMOR = 2
    TRACK = 3


@dataclass(frozen=True)
class RotatedRect:
    """A rectangle of the given size, rotated by ``angle`` degrees about its centre.

    ``width`` is the length of the side that points along ``angle``.
    """

    center: Point
    size: tuple[float, float]
    angle: float = 0.0

    @property
    def width(self) -> float:
        return self.size[0]

    @property
    def height(self) -> float:
        return self.size[1]

    def points(self) -> np.ndarray:
        """Return the four corners as a (4, 2) array, in the usual vertex order."""
        radians = math.radians(self.angle)
        b = math.cos(radians) * 0.5
        a = math.sin(radians) * 0.5
        cx, cy = self.center
        width, height = self.size
        p0 = (cx - a * height - b * width, cy + b * height - a * width)
        p1 = (cx + a * height - b * width, cy - b * height - a * width)
        p2 = (2 * cx - p0[0], 2 * cy - p0[1])
        p3 = (2 * cx - p1[0], 2 * cy - p1[1])
        return np.array([p0, p1, p2, p3], dtype=np.float64)


@dataclass
class Bar:
    """A light bar found beside an armor plate."""

    rect: RotatedRect
    center: Point
    ratio: float
    angle: float
    sorted_points: list[Point] = field(default_factory=list)
    long_one: float = 0.0


@dataclass
class InferredArmor:
    """An armor box proposed by the network, refined by colour and bar search."""

    cls_conf: float
    box: tuple[int, int, int, int]
    color: int = 0
    num_roi: np.ndarray | None = None
    hsv_roi: np.ndarray | None = None
    bars: list[Bar] = field(default_factory=list)


@dataclass
class FinalArmor:
    """A located armor plate with its four corners and centre."""

    cls_conf: float
    armor_points: list[Point]
    center: Point
    label: str = ""
    color: int = 0
    num_roi: np.ndarray | None = None


@dataclass
class PreprocessedImage:
    """A frame prepared for the network, with the letterbox geometry used."""

    input: np.ndarray
    scale: float
    pad_left: int
    pad_top: int
    blob: np.ndarray