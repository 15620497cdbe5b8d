"""Debug overlays: located armor plates and tracked target positions."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from armorvision.model import COLOR_NAMES, FinalArmor, Point
from armorvision.tracking import project_point

GREEN = (0, 255, 0)
RED = (0, 0, 255)
"""Colours are given in the image's own BGR channel order."""

_LINE_WIDTH = 2
_CENTER_RADIUS = 3
_TRACK_RADIUS = 10
_RING_THICKNESS = 10
_TEXT_OFFSET = (5.0, 5.0)


def _canvas(image: np.ndarray) -> tuple[Image.Image, ImageDraw.ImageDraw]:
    if not isinstance(image, np.ndarray) or image.dtype != np.uint8:
        raise ValueError("drawing needs a uint8 numpy image")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"drawing needs an HxWx3 image, got shape {image.shape}")
    canvas = Image.fromarray(np.ascontiguousarray(image))
    return canvas, ImageDraw.Draw(canvas)


def _disc(draw: ImageDraw.ImageDraw, center: Point, radius: float, color) -> None:
    cx, cy = center
    draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=color)


def _ring(draw: ImageDraw.ImageDraw, center: Point, radius: float, thickness: int, color) -> None:
    cx, cy = center
    outer = radius + thickness / 2.0
    draw.ellipse(
        [cx - outer, cy - outer, cx + outer, cy + outer], outline=color, width=thickness
    )


def _text(draw: ImageDraw.ImageDraw, origin: Point, text: str, font, color) -> None:
    if not text:
        return
    # The origin is the bottom-left corner of the text.
    bottom = draw.textbbox((0, 0), text, font=font)[3]
    draw.text((origin[0], origin[1] - bottom), text, fill=color, font=font)


def draw_armors(image: np.ndarray, armors: Iterable[FinalArmor]) -> np.ndarray:
    """Outline each plate, mark its centre and write its label and colour, in place."""
    canvas, draw = _canvas(image)
    font = ImageFont.load_default()
    for armor in armors:
        points = [(float(x), float(y)) for x, y in armor.armor_points]
        for start, end in zip(points, points[1:] + points[:1]):
            draw.line([start, end], fill=GREEN, width=_LINE_WIDTH)
        center = (float(armor.center[0]), float(armor.center[1]))
        _disc(draw, center, _CENTER_RADIUS, GREEN)
        label_origin = (center[0] + _TEXT_OFFSET[0], center[1] + _TEXT_OFFSET[1])
        _text(draw, label_origin, armor.label, font, GREEN)
        _text(draw, points[0], COLOR_NAMES[armor.color], font, GREEN)
    image[...] = np.asarray(canvas)
    return image


def draw_track(
    image: np.ndarray,
    camera_matrix,
    distortion,
    points: Sequence[Sequence[float]],
    compute_point: Sequence[float],
) -> np.ndarray:
    """Mark tracked armors, the tracked centre (last point) and the aim point, in place."""
    canvas, draw = _canvas(image)
    last = len(points) - 1
    for index, point in enumerate(points):
        pixel = project_point(point, camera_matrix, distortion)
        if not all(map(math.isfinite, pixel)):
            continue
        if index != last:
            _disc(draw, pixel, _TRACK_RADIUS, GREEN)
        else:
            _ring(draw, pixel, _TRACK_RADIUS, _RING_THICKNESS, RED)
    pixel = project_point(compute_point, camera_matrix, distortion)
    if all(map(math.isfinite, pixel)):
        _ring(draw, pixel, _TRACK_RADIUS, _RING_THICKNESS, GREEN)
    image[...] = np.asarray(canvas)
    return image