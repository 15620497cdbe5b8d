"""Geometry for target tracking: poses, predicted armor positions and projection."""

from __future__ import annotations

import math
import struct
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

import numpy as np

from armorvision.model import Point

Point3 = tuple[float, float, float]
Transform = Callable[[Point3], Sequence[float]]

_MIN_QUATERNION_NORM = 1e-6
_DOUBLE_EPSILON = float(np.finfo(np.float64).eps)
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_TRACKED_ARMORS = 4
_DISTORTION_SIZES = (0, 4, 5, 8)


@dataclass(frozen=True)
class TrackData:
    """State of a tracked robot: centre, heading and armor layout."""

    position: Point3
    yaw: float = 0.0
    radius_1: float = 0.0
    radius_2: float = 0.0
    dz: float = 0.0
    armors_num: int = 4


def quaternion_to_rotation_vector(w: float, x: float, y: float, z: float) -> Point3:
    """Convert a quaternion to an axis-angle rotation vector.

    A quaternion of negligible norm gives the zero vector. The quaternion
    does not need to be normalised.
    """
    if math.sqrt(w * w + x * x + y * y + z * z) <= _MIN_QUATERNION_NORM:
        return (0.0, 0.0, 0.0)
    n = math.sqrt(x * x + y * y + z * z)
    if n < _DOUBLE_EPSILON:
        return (0.0, 0.0, 0.0)
    angle = 2.0 * math.atan2(n, abs(w))
    factor = angle / n * (-1.0 if w < 0 else 1.0)
    return (x * factor, y * factor, z * factor)


def _apply(transform: Transform | None, point: Point3) -> Point3:
    if transform is None:
        return point
    x, y, z = transform(point)
    return (float(x), float(y), float(z))


def _iter_armor_positions(
    track: TrackData, transform: Transform | None = None
) -> Iterator[Point3]:
    """Yield the four armor positions and then the robot centre, transformed."""
    if track.armors_num <= 0:
        raise ValueError("a tracked robot needs a positive number of armors")
    xc, yc, zc = (float(v) for v in track.position)
    step = 2.0 * math.pi / track.armors_num
    current_pair = True
    for i in range(_TRACKED_ARMORS):
        yaw = track.yaw + i * step
        if track.armors_num == 4:
            radius = track.radius_1 if current_pair else track.radius_2
            z = zc + (0.0 if current_pair else track.dz)
            current_pair = not current_pair
        else:
            radius = track.radius_1
            z = zc
        point = (xc - radius * math.cos(yaw), yc - radius * math.sin(yaw), z)
        yield _apply(transform, point)
    yield _apply(transform, (xc, yc, zc))


def armor_positions(track: TrackData, transform: Transform | None = None) -> list[Point3]:
    """Positions of the four armors followed by the robot centre.

    ``transform`` maps a point into the camera frame; ``None`` keeps it as is.
    """
    return list(_iter_armor_positions(track, transform))


def _to_int32(value: float) -> int:
    if not math.isfinite(value):
        raise ValueError(f"cannot store {value!r} as a corner coordinate")
    result = math.trunc(value)
    if not _INT32_MIN <= result <= _INT32_MAX:
        raise ValueError(f"corner coordinate {value!r} is out of range")
    return result


def pack_corners(points: Sequence[Point]) -> tuple[float, float, float, float]:
    """Store four corners, truncated to int32, in the bytes of a quaternion (x, y, z, w)."""
    if len(points) != 4:
        raise ValueError("a plate has exactly four corners")
    values = [_to_int32(float(c)) for point in points for c in point]
    if len(values) != 8:
        raise ValueError("each corner needs exactly two coordinates")
    return struct.unpack("<4d", struct.pack("<8i", *values))


def unpack_corners(quaternion: Sequence[float]) -> list[tuple[int, int]]:
    """Recover the four integer corners stored by :func:`pack_corners`."""
    if len(quaternion) != 4:
        raise ValueError("a quaternion has exactly four components")
    ints = struct.unpack("<8i", struct.pack("<4d", *quaternion))
    return list(zip(ints[0::2], ints[1::2]))


def project_point(point: Sequence[float], camera_matrix, distortion=()) -> Point:
    """Project a camera-frame point into the image with a pinhole and distortion model.

    ``distortion`` holds 0, 4, 5 or 8 coefficients (k1, k2, p1, p2[, k3[, k4, k5, k6]]).
    """
    k = np.asarray(camera_matrix, dtype=np.float64)
    if k.size != 9:
        raise ValueError("the camera matrix must have nine entries")
    k = k.reshape(3, 3)
    coeffs = [float(c) for c in np.asarray(distortion, dtype=np.float64).ravel()]
    if len(coeffs) not in _DISTORTION_SIZES:
        raise ValueError(f"unsupported number of distortion coefficients: {len(coeffs)}")
    k1, k2, p1, p2, k3, k4, k5, k6 = coeffs + [0.0] * (8 - len(coeffs))

    x, y, z = (float(v) for v in point)
    inv_z = 1.0 / z if z else 1.0
    x *= inv_z
    y *= inv_z
    r2 = x * x + y * y
    r4 = r2 * r2
    r6 = r4 * r2
    radial = (1 + k1 * r2 + k2 * r4 + k3 * r6) / (1 + k4 * r2 + k5 * r4 + k6 * r6)
    xd = x * radial + 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
    yd = y * radial + p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
    return (float(k[0, 0] * xd + k[0, 2]), float(k[1, 1] * yd + k[1, 2]))