"""Image primitives used by the armor detector, on numpy arrays in BGR order."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from scipy import ndimage

from armorvision.model import RotatedRect

_SRGB_TO_XYZ = np.array(
    [
        [0.412453, 0.357580, 0.180423],
        [0.212671, 0.715160, 0.072169],
        [0.019334, 0.119193, 0.950227],
    ]
)
_XYZ_TO_SRGB = np.linalg.inv(_SRGB_TO_XYZ)
_WHITE_X = 0.950456
_WHITE_Z = 1.088754

_DIRS = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))
_DIR_INDEX = {d: i for i, d in enumerate(_DIRS)}
_WEST = 4


def _as_bgr(image: np.ndarray) -> np.ndarray:
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"expected an HxWx3 image, got shape {arr.shape}")
    return arr


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _lab_f(t: np.ndarray) -> np.ndarray:
    return np.where(t > 0.008856, np.cbrt(t), 7.787 * t + 16.0 / 116.0)


def _lab_f_inv(f: np.ndarray) -> np.ndarray:
    return np.where(f > 6.0 / 29.0, f**3, (f - 16.0 / 116.0) / 7.787)


def bgr_to_lab(image: np.ndarray) -> np.ndarray:
    """Convert an 8-bit BGR image to 8-bit Lab (L scaled to 0..255, a/b offset by 128)."""
    rgb = _as_bgr(image)[..., ::-1].astype(np.float64) / 255.0
    linear = np.where(rgb <= 0.04045, rgb / 12.92, ((rgb + 0.055) / 1.055) ** 2.4)
    xyz = linear @ _SRGB_TO_XYZ.T
    x = xyz[..., 0] / _WHITE_X
    y = xyz[..., 1]
    z = xyz[..., 2] / _WHITE_Z
    fx, fy, fz = _lab_f(x), _lab_f(y), _lab_f(z)
    lightness = np.where(y > 0.008856, 116.0 * np.cbrt(y) - 16.0, 903.3 * y)
    a = 500.0 * (fx - fy) + 128.0
    b = 200.0 * (fy - fz) + 128.0
    return _to_uint8(np.stack([lightness * 255.0 / 100.0, a, b], axis=-1))


def lab_to_bgr(lab: np.ndarray) -> np.ndarray:
    """Convert an 8-bit Lab image back to 8-bit BGR."""
    arr = _as_bgr(lab).astype(np.float64)
    lightness = arr[..., 0] * 100.0 / 255.0
    a = arr[..., 1] - 128.0
    b = arr[..., 2] - 128.0
    fy = (lightness + 16.0) / 116.0
    fx = fy + a / 500.0
    fz = fy - b / 200.0
    y = np.where(lightness <= 8.0, lightness / 903.3, fy**3)
    xyz = np.stack([_WHITE_X * _lab_f_inv(fx), y, _WHITE_Z * _lab_f_inv(fz)], axis=-1)
    linear = np.clip(xyz @ _XYZ_TO_SRGB.T, 0.0, 1.0)
    rgb = np.where(
        linear <= 0.0031308, 12.92 * linear, 1.055 * linear ** (1.0 / 2.4) - 0.055
    )
    return _to_uint8(rgb[..., ::-1] * 255.0)


def bgr_to_hsv(image: np.ndarray) -> np.ndarray:
    """Convert an 8-bit BGR image to 8-bit HSV with hue in [0, 180)."""
    img = _as_bgr(image).astype(np.int64)
    b, g, r = img[..., 0], img[..., 1], img[..., 2]
    v = img.max(axis=-1)
    diff = v - img.min(axis=-1)
    safe_v = np.where(v == 0, 1, v)
    safe_diff = np.where(diff == 0, 1, diff)
    s = np.where(v > 0, np.floor(diff * 255.0 / safe_v + 0.5), 0)
    raw = np.where(v == r, g - b, np.where(v == g, b - r + 2 * diff, r - g + 4 * diff))
    h = np.where(diff > 0, np.floor(raw * 30.0 / safe_diff + 0.5), 0)
    h = np.where(h < 0, h + 180, h)
    return np.stack([h, s, v], axis=-1).astype(np.uint8)


def bgr_to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an 8-bit BGR image to 8-bit luminance."""
    img = _as_bgr(image).astype(np.int64)
    weighted = img[..., 0] * 1868 + img[..., 1] * 9617 + img[..., 2] * 4899 + 8192
    return (weighted >> 14).astype(np.uint8)


def _linear_axis(dst: int, src: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    coords = (np.arange(dst) + 0.5) * (src / dst) - 0.5
    coords = np.clip(coords, 0, src - 1)
    low = np.floor(coords).astype(np.intp)
    high = np.minimum(low + 1, src - 1)
    return low, high, coords - low


def resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Bilinear resize to ``width`` x ``height`` using pixel-centre alignment."""
    if width <= 0 or height <= 0:
        raise ValueError("target size must be positive")
    src = np.asarray(image)
    if src.ndim not in (2, 3) or src.shape[0] == 0 or src.shape[1] == 0:
        raise ValueError(f"cannot resize an image of shape {src.shape}")
    data = src.astype(np.float64)
    extra = (1,) * (data.ndim - 1)
    y0, y1, fy = _linear_axis(height, data.shape[0])
    fy = fy.reshape((-1,) + extra)
    rows = data[y0] * (1.0 - fy) + data[y1] * fy
    x0, x1, fx = _linear_axis(width, data.shape[1])
    fx = fx.reshape((1, -1) + (1,) * (data.ndim - 2))
    out = rows[:, x0] * (1.0 - fx) + rows[:, x1] * fx
    if np.issubdtype(src.dtype, np.integer):
        info = np.iinfo(src.dtype)
        return np.clip(np.rint(out), info.min, info.max).astype(src.dtype)
    return out.astype(src.dtype)


def in_range(image: np.ndarray, lower, upper) -> np.ndarray:
    """Return a 0/255 mask of pixels whose every channel lies within [lower, upper]."""
    arr = np.asarray(image)
    lo = np.asarray(lower)
    hi = np.asarray(upper)
    inside = (arr >= lo) & (arr <= hi)
    if arr.ndim == 3:
        inside = inside.all(axis=-1)
    return np.where(inside, 255, 0).astype(np.uint8)


def morph_close(mask: np.ndarray, kernel_width: int, kernel_height: int) -> np.ndarray:
    """Morphological closing with a rectangular kernel; borders never erode."""
    if kernel_width <= 0 or kernel_height <= 0:
        raise ValueError("kernel size must be positive")
    src = np.asarray(mask).astype(np.uint8)
    size = (kernel_height, kernel_width)
    dilated = ndimage.grey_dilation(src, size=size, mode="constant", cval=0)
    return ndimage.grey_erosion(dilated, size=size, mode="constant", cval=255)


def _trace_border(region: np.ndarray, start: tuple[int, int]) -> list[tuple[int, int]]:
    height, width = region.shape

    def step(point, back):
        x, y = point
        for k in range(1, 9):
            d = (back + k) % 8
            dx, dy = _DIRS[d]
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height and region[ny, nx]:
                px, py = _DIRS[(d - 1) % 8]
                return (nx, ny), _DIR_INDEX[(px - dx, py - dy)]
        return None

    first = step(start, _WEST)
    if first is None:
        return [start]
    second, back = first
    path = [start]
    current = second
    limit = 8 * int(region.sum()) + 8
    for _ in range(limit):
        nxt, nxt_back = step(current, back)
        if current == start and nxt == second:
            break
        path.append(current)
        current, back = nxt, nxt_back
    return path


def _compress(path: list[tuple[int, int]]) -> list[tuple[int, int]]:
    if len(path) < 3:
        return path
    previous = path[-1:] + path[:-1]
    following = path[1:] + path[:1]
    kept = [
        p
        for prev, p, nxt in zip(previous, path, following)
        if (p[0] - prev[0], p[1] - prev[1]) != (nxt[0] - p[0], nxt[1] - p[1])
    ]
    return kept or path


def external_contours(mask: np.ndarray) -> list[np.ndarray]:
    """Outer contours of the non-zero regions, as (N, 2) arrays of (x, y) vertices.

    Regions are 8-connected; regions lying inside another region's hole are
    left out, and straight runs are reduced to their end points.
    """
    filled = ndimage.binary_fill_holes(np.asarray(mask) != 0)
    labels, count = ndimage.label(filled, structure=np.ones((3, 3), dtype=bool))
    contours = []
    for index, bounds in enumerate(ndimage.find_objects(labels), start=1):
        if bounds is None:
            continue
        region = labels[bounds] == index
        top_row = np.flatnonzero(region[0])
        path = _trace_border(region, (int(top_row[0]), 0))
        offset = np.array([bounds[1].start, bounds[0].start])
        contours.append(np.array(_compress(path), dtype=np.int32) + offset)
    return contours


def contour_area(contour) -> float:
    """Unsigned polygon area enclosed by the contour vertices."""
    pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def _convex_hull(points: list[tuple[float, float]]) -> list[tuple[float, float]]:
    pts = sorted(set(points))
    if len(pts) <= 2:
        return pts

    def cross(o, a, b):
        return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])

    lower: list[tuple[float, float]] = []
    for p in pts:
        while len(lower) >= 2 and cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)
    upper: list[tuple[float, float]] = []
    for p in reversed(pts):
        while len(upper) >= 2 and cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)
    return lower[:-1] + upper[:-1]


def min_area_rect(points) -> RotatedRect:
    """Smallest rotated rectangle enclosing the points.

    The angle lies in (0, 90] and ``width`` is the side along that angle.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) == 0:
        raise ValueError("min_area_rect needs at least one point")
    hull = _convex_hull([(float(x), float(y)) for x, y in pts])
    if len(hull) == 1:
        return RotatedRect(hull[0], (0.0, 0.0), 0.0)
    if len(hull) == 2:
        (x0, y0), (x1, y1) = hull
        dx, dy = x1 - x0, y1 - y0
        return RotatedRect(
            ((x0 + x1) / 2.0, (y0 + y1) / 2.0),
            (math.hypot(dx, dy), 0.0),
            math.degrees(math.atan2(dy, dx)),
        )

    hull_arr = np.array(hull)
    best = None
    for p, q in zip(hull, hull[1:] + hull[:1]):
        edge = np.subtract(q, p)
        u = edge / np.linalg.norm(edge)
        v = np.array([-u[1], u[0]])
        along_u = hull_arr @ u
        along_v = hull_arr @ v
        area = (along_u.max() - along_u.min()) * (along_v.max() - along_v.min())
        if best is None or area < best[0]:
            best = (area, u, v, along_u.min(), along_u.max(), along_v.min(), along_v.max())

    _, u, v, u_min, u_max, v_min, v_max = best
    center = u * (u_min + u_max) / 2.0 + v * (v_min + v_max) / 2.0
    len_u, len_v = u_max - u_min, v_max - v_min
    angle_u = math.degrees(math.atan2(u[1], u[0])) % 180.0
    if angle_u < 1e-9 or 180.0 - angle_u < 1e-9:
        angle_u = 0.0
    elif abs(angle_u - 90.0) < 1e-9:
        angle_u = 90.0

    if 0.0 < angle_u <= 90.0:
        angle, width, height = angle_u, len_u, len_v
    elif angle_u == 0.0:
        angle, width, height = 90.0, len_v, len_u
    else:
        angle, width, height = angle_u - 90.0, len_v, len_u
    return RotatedRect((float(center[0]), float(center[1])), (float(width), float(height)), angle)


def _box_overlap(a: Sequence[float], b: Sequence[float]) -> float:
    area_a = a[2] * a[3]
    area_b = b[2] * b[3]
    if area_a + area_b <= 0:
        return 1.0
    iw = max(0, min(a[0] + a[2], b[0] + b[2]) - max(a[0], b[0]))
    ih = max(0, min(a[1] + a[3], b[1] + b[3]) - max(a[1], b[1]))
    inter = iw * ih
    return inter / (area_a + area_b - inter)


def nms_boxes(boxes, scores, score_threshold: float, nms_threshold: float) -> list[int]:
    """Greedy non-maximum suppression over (x, y, w, h) boxes.

    Returns indices of kept boxes, highest score first.
    """
    boxes = list(boxes)
    scores = list(scores)
    if len(boxes) != len(scores):
        raise ValueError("boxes and scores must have the same length")
    candidates = sorted(
        (i for i, s in enumerate(scores) if s > score_threshold),
        key=lambda i: -scores[i],
    )
    kept: list[int] = []
    for i in candidates:
        if all(_box_overlap(boxes[i], boxes[k]) <= nms_threshold for k in kept):
            kept.append(i)
    return kept


def blob_from_image(image: np.ndarray, scale: float, swap_rb: bool) -> np.ndarray:
    """Scale an image into a float32 NCHW tensor with a batch of one."""
    arr = np.asarray(image, dtype=np.float32)
    if arr.ndim == 2:
        arr = arr[..., np.newaxis]
    if arr.ndim != 3:
        raise ValueError(f"cannot make a blob from shape {arr.shape}")
    if swap_rb and arr.shape[2] >= 3:
        arr = arr[..., [2, 1, 0] + list(range(3, arr.shape[2]))]
    chw = np.transpose(arr * np.float32(scale), (2, 0, 1))
    return np.ascontiguousarray(chw[np.newaxis], dtype=np.float32)