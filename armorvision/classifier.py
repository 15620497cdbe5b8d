"""Number recognition on located armor plates."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import numpy as np

from armorvision.imageops import blob_from_image, resize
from armorvision.model import FinalArmor, Point

logger = logging.getLogger(__name__)

ROI_WIDTH = 20
ROI_HEIGHT = 28
LIGHT_LEN = 12
WARP_HEIGHT = 28
WARP_WIDTH = 32

CLASS_NAMES = ("1", "2", "3", "4", "5", "outpost", "guard", "base", "negative")
NEGATIVE = "negative"

_TOP_LIGHT_Y = (WARP_HEIGHT - LIGHT_LEN) // 2
_BOTTOM_LIGHT_Y = _TOP_LIGHT_Y + LIGHT_LEN

WARP_DESTINATION: tuple[Point, ...] = (
    (0.0, float(_BOTTOM_LIGHT_Y)),
    (0.0, float(_TOP_LIGHT_Y)),
    (float(WARP_WIDTH), float(_TOP_LIGHT_Y)),
    (float(WARP_WIDTH), float(_BOTTOM_LIGHT_Y)),
)
"""Where the plate corners (lb, lt, rt, rb) land in the warped number image."""

_FLT_EPSILON = float(np.finfo(np.float32).eps)

Model = Callable[[np.ndarray], np.ndarray]


def otsu_threshold(image: np.ndarray) -> tuple[float, np.ndarray]:
    """Binarise an 8-bit grey image with Otsu's threshold.

    Returns ``(threshold, binary)`` where ``binary`` is 255 above the threshold.
    """
    arr = np.asarray(image)
    if arr.dtype != np.uint8 or arr.ndim != 2:
        raise ValueError("Otsu thresholding needs a 2-D uint8 image")
    if arr.size == 0:
        raise ValueError("cannot threshold an empty image")

    hist = (np.bincount(arr.ravel(), minlength=256) / arr.size).tolist()
    mu = sum(i * p for i, p in enumerate(hist))
    mu1 = q1 = max_sigma = 0.0
    best = 0
    for i, p in enumerate(hist):
        mu1 *= q1
        q1 += p
        q2 = 1.0 - q1
        if min(q1, q2) < _FLT_EPSILON or max(q1, q2) > 1.0 - _FLT_EPSILON:
            continue
        mu1 = (mu1 + i * p) / q1
        mu2 = (mu - q1 * mu1) / q2
        sigma = q1 * q2 * (mu1 - mu2) ** 2
        if sigma > max_sigma:
            max_sigma = sigma
            best = i

    binary = np.where(arr > best, 255, 0).astype(np.uint8)
    return float(best), binary


def softmax(logits) -> np.ndarray:
    """Numerically stable softmax over all values, as a flat float32 array."""
    values = np.asarray(logits, dtype=np.float32).ravel()
    if values.size == 0:
        raise ValueError("softmax of no values")
    exp = np.exp(values - values.max())
    return (exp / exp.sum(dtype=np.float32)).astype(np.float32)


def extract_numbers(armor: FinalArmor) -> np.ndarray:
    """Crop the number region from the armor's grey crop and binarise it.

    Returns a ``ROI_HEIGHT`` x ``ROI_WIDTH`` image, or an empty array when the
    armor carries no usable crop.
    """
    roi = armor.num_roi
    if roi is None or np.asarray(roi).size == 0:
        return np.zeros((0, 0), dtype=np.uint8)
    roi = np.asarray(roi)
    roi_h, roi_w = roi.shape[:2]

    crop_x = max(0, int(roi_w * 0.2 - 20))
    crop_w = min(int(roi_w * 0.5 + 20), roi_w - crop_x)
    if crop_w <= 0:
        return np.zeros((0, 0), dtype=np.uint8)

    crop = roi[:roi_h, crop_x : crop_x + crop_w]
    digits = resize(crop, ROI_WIDTH, ROI_HEIGHT)
    _, binary = otsu_threshold(digits)
    return binary


def warp_matrix(points: Sequence[Point]) -> np.ndarray:
    """Perspective matrix sending the plate corners onto ``WARP_DESTINATION``.

    The translation terms of the first two rows are scaled down by 1000.
    """
    src = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(src) != 4:
        raise ValueError("a plate has exactly four corners")

    system = np.zeros((8, 8))
    rhs = np.zeros(8)
    for row, ((x, y), (u, v)) in enumerate(zip(src, WARP_DESTINATION)):
        system[row] = (x, y, 1, 0, 0, 0, -x * u, -y * u)
        system[row + 4] = (0, 0, 0, x, y, 1, -x * v, -y * v)
        rhs[row] = u
        rhs[row + 4] = v
    try:
        coeffs = np.linalg.solve(system, rhs)
    except np.linalg.LinAlgError as exc:
        raise ValueError("corners do not define a perspective transform") from exc

    matrix = np.append(coeffs, 1.0).reshape(3, 3)
    matrix[0, 2] /= 1000.0
    matrix[1, 2] /= 1000.0
    return matrix


class NumberClassifier:
    """Labels armor plates by the number printed on them.

    ``model`` is called with a ``(1, 1, ROI_HEIGHT, ROI_WIDTH)`` float32 blob
    and returns one logit per entry of ``CLASS_NAMES``.
    """

    def __init__(self, model: Model):
        self.model = model

    def classify(self, armors: Sequence[FinalArmor]) -> list[FinalArmor]:
        """Label the armors; those without a usable number are dropped."""
        kept: list[FinalArmor] = []
        for armor in armors:
            digits = extract_numbers(armor)
            if digits.size == 0:
                continue
            blob = blob_from_image(digits, 1.0, False)
            probabilities = softmax(self.model(blob))
            label_id = int(np.argmax(probabilities))
            if label_id >= len(CLASS_NAMES):
                raise ValueError(
                    f"model returned {probabilities.size} classes, expected {len(CLASS_NAMES)}"
                )
            label = CLASS_NAMES[label_id]
            if label == NEGATIVE:
                logger.debug("number rejected")
                continue
            armor.label = label
            kept.append(armor)
        return kept