"""Armor detection: network decoding, colour check, bar search and plate fitting."""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np

from armorvision.bars import armor_corners, diagonal_center, find_bars, pair_bars
from armorvision.imageops import bgr_to_gray, bgr_to_hsv, in_range, nms_boxes
from armorvision.model import (
    BLUE_RANGE,
    RED_HIGH_RANGE,
    RED_LOW_RANGE,
    FinalArmor,
    InferredArmor,
    PreprocessedImage,
    TargetColor,
)
from armorvision.preprocess import preprocess_image

logger = logging.getLogger(__name__)

Box = tuple[int, int, int, int]
Model = Callable[[np.ndarray], np.ndarray]

_FIELDS = 5
_BOX_X_MARGIN = 5
_MIN_COLOR_PIXELS = 30


def decode_boxes(
    output, data: PreprocessedImage, confidence_threshold: float
) -> tuple[list[Box], list[float]]:
    """Turn raw network output into boxes in original image coordinates.

    ``output`` holds rows ``cx, cy, w, h, conf`` laid out as ``(1, 5, N)`` or
    ``(5, N)``. Only boxes scoring above the threshold and lying wholly inside
    the original image are kept. Each box is widened by a small margin on both
    sides. Returns ``(boxes, scores)`` with boxes as ``(x, y, width, height)``.
    """
    arr = np.asarray(output, dtype=np.float32)
    if arr.ndim == 3:
        if arr.shape[0] != 1:
            raise ValueError(f"expected a batch of one, got shape {arr.shape}")
        arr = arr[0]
    if arr.ndim != 2 or arr.shape[0] < _FIELDS:
        raise ValueError(f"expected output of shape (5, N), got {arr.shape}")

    rows, cols = data.input.shape[:2]
    scale = np.float32(data.scale)
    pad_left = np.float32(data.pad_left)
    pad_top = np.float32(data.pad_top)
    margin = np.float32(_BOX_X_MARGIN)

    boxes: list[Box] = []
    scores: list[float] = []
    for cx, cy, w, h, conf in arr[:_FIELDS].T:
        if not conf > confidence_threshold:
            continue
        cx_unpad = (cx - pad_left) / scale
        cy_unpad = (cy - pad_top) / scale
        w_unpad = w / scale
        h_unpad = h / scale

        lx = int(cx_unpad - w_unpad / np.float32(2) - margin)
        ly = int(cy_unpad - h_unpad / np.float32(2))
        width = int(w_unpad + 2 * margin)
        height = int(h_unpad)

        if lx < 0 or ly < 0 or lx + width > cols or ly + height > rows:
            continue
        boxes.append((lx, ly, width, height))
        scores.append(float(conf))
    return boxes, scores


def color_mask(hsv: np.ndarray, target_color) -> np.ndarray:
    """Return a 0/255 mask of the HSV pixels that show the target colour."""
    color = TargetColor(target_color)
    if color is TargetColor.BLUE:
        return in_range(hsv, *BLUE_RANGE)
    low = in_range(hsv, *RED_LOW_RANGE)
    high = in_range(hsv, *RED_HIGH_RANGE)
    return np.bitwise_or(low, high)


class ArmorDetector:
    """Finds armor plates of one colour in BGR frames with a box-proposal network.

    ``model`` is called with a float32 NCHW blob and returns the raw
    ``(1, 5, N)`` box proposals.
    """

    def __init__(
        self,
        model: Model,
        confidence_threshold: float = 0.3,
        nms_threshold: float = 0.3,
        gamma: float = 1.0,
        l_mean_threshold: float = 0.0,
        target_color=TargetColor.BLUE,
    ):
        self.model = model
        self.confidence_threshold = confidence_threshold
        self.nms_threshold = nms_threshold
        self.gamma = gamma
        self.l_mean_threshold = l_mean_threshold
        self.target_color = TargetColor(target_color)
        self.target_is_red = 0
        self.qualified_armors: list[InferredArmor] = []
        self.final_armors: list[FinalArmor] = []

    def preprocess(self, image: np.ndarray) -> PreprocessedImage:
        """Prepare a BGR frame for the network using the current settings."""
        return preprocess_image(image, self.gamma, self.l_mean_threshold)

    def detect(self, data: PreprocessedImage) -> list[FinalArmor]:
        """Run the network on a prepared frame and return the located plates."""
        self.qualified_armors = []
        self.final_armors = []

        output = self.model(data.blob)
        boxes, scores = decode_boxes(output, data, self.confidence_threshold)
        for index in nms_boxes(boxes, scores, self.confidence_threshold, self.nms_threshold):
            armor = InferredArmor(cls_conf=scores[index], box=boxes[index])
            logger.debug("model proposed box %s with confidence %s", armor.box, armor.cls_conf)
            if self.color_filter(data.input, armor):
                self.qualified_armors.append(armor)

        self.bar_filter(self.qualified_armors)
        self.final_armors = self.armor_filter(self.qualified_armors)
        return self.final_armors

    def color_filter(self, image: np.ndarray, armor: InferredArmor) -> bool:
        """Check that the armor's box shows enough of the target colour.

        Fills in the armor's grey crop; on success also its colour and mask.
        """
        x, y, width, height = armor.box
        roi = np.asarray(image)[y : y + height, x : x + width]
        armor.num_roi = bgr_to_gray(roi)

        color = self.target_color
        self.target_is_red = int(color is TargetColor.RED)
        mask = color_mask(bgr_to_hsv(roi), color)
        if np.count_nonzero(mask) > _MIN_COLOR_PIXELS:
            logger.debug("colour accepted")
            armor.color = int(color)
            armor.hsv_roi = mask
            return True
        logger.debug("colour rejected")
        return False

    def bar_filter(self, armors: list[InferredArmor]) -> None:
        """Search each armor's colour mask for light bars."""
        for armor in armors:
            armor.bars = [] if armor.hsv_roi is None else find_bars(armor.hsv_roi)

    def armor_filter(self, armors: list[InferredArmor]) -> list[FinalArmor]:
        """Pair each armor's bars and fit the plate corners in image coordinates."""
        finals: list[FinalArmor] = []
        for armor in armors:
            if not armor.bars:
                logger.debug("no bars found")
                continue
            pair = pair_bars(armor.bars)
            if pair is None:
                continue
            left, right = (armor.bars[i] for i in pair)
            armor.bars = [left, right]

            x, y = armor.box[:2]
            points = armor_corners(left.sorted_points, right.sorted_points, (float(x), float(y)))
            finals.append(
                FinalArmor(
                    cls_conf=armor.cls_conf,
                    armor_points=points,
                    center=diagonal_center(points),
                    color=armor.color,
                    num_roi=armor.num_roi,
                )
            )
        return finals