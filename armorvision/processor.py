"""Per-frame pipeline: detection, classification, result packing and debug drawing."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from armorvision.drawing import draw_armors, draw_track
from armorvision.model import DrawType, FinalArmor, TargetColor
from armorvision.tracking import (
    Point3,
    TrackData,
    Transform,
    _iter_armor_positions,
    pack_corners,
    unpack_corners,
)

logger = logging.getLogger(__name__)


@dataclass
class Detection:
    """One located plate as published: corners are packed into ``orientation``."""

    confidence: float
    distance_to_image_center: float
    orientation: tuple[float, float, float, float]
    position: Point3 = (0.0, 0.0, 0.0)

    @property
    def corners(self) -> list[tuple[int, int]]:
        return unpack_corners(self.orientation)


@dataclass
class InferenceConfig:
    """Runtime-tunable settings of the pipeline."""

    confidence_threshold: float = 0.3
    nms_threshold: float = 0.3
    gamma: float = 1.0
    l_mean_threshold: float = 0.0
    target_color: int = TargetColor.BLUE
    draw_type: int = DrawType.RAW


@dataclass
class Processor:
    """Runs a detector and a number classifier over camera frames."""

    detector: object
    classifier: object
    draw_type: DrawType = DrawType.DISABLE
    all_points: list[Point3] = field(default_factory=list)
    compute_point: Point3 = (0.0, 0.0, 0.0)
    final_armors: list[FinalArmor] = field(default_factory=list)
    detections: list[Detection] = field(default_factory=list)
    is_red: int = 0

    def __init__(self, detector, classifier):
        self.detector = detector
        self.classifier = classifier
        self.draw_type = DrawType.DISABLE
        self.all_points = []
        self.compute_point = (0.0, 0.0, 0.0)
        self.final_armors = []
        self.detections = []
        self.is_red = 0

    @property
    def tracking_enabled(self) -> bool:
        """Track and aim updates are taken only while the track overlay is drawn."""
        return self.draw_type is DrawType.TRACK

    def configure(self, config: InferenceConfig) -> None:
        """Apply new settings to the detector and the overlay mode."""
        self.detector.confidence_threshold = config.confidence_threshold
        self.detector.nms_threshold = config.nms_threshold
        self.detector.gamma = config.gamma
        self.detector.l_mean_threshold = config.l_mean_threshold
        self.detector.target_color = TargetColor(config.target_color)
        self.draw_type = DrawType(config.draw_type)

    def on_track(self, track: TrackData, transform: Transform | None = None) -> None:
        """Record the predicted armor and centre positions of a tracked robot.

        If the transform fails, the positions computed before the failure remain.
        """
        if not self.tracking_enabled:
            return
        self.all_points = []
        try:
            for point in _iter_armor_positions(track, transform):
                self.all_points.append(point)
        except Exception as exc:
            logger.error("Error: %s", exc)

    def on_compute(self, position: Sequence[float], transform: Transform | None = None) -> None:
        """Record the aim point; it stays untransformed if the transform fails."""
        if not self.tracking_enabled:
            return
        point = tuple(float(v) for v in position)
        self.compute_point = point
        if transform is None:
            return
        try:
            x, y, z = transform(point)
        except Exception as exc:
            logger.error("Error: %s", exc)
            return
        self.compute_point = (float(x), float(y), float(z))

    def process_frame(
        self, image: np.ndarray, roi_offset: tuple[int, int] = (0, 0)
    ) -> list[Detection]:
        """Detect and label plates in a BGR frame and pack them as detections."""
        height, width = np.asarray(image).shape[:2]
        center_x = width / 2.0
        center_y = height / 2.0

        data = self.detector.preprocess(image)
        armors = self.detector.detect(data)
        self.final_armors = list(self.classifier.classify(armors))

        offset_x, offset_y = roi_offset
        self.detections = [
            Detection(
                confidence=float(armor.cls_conf),
                distance_to_image_center=math.hypot(
                    armor.center[0] - center_x, armor.center[1] - center_y
                ),
                orientation=pack_corners(armor.armor_points),
                position=(float(offset_x), float(offset_y), 0.0),
            )
            for armor in self.final_armors
        ]
        self.is_red = int(self.detector.target_is_red)
        return self.detections

    def draw(self, image: np.ndarray, camera_matrix=None, distortion=()) -> np.ndarray:
        """Draw the overlay chosen by ``draw_type`` onto the image, in place."""
        if self.draw_type in (DrawType.ARMOR, DrawType.TRACK):
            draw_armors(image, self.final_armors)
        if self.draw_type is DrawType.TRACK:
            if camera_matrix is None:
                raise ValueError("the track overlay needs a camera matrix")
            draw_track(image, camera_matrix, distortion, self.all_points, self.compute_point)
        return image