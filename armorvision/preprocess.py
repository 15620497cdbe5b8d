"""Frame preparation: brightness correction and letterboxing into a network blob."""

from __future__ import annotations

import numpy as np

from armorvision.imageops import bgr_to_lab, blob_from_image, lab_to_bgr, resize
from armorvision.model import TARGET_SIZE, PreprocessedImage

_MIN_SCALE = np.float32(0.01)


def gamma_lut(gamma: float) -> np.ndarray:
    """Return a 256-entry uint8 lookup table mapping i to 255 * (i / 255) ** gamma."""
    levels = np.arange(256, dtype=np.float64) / 255.0
    values = np.power(levels, gamma) * 255.0
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def letterbox_geometry(
    width: int, height: int, target: int = TARGET_SIZE
) -> tuple[float, int, int, int, int, int, int]:
    """Fit a ``width`` x ``height`` image into a ``target`` square.

    Returns ``(scale, new_width, new_height, left, top, right, bottom)``, where
    the last four are the padding added on each side of the resized image.
    """
    if width <= 0 or height <= 0:
        raise ValueError("image size must be positive")
    if target <= 0:
        raise ValueError("target size must be positive")
    side = np.float32(target)
    scale = min(side / np.float32(width), side / np.float32(height))
    scale = max(np.float32(scale), _MIN_SCALE)
    new_width = int(np.float32(width) * scale)
    new_height = int(np.float32(height) * scale)
    pad_w = target - new_width
    pad_h = target - new_height
    left = pad_w // 2
    top = pad_h // 2
    return float(scale), new_width, new_height, left, top, pad_w - left, pad_h - top


def preprocess_image(
    image: np.ndarray, gamma: float, l_mean_threshold: float
) -> PreprocessedImage:
    """Brighten a dark BGR frame, letterbox it and turn it into an NCHW blob.

    The lightness channel is gamma-corrected only when its mean falls below
    ``l_mean_threshold``.
    """
    lab = bgr_to_lab(image)
    lightness = lab[..., 0]
    if float(lightness.mean()) < l_mean_threshold:
        lab = lab.copy()
        lab[..., 0] = gamma_lut(gamma)[lightness]
    corrected = lab_to_bgr(lab)

    height, width = corrected.shape[:2]
    scale, new_w, new_h, left, top, right, bottom = letterbox_geometry(width, height)
    resized = resize(corrected, new_w, new_h)
    padded = np.pad(
        resized,
        ((top, bottom), (left, right), (0, 0)),
        mode="constant",
        constant_values=0,
    )
    blob = blob_from_image(padded, 1.0 / 255.0, True)
    return PreprocessedImage(
        input=image, scale=scale, pad_left=left, pad_top=top, blob=blob
    )