"""Per-pixel blending of a frame, a coverage mask, and a background."""

from __future__ import annotations

import cv2
import numpy as np


def resample_mask(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale a single-channel mask to exactly width x height."""
    if mask.ndim == 3:
        mask = mask[..., 0]
    if mask.shape == (height, width):
        return mask
    return cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)


def compose(frame: np.ndarray, mask: np.ndarray, background: np.ndarray) -> np.ndarray:
    """Blend ``frame`` over ``background`` using ``mask`` as coverage.

    ``output = background * (1 - mask) + frame * mask`` per channel, where a
    uint8 mask is normalized by 255 and a float mask is taken as-is in [0, 1].
    Mask and background must already match the frame's pixel dimensions.

    Returns:
        A newly allocated BGR uint8 image.
    """
    height, width = frame.shape[:2]
    if mask.ndim == 3:
        mask = mask[..., 0]
    if mask.shape != (height, width):
        raise ValueError(f"Mask {mask.shape} does not match frame {width}x{height}")
    if background.shape != frame.shape:
        raise ValueError(f"Background {background.shape} does not match frame {frame.shape}")

    if mask.dtype == np.uint8:
        alpha = mask.astype(np.float32) / 255.0
    else:
        alpha = np.clip(mask.astype(np.float32), 0.0, 1.0)
    alpha = alpha[..., None]

    blended = background.astype(np.float32) * (1.0 - alpha) + frame.astype(np.float32) * alpha
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)
