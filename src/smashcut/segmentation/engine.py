"""Foreground segmentation engines.

An engine turns a BGR frame into a single-channel uint8 coverage mask
(255 = speaker, 0 = background). Masks may come back at a lower resolution
than the frame; the pipeline resamples them. Any call may raise, in which
case the pipeline writes the original frame instead.

``person`` (the default) runs a semantic segmentation network and finds
the speaker in every frame on its own. ``mog2`` and ``knn`` only need
OpenCV but report motion, so they lose a speaker who holds still.
"""

from __future__ import annotations

from typing import Protocol

import cv2
import numpy as np

from smashcut.core.config import SegmentationConfig
from smashcut.core.errors import InferenceFailure
from smashcut.utils.console import console

# Index of "person" in the Pascal VOC labels the DeepLabV3 weights predict
PERSON_CLASS = 15

_IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
_IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


class SegmentationEngine(Protocol):
    def segment(self, image: np.ndarray) -> np.ndarray: ...


def downscale(image: np.ndarray, target_width: int) -> np.ndarray:
    """Shrink ``image`` to ``target_width`` keeping its aspect. Never upscales."""
    height, width = image.shape[:2]
    if target_width <= 0 or width <= target_width:
        return image
    scaled_height = max(1, round(height * target_width / width))
    return cv2.resize(image, (target_width, scaled_height), interpolation=cv2.INTER_AREA)


def soften(mask: np.ndarray, blur: int) -> np.ndarray:
    """Blur mask edges so they blend instead of stair-stepping."""
    if blur > 1:
        blur += 1 - blur % 2  # kernel size must be odd
        mask = cv2.GaussianBlur(mask, (blur, blur), 0)
    return mask


def _resolve_device(device: str) -> str:
    """Auto-detect the best available torch device."""
    if device != "auto":
        return device
    import torch

    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


def _load_deeplab(device: str):
    from torchvision.models.segmentation import (
        DeepLabV3_MobileNet_V3_Large_Weights,
        deeplabv3_mobilenet_v3_large,
    )

    console.print(f"[bold]Loading person segmentation model[/bold] on {device}")
    model = deeplabv3_mobilenet_v3_large(weights=DeepLabV3_MobileNet_V3_Large_Weights.DEFAULT)
    return model.eval().to(device)


class PersonSegmentationEngine:
    """Speaker masks from a DeepLabV3 person segmentation network.

    Every frame is segmented independently, so a narrator who sits still
    keeps full coverage. The mask value is the network's softmax
    probability for the person class, which gives soft edges for free.

    Args:
        config: Segmentation settings (inference width, device, blur).
        model: A loaded torch module returning ``{"out": logits}``. Defaults
            to torchvision's pretrained MobileNetV3 DeepLabV3.
    """

    def __init__(self, config: SegmentationConfig | None = None, model=None) -> None:
        try:
            import torch
        except ImportError as e:
            raise ImportError(
                "The person engine requires PyTorch. Install it with: "
                "pip install 'smashcut[person]' (or pick --engine mog2)"
            ) from e

        self.config = config or SegmentationConfig()
        self._torch = torch
        self.device = _resolve_device(self.config.device)
        self._model = model if model is not None else _load_deeplab(self.device)

    def _to_batch(self, image: np.ndarray):
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB).astype(np.float32) / 255.0
        rgb = (rgb - _IMAGENET_MEAN) / _IMAGENET_STD
        tensor = self._torch.from_numpy(np.ascontiguousarray(rgb.transpose(2, 0, 1)))
        return tensor.unsqueeze(0).to(self.device)

    def segment(self, image: np.ndarray) -> np.ndarray:
        if image is None or image.size == 0:
            raise InferenceFailure("Empty frame")

        torch = self._torch
        batch = self._to_batch(downscale(image, self.config.inference_width))
        try:
            with torch.no_grad():
                logits = self._model(batch)["out"][0]
        except RuntimeError as e:
            raise InferenceFailure(f"Person segmentation failed: {e}") from e

        person = torch.softmax(logits.float(), dim=0)[PERSON_CLASS]
        mask = (person * 255.0).round().clamp(0, 255).to(torch.uint8).cpu().numpy()
        return soften(mask, self.config.mask_blur)


class BackgroundSubtractorEngine:
    """Foreground masks from OpenCV background subtraction.

    Suited to a locked-off camera and a subject that keeps moving: the model
    learns the static room and reports whatever moves in front of it.
    """

    def __init__(self, config: SegmentationConfig | None = None) -> None:
        self.config = config or SegmentationConfig(engine="mog2")
        if self.config.engine == "knn":
            self._subtractor = cv2.createBackgroundSubtractorKNN(
                history=self.config.history,
                dist2Threshold=self.config.threshold * 25,
                detectShadows=self.config.detect_shadows,
            )
        elif self.config.engine == "mog2":
            self._subtractor = cv2.createBackgroundSubtractorMOG2(
                history=self.config.history,
                varThreshold=self.config.threshold,
                detectShadows=self.config.detect_shadows,
            )
        else:
            raise ValueError(f"Unknown segmentation engine: {self.config.engine!r}")

        size = max(1, self.config.morph_kernel)
        self._kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))

    def segment(self, image: np.ndarray) -> np.ndarray:
        if image is None or image.size == 0:
            raise InferenceFailure("Empty frame")

        small = downscale(image, self.config.inference_width)
        raw = self._subtractor.apply(small)
        # Shadows are reported as 127 when detect_shadows is on
        _, mask = cv2.threshold(raw, 200, 255, cv2.THRESH_BINARY)
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self._kernel)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self._kernel)
        return soften(mask, self.config.mask_blur)


ENGINES = ("person", "mog2", "knn")


def create_engine(config: SegmentationConfig) -> SegmentationEngine:
    """Build the configured built-in engine.

    Raises:
        ValueError: If the engine name is unknown.
        ImportError: If the person engine is picked without PyTorch installed.
    """
    if config.engine not in ENGINES:
        raise ValueError(
            f"Unknown segmentation engine: {config.engine!r} (choose from {', '.join(ENGINES)})"
        )
    if config.engine == "person":
        return PersonSegmentationEngine(config)
    return BackgroundSubtractorEngine(config)
