from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class LetterboxParams:
    """
    Scale and padding that fit a source image into a square model input.

    `pad_x`/`pad_y` are the left/top offsets of the scaled image inside the
    `target_size` x `target_size` canvas.
    """

    scale: float
    pad_x: float
    pad_y: float
    new_width: int
    new_height: int
    target_size: int

    def to_input(self, x: float, y: float) -> Tuple[float, float]:
        """Map an original-image point into input-tensor space."""
        return x * self.scale + self.pad_x, y * self.scale + self.pad_y

    def to_image(self, x: float, y: float) -> Tuple[float, float]:
        """Map an input-tensor point back to original-image space (unclamped)."""
        return (x - self.pad_x) / self.scale, (y - self.pad_y) / self.scale


@dataclass(frozen=True)
class Candidate:
    """
    A decoded prediction before remapping and suppression.

    Geometry is center/size in input-tensor pixels.
    """

    cx: float
    cy: float
    w: float
    h: float
    score: float
    class_id: int

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        half_w = self.w / 2
        half_h = self.h / 2
        return self.cx - half_w, self.cy - half_h, self.cx + half_w, self.cy + half_h


@dataclass
class Detection:
    """
    Final detection in original-image pixel coordinates.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    class_id: int

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass(frozen=True)
class PipelineStats:
    count: int
    elapsed_ms: float
    image_width: int
    image_height: int
    num_candidates: int = 0
    num_rejected: int = 0


@dataclass
class DetectionResult:
    """Detections for one image plus run statistics for observability."""

    detections: List[Detection]
    stats: PipelineStats
