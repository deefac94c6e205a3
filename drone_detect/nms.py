from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .errors import ConfigurationError
from .types import Detection

IOU_EPS = 1e-6


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5
    # None keeps every survivor.
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ConfigurationError(f"iou_threshold must be in [0, 1], got {self.iou_threshold}")
        if self.max_detections is not None and self.max_detections < 0:
            raise ConfigurationError(f"max_detections must be >= 0, got {self.max_detections}")


def iou(a: Detection, b: Detection) -> float:
    """
    Intersection over union of two xyxy boxes.
    """
    inter_w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1))
    inter_h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1))
    inter = inter_w * inter_h
    area_a = (a.x2 - a.x1) * (a.y2 - a.y1)
    area_b = (b.x2 - b.x1) * (b.y2 - b.y1)
    return inter / (area_a + area_b - inter + IOU_EPS)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Equal scores keep their input order. Boxes whose IoU with a kept box is
    >= cfg.iou_threshold are dropped.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = (x2 - x1) * (y2 - y1)

    # Remaining set, shrunk every round.
    order = np.argsort(-scores, kind="stable")
    keep = []
    limit = cfg.max_detections

    while order.size > 0 and (limit is None or len(keep) < limit):
        i = order[0]
        keep.append(i)
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        overlap = inter / (areas[i] + areas[rest] - inter + IOU_EPS)

        order = rest[overlap < cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = 0.5,
    *,
    class_agnostic: bool = True,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Remove overlapping detections, keeping the highest-scoring box per cluster.

    Class-agnostic by default: boxes of different classes suppress each other.
    With `class_agnostic=False` each class id is suppressed independently and
    the survivors are merged by descending score.
    """

    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections)
    if not detections:
        return []

    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64).reshape(-1, 4)
    scores = np.array([d.score for d in detections], dtype=np.float64)

    if class_agnostic:
        keep_idx = nms(boxes, scores, cfg)
        return [detections[int(i)] for i in keep_idx]

    class_ids = np.array([d.class_id for d in detections])
    kept: List[int] = []
    for cls in np.unique(class_ids):
        idx = np.where(class_ids == cls)[0]
        keep_local = nms(boxes[idx], scores[idx], cfg)
        kept.extend(idx[keep_local].tolist())

    kept_arr = np.array(kept, dtype=np.int64)
    # Sort by input index first so the stable score sort preserves input order on ties.
    kept_arr.sort()
    kept_arr = kept_arr[np.argsort(-scores[kept_arr], kind="stable")]
    if max_detections is not None:
        kept_arr = kept_arr[:max_detections]
    return [detections[int(i)] for i in kept_arr]
