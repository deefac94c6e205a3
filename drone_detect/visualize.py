from __future__ import annotations

from typing import Iterable

import numpy as np

from .errors import ConfigurationError
from .metadata import DEFAULT_CLASS_TABLE, ClassTable
from .types import Detection


def format_label(det: Detection, class_table: ClassTable = DEFAULT_CLASS_TABLE, show_score: bool = True) -> str:
    label = class_table.label_for(det.class_id)
    if show_score:
        label = f"{label} {det.score * 100:.1f}%"
    return label


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    class_table: ClassTable = DEFAULT_CLASS_TABLE,
    show_score: bool = True,
    box_thickness: int = 3,
    font_scale: float = 0.6,
    font_thickness: int = 2,
    padding: int = 4,
) -> np.ndarray:
    """
    Draw bounding boxes + "<label> <pct>%" labels on an OpenCV BGR image and return a copy.

    Args:
        image_bgr: input image in BGR (H, W, 3).
        detections: iterable of Detection with xyxy in original image coordinates.
        class_table: label/color lookup; unknown ids use the table's fallback.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ConfigurationError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(round(x1), 0, w - 1))
        y1i = int(np.clip(round(y1), 0, h - 1))
        x2i = int(np.clip(round(x2), 0, w - 1))
        y2i = int(np.clip(round(y2), 0, h - 1))

        color = class_table.color_bgr(det.class_id)
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        label = format_label(det, class_table, show_score)
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)

        # Label sits above the box, pushed inside the image near the top edge.
        y_text_bottom = max(y1i - padding, th + baseline + padding)
        y_text_top = y_text_bottom - th - baseline - padding
        x_text_right = min(x1i + tw + 2 * padding, w - 1)

        cv2.rectangle(out, (x1i, max(y_text_top, 0)), (x_text_right, min(y_text_bottom, h - 1)), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i + padding, min(y_text_bottom - baseline, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
