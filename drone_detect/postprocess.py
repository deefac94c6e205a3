import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import numpy as np

from .errors import ConfigurationError, NumericError, TensorShapeError
from .nms import suppress
from .types import Candidate, Detection, LetterboxParams

logger = logging.getLogger(__name__)

NUM_BOX_ATTRIBUTES = 4


@dataclass(frozen=True)
class PostConfig:
    """
    Thresholds for decoding and suppression.
    """

    conf_threshold: float = 0.4
    iou_threshold: float = 0.5
    # Original behaviour: boxes of different classes suppress each other.
    # If False, runs per-class NMS then merges results by score.
    class_agnostic_nms: bool = True
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ConfigurationError(f"conf_threshold must be in [0, 1], got {self.conf_threshold}")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ConfigurationError(f"iou_threshold must be in [0, 1], got {self.iou_threshold}")
        if self.max_detections is not None and self.max_detections < 0:
            raise ConfigurationError(f"max_detections must be >= 0, got {self.max_detections}")


def _validate_shape(output: np.ndarray) -> Tuple[int, int]:
    if output.ndim != 3:
        raise TensorShapeError(f"Expected output of rank 3 [1, A, P], got shape {output.shape}")
    batch, num_attrs, num_preds = output.shape
    if batch != 1:
        raise TensorShapeError(f"Batch > 1 is not supported (got shape {output.shape}). Pass one image at a time.")
    if num_attrs <= NUM_BOX_ATTRIBUTES:
        raise TensorShapeError(
            f"Expected more than {NUM_BOX_ATTRIBUTES} attributes (box + class scores), got shape {output.shape}"
        )
    return num_attrs, num_preds


def check_class_table(num_attributes: int, num_known_classes: Optional[int]) -> int:
    """
    Reconcile the tensor's class channels with the configured class table.

    Returns the number of class channels the decoder will scan. A mismatch is
    reported as a warning: extra channels are ignored, missing ones are simply
    absent from the tensor.
    """

    scanned = _scanned_class_count(num_attributes, num_known_classes)
    num_classes = num_attributes - NUM_BOX_ATTRIBUTES
    if num_known_classes is not None and num_known_classes != num_classes:
        logger.warning(
            "Model outputs %d class channels but the class table has %d entries; scanning the first %d",
            num_classes,
            num_known_classes,
            scanned,
        )
    return scanned


def _scanned_class_count(num_attributes: int, num_known_classes: Optional[int]) -> int:
    if num_attributes <= NUM_BOX_ATTRIBUTES:
        raise TensorShapeError(f"Expected more than {NUM_BOX_ATTRIBUTES} attributes, got {num_attributes}")
    num_classes = num_attributes - NUM_BOX_ATTRIBUTES
    if num_known_classes is None:
        return num_classes
    if num_known_classes <= 0:
        raise ConfigurationError(f"Class table must not be empty, got {num_known_classes} classes")
    return min(num_classes, num_known_classes)


def _require_valid(values: np.ndarray, index: int) -> None:
    if not np.all(np.isfinite(values)):
        raise NumericError(f"Prediction {index} has non-finite values: {values.tolist()}")
    w, h = values[2], values[3]
    if w < 0 or h < 0:
        raise NumericError(f"Prediction {index} has negative size: w={w}, h={h}")


def decode_candidates(
    output: np.ndarray,
    conf_threshold: float,
    num_known_classes: Optional[int] = None,
) -> Tuple[List[Candidate], int]:
    """
    Walk a [1, A, P] output (attribute-major) and keep predictions whose best
    class score reaches `conf_threshold`.

    Rows 0-3 hold cx, cy, w, h in input pixels; rows 4.. hold per-class
    scores. Ties between classes resolve to the lowest class id.

    Returns:
        candidates: surviving predictions in prediction order
        rejected: number of predictions dropped for non-finite values or negative size
    """

    if not 0.0 <= conf_threshold <= 1.0:
        raise ConfigurationError(f"conf_threshold must be in [0, 1], got {conf_threshold}")

    p = np.asarray(output, dtype=np.float64)
    num_attrs, num_preds = _validate_shape(p)
    num_scanned = _scanned_class_count(num_attrs, num_known_classes)

    # (P, 4 + scanned): one row per prediction
    table = p[0, : NUM_BOX_ATTRIBUTES + num_scanned, :].T
    class_scores = table[:, NUM_BOX_ATTRIBUTES:]

    # Non-finite rows are rejected whatever their score.
    finite_rows = np.isfinite(table).all(axis=1)
    safe_scores = np.where(np.isfinite(class_scores), class_scores, -np.inf)
    class_ids = np.argmax(safe_scores, axis=1)
    best = safe_scores[np.arange(num_preds), class_ids]

    candidates: List[Candidate] = []
    rejected = 0
    for i in np.where((best >= conf_threshold) | ~finite_rows)[0]:
        row = table[i]
        try:
            _require_valid(row, int(i))
        except NumericError as exc:
            rejected += 1
            logger.debug("Rejected prediction: %s", exc)
            continue
        cx, cy, w, h = row[:NUM_BOX_ATTRIBUTES]
        candidates.append(
            Candidate(
                cx=float(cx),
                cy=float(cy),
                w=float(w),
                h=float(h),
                score=float(best[i]),
                class_id=int(class_ids[i]),
            )
        )

    if rejected:
        logger.warning("Rejected %d prediction(s) with non-finite values or negative size", rejected)
    return candidates, rejected


def remap_candidate(
    candidate: Candidate,
    params: LetterboxParams,
    image_size: Tuple[int, int],
) -> Detection:
    """
    Map a candidate from letterboxed input space to original image pixels.

    Args:
        image_size: (width, height) of the original image; corners are clamped to it.
    """

    img_w, img_h = image_size
    x1, y1, x2, y2 = candidate.as_xyxy()
    x1, y1 = params.to_image(x1, y1)
    x2, y2 = params.to_image(x2, y2)

    if not all(math.isfinite(v) for v in (x1, y1, x2, y2, candidate.score)):
        raise NumericError(f"Non-finite geometry for candidate {candidate}")

    # Corners are ordered so x1 <= x2 and y1 <= y2 even for inverted boxes.
    x1, x2 = min(x1, x2), max(x1, x2)
    y1, y2 = min(y1, y2), max(y1, y2)

    return Detection(
        x1=min(max(x1, 0.0), float(img_w)),
        y1=min(max(y1, 0.0), float(img_h)),
        x2=min(max(x2, 0.0), float(img_w)),
        y2=min(max(y2, 0.0), float(img_h)),
        score=candidate.score,
        class_id=candidate.class_id,
    )


class DetectionPostprocessor:
    """
    Raw model output -> final detections in original image coordinates.

    Supported layout (per image):
    - (1, 4 + C, P): e.g. 1 x 9 x 8400 for the five-class drone model
    """

    def __init__(self, cfg: PostConfig, num_known_classes: Optional[int] = None):
        self.cfg = cfg
        self.num_known_classes = num_known_classes
        # Attribute counts already reconciled with the class table.
        self._checked_attributes: Set[int] = set()

    def check_attributes(self, num_attributes: int) -> None:
        """
        Run `check_class_table` once per distinct attribute count, so a
        mismatch is reported on the first frame instead of every frame.
        """
        if num_attributes in self._checked_attributes:
            return
        check_class_table(num_attributes, self.num_known_classes)
        self._checked_attributes.add(num_attributes)

    def process(
        self,
        preds: np.ndarray,
        params: LetterboxParams,
        orig_size: Tuple[int, int],
    ) -> Tuple[List[Detection], int, int]:
        """
        Decode, remap and suppress a single image's output.

        Returns:
            detections: survivors sorted by descending score
            num_candidates: predictions that passed the confidence threshold
            num_rejected: predictions dropped for non-finite values or negative size
        """

        preds = np.asarray(preds)
        _validate_shape(preds)
        self.check_attributes(int(preds.shape[1]))
        candidates, rejected = decode_candidates(preds, self.cfg.conf_threshold, self.num_known_classes)

        detections: List[Detection] = []
        for cand in candidates:
            try:
                detections.append(remap_candidate(cand, params, orig_size))
            except NumericError as exc:
                rejected += 1
                logger.warning("Dropped candidate during remap: %s", exc)

        logger.debug("Found %d detections before NMS", len(detections))
        kept = suppress(
            detections,
            self.cfg.iou_threshold,
            class_agnostic=self.cfg.class_agnostic_nms,
            max_detections=self.cfg.max_detections,
        )
        logger.debug("%d detections after NMS", len(kept))
        return kept, len(candidates), rejected
