from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import PipelineConfig
from .errors import ConfigurationError, InferenceUnavailable
from .letterbox import letterbox, to_blob
from .metadata import DEFAULT_CLASS_TABLE, ClassTable, load_class_table
from .postprocess import DetectionPostprocessor, PostConfig
from .types import Detection, DetectionResult, LetterboxParams, PipelineStats


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live in `<root>/Models` and scripts run from anywhere.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    params: LetterboxParams


class DetectionPipeline:
    """
    Preprocess (letterbox) -> inference -> decode/remap -> NMS for one image.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray` and returns
    `Detection`s in original image coordinates. Apart from the engine handle it
    holds immutable configuration and the set of output shapes already checked
    against the class table, so one instance may serve several threads if the
    engine does.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        class_table: ClassTable = DEFAULT_CLASS_TABLE,
        input_size: int = 640,
        post_cfg: PostConfig = PostConfig(),
    ):
        if input_size <= 0:
            raise ConfigurationError(f"input_size must be > 0, got {input_size}")
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.class_table = class_table
        self.input_size = int(input_size)
        self.post = DetectionPostprocessor(post_cfg, num_known_classes=len(class_table))

        # Validate the class table up front when the engine declares a static shape;
        # otherwise the first output does it.
        shape = getattr(backend, "output_shape", None)
        if shape and len(shape) == 3 and isinstance(shape[1], int):
            self.post.check_attributes(shape[1])

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ConfigurationError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        orig_h, orig_w = image_bgr.shape[:2]
        padded, params = letterbox(image_bgr, target_size=self.input_size)
        return PreprocessResult(blob=to_blob(padded), orig_size=(orig_w, orig_h), params=params)

    def infer(self, blob: np.ndarray) -> np.ndarray:
        preds = self._infer_fn(blob)
        if preds is None:
            raise InferenceUnavailable("Inference engine returned no output.")
        return np.asarray(preds)

    def postprocess(self, preds: np.ndarray, prep: PreprocessResult) -> Tuple[List[Detection], int, int]:
        return self.post.process(preds, prep.params, prep.orig_size)

    def run(self, image_bgr: np.ndarray) -> DetectionResult:
        start = time.perf_counter()
        prep = self.preprocess(image_bgr)
        preds = self.infer(prep.blob)
        detections, num_candidates, num_rejected = self.postprocess(preds, prep)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        orig_w, orig_h = prep.orig_size
        stats = PipelineStats(
            count=len(detections),
            elapsed_ms=elapsed_ms,
            image_width=orig_w,
            image_height=orig_h,
            num_candidates=num_candidates,
            num_rejected=num_rejected,
        )
        logger.debug(
            "Detected %d object(s) in %dx%d image (%.1f ms)", stats.count, orig_w, orig_h, elapsed_ms
        )
        return DetectionResult(detections=detections, stats=stats)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        return self.run(image_bgr).detections


def load_pipeline(
    model_path: PathLike,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    class_table: ClassTable = DEFAULT_CLASS_TABLE,
    input_size: int = 640,
    post_cfg: PostConfig = PostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> DetectionPipeline:
    """
    Create a pipeline for a model on disk.

    Typical usage:
        pipe = load_pipeline("Models/drone_yolov8.onnx")  # resolves from project root by default

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        backend: "onnxruntime" or None to infer from extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        else:
            raise ConfigurationError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_name=onnx_output_name,
            ),
        )
        return DetectionPipeline(
            ort_backend.infer,
            backend=ort_backend,
            backend_name="onnxruntime",
            class_table=class_table,
            input_size=input_size,
            post_cfg=post_cfg,
        )

    raise ConfigurationError(f"Unsupported backend: {backend!r}")


def load_pipeline_from_config(cfg: PipelineConfig, *, root: Optional[PathLike] = "auto") -> DetectionPipeline:
    class_table = DEFAULT_CLASS_TABLE
    if cfg.class_metadata is not None:
        class_table = load_class_table(str(resolve_path(cfg.class_metadata, root=root)))

    return load_pipeline(
        cfg.model_path,
        root=root,
        class_table=class_table,
        input_size=cfg.input_size,
        post_cfg=PostConfig(
            conf_threshold=cfg.conf_threshold,
            iou_threshold=cfg.iou_threshold,
            class_agnostic_nms=cfg.class_agnostic_nms,
            max_detections=cfg.max_detections,
        ),
        onnx_providers=cfg.providers,
        onnx_output_name=cfg.output_name,
    )
