"""
Post-processing for single-image YOLOv8-style drone detectors.

Turns a raw [1, 4 + C, P] output tensor into de-duplicated boxes in original
image coordinates: letterbox -> inference -> decode -> remap -> NMS. Works with
NumPy arrays emitted by ONNX Runtime; OpenCV is used for letterboxing and
drawing.
"""

from .types import Candidate, Detection, DetectionResult, LetterboxParams, PipelineStats
from .errors import (
    ConfigurationError,
    DetectionError,
    InferenceUnavailable,
    NumericError,
    TensorShapeError,
)
from .letterbox import compute_letterbox, letterbox, to_blob
from .nms import NMSConfig, iou, nms, suppress
from .postprocess import DetectionPostprocessor, PostConfig, check_class_table, decode_candidates, remap_candidate
from .metadata import DEFAULT_CLASS_TABLE, ClassInfo, ClassTable, load_class_names, load_class_table
from .config import PipelineConfig, load_pipeline_config
from .runtime import DetectionPipeline, load_pipeline, load_pipeline_from_config, find_project_root, resolve_path
from .visualize import draw_detections

__all__ = [
    "Candidate",
    "Detection",
    "DetectionResult",
    "LetterboxParams",
    "PipelineStats",
    "ConfigurationError",
    "DetectionError",
    "InferenceUnavailable",
    "NumericError",
    "TensorShapeError",
    "compute_letterbox",
    "letterbox",
    "to_blob",
    "NMSConfig",
    "iou",
    "nms",
    "suppress",
    "DetectionPostprocessor",
    "PostConfig",
    "check_class_table",
    "decode_candidates",
    "remap_candidate",
    "DEFAULT_CLASS_TABLE",
    "ClassInfo",
    "ClassTable",
    "load_class_names",
    "load_class_table",
    "PipelineConfig",
    "load_pipeline_config",
    "DetectionPipeline",
    "load_pipeline",
    "load_pipeline_from_config",
    "find_project_root",
    "resolve_path",
    "draw_detections",
]
