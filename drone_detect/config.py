from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class PipelineConfig:
    model_path: str = "Models/drone_yolov8.onnx"
    input_size: int = 640
    conf_threshold: float = 0.4
    iou_threshold: float = 0.5
    class_agnostic_nms: bool = True
    max_detections: Optional[int] = None
    # Optional metadata.yaml with names/colors; None uses the built-in drone table.
    class_metadata: Optional[str] = None
    providers: Optional[Tuple[str, ...]] = None
    output_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.model_path:
            raise ConfigurationError("model_path must not be empty")
        if self.input_size <= 0:
            raise ConfigurationError("input_size must be > 0")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ConfigurationError("conf_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ConfigurationError("iou_threshold must be in [0, 1]")
        if self.max_detections is not None and self.max_detections < 0:
            raise ConfigurationError("max_detections must be >= 0")


_ALLOWED_KEYS = {
    "model_path",
    "input_size",
    "conf_threshold",
    "iou_threshold",
    "class_agnostic_nms",
    "max_detections",
    "class_metadata",
    "providers",
    "output_name",
}


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    value = payload.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{key} must be an integer")
    return int(value)


def _optional_str(payload: Dict[str, Any], key: str, default: Optional[str]) -> Optional[str]:
    value = payload.get(key, default)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string")
    return value


def _optional_str_list(payload: Dict[str, Any], key: str) -> Optional[Tuple[str, ...]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{key} must be a list of strings")
    return tuple(value)


def pipeline_config_from_dict(payload: Dict[str, Any]) -> PipelineConfig:
    unknown = sorted(set(payload.keys()) - _ALLOWED_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown pipeline config keys: {unknown}")

    defaults = PipelineConfig()
    class_agnostic = payload.get("class_agnostic_nms", defaults.class_agnostic_nms)
    if not isinstance(class_agnostic, bool):
        raise ConfigurationError("class_agnostic_nms must be a boolean")

    return PipelineConfig(
        model_path=_optional_str(payload, "model_path", defaults.model_path) or "",
        input_size=_require_int(payload, "input_size", defaults.input_size) or 0,
        conf_threshold=_require_number(payload, "conf_threshold", defaults.conf_threshold),
        iou_threshold=_require_number(payload, "iou_threshold", defaults.iou_threshold),
        class_agnostic_nms=class_agnostic,
        max_detections=_require_int(payload, "max_detections", defaults.max_detections),
        class_metadata=_optional_str(payload, "class_metadata", defaults.class_metadata),
        providers=_optional_str_list(payload, "providers"),
        output_name=_optional_str(payload, "output_name", defaults.output_name),
    )


def load_pipeline_config(path: Path) -> PipelineConfig:
    if not path.exists():
        raise ConfigurationError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("Pipeline config must be a JSON object")
    return pipeline_config_from_dict(payload)


def pipeline_config_to_dict(cfg: PipelineConfig) -> Dict[str, Any]:
    providers: Optional[Sequence[str]] = cfg.providers
    return {
        "model_path": cfg.model_path,
        "input_size": cfg.input_size,
        "conf_threshold": cfg.conf_threshold,
        "iou_threshold": cfg.iou_threshold,
        "class_agnostic_nms": cfg.class_agnostic_nms,
        "max_detections": cfg.max_detections,
        "class_metadata": cfg.class_metadata,
        "providers": list(providers) if providers is not None else None,
        "output_name": cfg.output_name,
    }
