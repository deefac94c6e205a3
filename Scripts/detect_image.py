from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

import cv2

from drone_detect import (
    DetectionError,
    PipelineConfig,
    draw_detections,
    load_pipeline_config,
    load_pipeline_from_config,
)
from drone_detect.config import pipeline_config_to_dict


def read_image(path: str):
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def build_config(args: argparse.Namespace) -> PipelineConfig:
    cfg = load_pipeline_config(Path(args.config)) if args.config else PipelineConfig()

    overrides = {}
    if args.model is not None:
        overrides["model_path"] = args.model
    if args.imgsz is not None:
        overrides["input_size"] = args.imgsz
    if args.conf is not None:
        overrides["conf_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.max_det is not None:
        overrides["max_detections"] = args.max_det
    if args.per_class_nms:
        overrides["class_agnostic_nms"] = False
    if args.metadata is not None:
        overrides["class_metadata"] = args.metadata
    return replace(cfg, **overrides) if overrides else cfg


def main() -> int:
    parser = argparse.ArgumentParser(description="Run drone detection on a single image.")
    parser.add_argument("image", help="Path to an input image.")
    parser.add_argument("--config", default=None, help="Pipeline config JSON.")
    parser.add_argument("--model", default=None, help="Path to an ONNX model (overrides config).")
    parser.add_argument("--metadata", default=None, help="metadata.yaml with class names/colors.")
    parser.add_argument("--imgsz", type=int, default=None, help="Letterbox input size (e.g., 640).")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (pre-NMS).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--max-det", type=int, default=None, help="Max detections to keep after NMS.")
    parser.add_argument("--per-class-nms", action="store_true", help="Use per-class NMS (default is class-agnostic).")
    parser.add_argument("--output", default=None, help="Write the annotated image here.")
    parser.add_argument("--print-config", action="store_true", help="Print the effective config and exit.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = build_config(args)
        if args.print_config:
            print(json.dumps(pipeline_config_to_dict(cfg), indent=2))
            return 0

        image = read_image(args.image)
        pipeline = load_pipeline_from_config(cfg)
        result = pipeline.run(image)
    except (DetectionError, FileNotFoundError) as exc:
        logging.getLogger("detect_image").error("%s", exc)
        return 1

    for det in result.detections:
        label = pipeline.class_table.label_for(det.class_id)
        x1, y1, x2, y2 = det.as_xyxy()
        print(f"{label:<10} {det.score:.3f}  ({x1:.1f}, {y1:.1f}, {x2:.1f}, {y2:.1f})")

    stats = result.stats
    print(
        f"Detections: {stats.count}  time: {stats.elapsed_ms:.0f}ms  "
        f"image: {stats.image_width}x{stats.image_height}"
    )

    if args.output:
        vis = draw_detections(image, result.detections, class_table=pipeline.class_table)
        if not cv2.imwrite(args.output, vis):
            print(f"Could not write annotated image: {args.output}", file=sys.stderr)
            return 1
        print(f"Wrote annotated image: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
