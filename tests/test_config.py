import json
import tempfile
import unittest
from pathlib import Path

from drone_detect.config import (
    PipelineConfig,
    load_pipeline_config,
    pipeline_config_from_dict,
    pipeline_config_to_dict,
)
from drone_detect.errors import ConfigurationError


class TestPipelineConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        self.assertEqual(cfg.input_size, 640)
        self.assertEqual(cfg.conf_threshold, 0.4)
        self.assertEqual(cfg.iou_threshold, 0.5)
        self.assertTrue(cfg.class_agnostic_nms)

    def test_from_dict_overrides(self) -> None:
        cfg = pipeline_config_from_dict(
            {"model_path": "m.onnx", "conf_threshold": 0.25, "max_detections": 10, "providers": ["CPUExecutionProvider"]}
        )
        self.assertEqual(cfg.model_path, "m.onnx")
        self.assertEqual(cfg.conf_threshold, 0.25)
        self.assertEqual(cfg.max_detections, 10)
        self.assertEqual(cfg.providers, ("CPUExecutionProvider",))
        self.assertEqual(pipeline_config_from_dict(pipeline_config_to_dict(cfg)), cfg)

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            pipeline_config_from_dict({"nms_thresh": 0.5})

    def test_type_and_range_errors(self) -> None:
        bad_payloads = [
            {"conf_threshold": "0.4"},
            {"conf_threshold": True},
            {"conf_threshold": 1.2},
            {"iou_threshold": -0.5},
            {"input_size": 0},
            {"input_size": 640.0},
            {"class_agnostic_nms": "yes"},
            {"providers": "CPUExecutionProvider"},
            {"model_path": ""},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(ConfigurationError):
                    pipeline_config_from_dict(payload)

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "pipeline.json"
            path.write_text(json.dumps({"input_size": 320, "iou_threshold": 0.45}), encoding="utf-8")
            cfg = load_pipeline_config(path)
            self.assertEqual(cfg.input_size, 320)
            self.assertEqual(cfg.iou_threshold, 0.45)

            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(ConfigurationError):
                load_pipeline_config(path)

            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ConfigurationError):
                load_pipeline_config(path)

            with self.assertRaises(ConfigurationError):
                load_pipeline_config(Path(tmp) / "missing.json")


if __name__ == "__main__":
    unittest.main()
