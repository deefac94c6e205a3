import os
import tempfile
import unittest

from drone_detect.errors import ConfigurationError
from drone_detect.metadata import (
    DEFAULT_CLASS_TABLE,
    ClassInfo,
    ClassTable,
    load_class_names,
    load_class_table,
    parse_hex_color,
)


METADATA = """\
# exported model metadata
task: detect
names:
  0: unknown
  1: drone
  3: 'bird'
colors:
  1: "#00ff00"
  3: "#112233"
"""


class TestClassTable(unittest.TestCase):
    def test_default_table_matches_drone_model(self) -> None:
        self.assertEqual(len(DEFAULT_CLASS_TABLE), 5)
        self.assertEqual(DEFAULT_CLASS_TABLE.label_for(1), "drone")
        self.assertEqual(DEFAULT_CLASS_TABLE.label_for(0), "unknown")
        self.assertEqual(DEFAULT_CLASS_TABLE.color_for(0), "#666666")
        self.assertEqual(DEFAULT_CLASS_TABLE.color_bgr(1), (0, 255, 0))

    def test_out_of_range_ids_use_fallback(self) -> None:
        table = ClassTable(classes=(ClassInfo("bird", "#0000ff"),), fallback_label="object", fallback_color="#ffffff")
        for class_id in (-1, 1, 99, None):
            self.assertEqual(table.label_for(class_id), "object")
            self.assertEqual(table.color_for(class_id), "#ffffff")
        self.assertEqual(DEFAULT_CLASS_TABLE.label_for(42), "drone")
        self.assertEqual(DEFAULT_CLASS_TABLE.color_for(42), "#00ff00")

    def test_invalid_colors_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            ClassTable(classes=(ClassInfo("x", "green"),))
        with self.assertRaises(ConfigurationError):
            parse_hex_color("#12345g")

    def test_parse_hex_color_is_bgr(self) -> None:
        self.assertEqual(parse_hex_color("#112233"), (0x33, 0x22, 0x11))
        self.assertEqual(parse_hex_color("ff0000"), (0, 0, 255))

    def test_from_names_fills_gaps(self) -> None:
        table = ClassTable.from_names({0: "a", 2: "c"}, {2: "#010203"})
        self.assertEqual(len(table), 3)
        self.assertEqual(table.label_for(1), "unknown")
        self.assertEqual(table.color_for(2), "#010203")


class TestLoadMetadata(unittest.TestCase):
    def setUp(self) -> None:
        fd, self.path = tempfile.mkstemp(suffix=".yaml")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(METADATA)

    def tearDown(self) -> None:
        os.remove(self.path)

    def test_load_class_names(self) -> None:
        self.assertEqual(load_class_names(self.path), {0: "unknown", 1: "drone", 3: "bird"})

    def test_load_class_table(self) -> None:
        table = load_class_table(self.path)
        self.assertEqual(len(table), 4)
        self.assertEqual(table.label_for(3), "bird")
        self.assertEqual(table.color_for(3), "#112233")
        self.assertEqual(table.color_for(0), table.fallback_color)

    def test_load_class_table_without_names(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("task: detect\n")
        with self.assertRaises(ConfigurationError):
            load_class_table(self.path)


if __name__ == "__main__":
    unittest.main()
