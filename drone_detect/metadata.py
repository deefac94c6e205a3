from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .errors import ConfigurationError


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """
    Parse "#rrggbb" (or "rrggbb") into an OpenCV BGR tuple.
    """

    text = value.strip().lstrip("#")
    if len(text) != 6:
        raise ConfigurationError(f"Invalid hex color: {value!r}")
    try:
        r, g, b = (int(text[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid hex color: {value!r}") from exc
    return b, g, r


@dataclass(frozen=True)
class ClassInfo:
    label: str
    color: str = "#00ff00"


@dataclass(frozen=True)
class ClassTable:
    """
    Ordered class id -> (label, color) mapping supplied by configuration.

    Ids outside the table resolve to `fallback_label` / `fallback_color`
    instead of raising, so a model with more class channels than the table
    still renders.
    """

    classes: Tuple[ClassInfo, ...]
    fallback_label: str = "drone"
    fallback_color: str = "#00ff00"

    def __post_init__(self) -> None:
        for info in self.classes:
            parse_hex_color(info.color)
        parse_hex_color(self.fallback_color)

    def __len__(self) -> int:
        return len(self.classes)

    def _get(self, class_id: Optional[int]) -> Optional[ClassInfo]:
        if class_id is None or not 0 <= class_id < len(self.classes):
            return None
        return self.classes[class_id]

    def label_for(self, class_id: Optional[int]) -> str:
        info = self._get(class_id)
        return info.label if info is not None else self.fallback_label

    def color_for(self, class_id: Optional[int]) -> str:
        info = self._get(class_id)
        return info.color if info is not None else self.fallback_color

    def color_bgr(self, class_id: Optional[int]) -> Tuple[int, int, int]:
        return parse_hex_color(self.color_for(class_id))

    @classmethod
    def from_names(
        cls,
        names: Dict[int, str],
        colors: Optional[Dict[int, str]] = None,
        **kwargs,
    ) -> "ClassTable":
        """
        Build a table from sparse {id: label} / {id: color} mappings.

        Gaps in the id range are filled with "unknown" so ids stay positional.
        """

        colors = colors or {}
        fallback_color = kwargs.get("fallback_color", "#00ff00")
        size = max(names.keys(), default=-1) + 1
        classes = tuple(
            ClassInfo(label=names.get(i, "unknown"), color=colors.get(i, fallback_color)) for i in range(size)
        )
        return cls(classes=classes, **kwargs)


_GRAY = "#666666"
_GREEN = "#00ff00"

# Five-class drone model: detections land on class 1.
DEFAULT_CLASS_TABLE = ClassTable(
    classes=(
        ClassInfo("unknown", _GRAY),
        ClassInfo("drone", _GREEN),
        ClassInfo("unknown", _GRAY),
        ClassInfo("unknown", _GRAY),
        ClassInfo("unknown", _GRAY),
    ),
)


def _read_sections(metadata_path: str, sections: Sequence[str]) -> Dict[str, Dict[int, str]]:
    out: Dict[str, Dict[int, str]] = {name: {} for name in sections}
    current: Optional[str] = None

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            # Top-level "key:" headers start a new section.
            if not raw[:1].isspace() and line.endswith(":"):
                key = line[:-1].strip()
                current = key if key in out else None
                continue
            if current is None:
                continue

            # Parse "id: value"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            out[current][int(left)] = right

    return out


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from the lightweight `metadata.yaml` format.

        names:
          0: unknown
          1: drone
          ...

    This function intentionally avoids adding a PyYAML dependency.
    """

    return _read_sections(metadata_path, ("names",))["names"]


def load_class_table(metadata_path: str, **kwargs) -> ClassTable:
    """
    Load a ClassTable from `metadata.yaml`, reading an optional `colors:`
    section next to `names:`:

        colors:
          0: "#666666"
          1: "#00ff00"
    """

    sections = _read_sections(metadata_path, ("names", "colors"))
    if not sections["names"]:
        raise ConfigurationError(f"No class names found in {metadata_path}")
    return ClassTable.from_names(sections["names"], sections["colors"], **kwargs)
