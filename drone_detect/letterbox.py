import math
from typing import Tuple

import numpy as np

from .errors import ConfigurationError
from .types import LetterboxParams


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; padding must round .5 up.
    return int(math.floor(value + 0.5))


def compute_letterbox(src_width: int, src_height: int, target_size: int = 640) -> LetterboxParams:
    """
    Compute the aspect-preserving scale and centering padding for a square input.

    Raises:
        ConfigurationError: if any dimension is non-positive.
    """

    if target_size <= 0:
        raise ConfigurationError(f"target_size must be > 0, got {target_size}")
    if src_width <= 0 or src_height <= 0:
        raise ConfigurationError(f"Image dimensions must be > 0, got {src_width}x{src_height}")

    scale = min(target_size / src_width, target_size / src_height)
    # Extreme aspect ratios still keep one row/column of image.
    new_w = max(1, _round_half_up(src_width * scale))
    new_h = max(1, _round_half_up(src_height * scale))
    pad_x = _round_half_up((target_size - new_w) / 2)
    pad_y = _round_half_up((target_size - new_h) / 2)

    return LetterboxParams(
        scale=scale,
        pad_x=float(pad_x),
        pad_y=float(pad_y),
        new_width=new_w,
        new_height=new_h,
        target_size=int(target_size),
    )


def letterbox(
    image: np.ndarray,
    target_size: int = 640,
    color: Tuple[int, int, int] = (0, 0, 0),
) -> Tuple[np.ndarray, LetterboxParams]:
    """
    Resize and pad an image into a `target_size` square canvas.

    Returns:
        padded: (S, S, 3) uint8 image, background filled with `color`
        params: LetterboxParams used for the mapping
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array (BGR).")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ConfigurationError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")

    h, w = image.shape[:2]
    params = compute_letterbox(w, h, target_size)

    # Resize
    if (w, h) != (params.new_width, params.new_height):
        image = cv2.resize(image, (params.new_width, params.new_height), interpolation=cv2.INTER_LINEAR)

    padded = np.empty((params.target_size, params.target_size, 3), dtype=np.uint8)
    padded[:] = color
    left, top = int(params.pad_x), int(params.pad_y)
    padded[top : top + params.new_height, left : left + params.new_width] = image

    return padded, params


def to_blob(padded_bgr: np.ndarray) -> np.ndarray:
    """
    BGR uint8 (H, W, 3) -> RGB float32 (1, 3, H, W) scaled to [0, 1].
    """

    blob = padded_bgr[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.transpose(blob, (2, 0, 1))[None, ...]
    return np.ascontiguousarray(blob)
