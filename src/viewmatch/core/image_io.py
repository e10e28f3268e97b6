from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from viewmatch.errors import ImageLoadError

logger = logging.getLogger(__name__)


def _read_with_pillow(p: Path, *, color: bool) -> np.ndarray | None:
    try:
        with Image.open(p) as im:
            if color:
                rgb = np.asarray(im.convert("RGB"), dtype=np.uint8)
                return np.ascontiguousarray(rgb[:, :, ::-1])
            arr = np.asarray(im)
    except (OSError, UnidentifiedImageError):
        return None
    if arr.dtype == np.int32:
        # 16-bit PNGs decoded by Pillow in "I" mode.
        arr = arr.astype(np.uint16)
    return arr


def load_color_u8(path: str | Path) -> np.ndarray:
    """
    Load an image as BGR uint8 (H,W,3).

    OpenCV is the primary decoder; Pillow covers formats the local OpenCV build
    lacks. Raises `ImageLoadError` when neither can decode the file.
    """
    p = Path(path)
    img = cv2.imread(str(p), cv2.IMREAD_COLOR)
    if img is None:
        img = _read_with_pillow(p, color=True)
    if img is None or img.size == 0:
        raise ImageLoadError(p)
    return img


def load_depth(path: str | Path) -> np.ndarray | None:
    """
    Load a depth map or a stereo right image without changing its pixel format.

    Returns None (and logs a warning) when the file cannot be decoded: a missing
    depth only degrades the run to 2D features on that side.
    """
    p = Path(path)
    img = cv2.imread(str(p), cv2.IMREAD_UNCHANGED)
    if img is None:
        img = _read_with_pillow(p, color=False)
    if img is None or img.size == 0:
        logger.warning('Failed loading depth image: "%s"', p)
        return None
    return img


def depth_to_meters(depth: np.ndarray) -> np.ndarray:
    """
    Convert a depth map to float32 metres: uint16 is millimetres, floats are metres.
    """
    depth = np.asarray(depth)
    if depth.dtype == np.uint16:
        return depth.astype(np.float32) * 0.001
    if np.issubdtype(depth.dtype, np.floating):
        out = depth.astype(np.float32)
        out[~np.isfinite(out)] = 0.0
        return out
    raise ValueError(f"unsupported depth format: {depth.dtype}")


def to_gray_u8(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    return image
