from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import cv2
import numpy as np

from viewmatch.core.camera import CameraModel, StereoCameraModel, fake_camera_model
from viewmatch.errors import CalibrationLoadError, ConfigurationError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "viewmatch.calibration.v0"

CalibrationKind = Literal["mono", "stereo", "fake"]


@dataclass(frozen=True)
class ResolvedCalibration:
    """Exactly one active calibration model for a run."""

    kind: CalibrationKind
    model: CameraModel | StereoCameraModel

    @property
    def is_stereo(self) -> bool:
        return self.kind == "stereo"


def normalize_depth(image: np.ndarray | None) -> np.ndarray | None:
    """Collapse a 3- or 4-channel depth/right image to a single gray channel."""
    if image is None:
        return None
    image = np.asarray(image)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return image


def is_stereo_right_image(image: np.ndarray) -> bool:
    """Single-channel 8-bit inputs are right images; anything else is a depth map."""
    image = np.asarray(image)
    return image.dtype == np.uint8 and (image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1))


def _check_depth_format(image: np.ndarray, name: str) -> None:
    """Right images are 8-bit; depth maps are 16-bit millimetres or float metres."""
    image = np.asarray(image)
    single = image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1)
    supported = image.dtype in (np.uint8, np.uint16) or np.issubdtype(image.dtype, np.floating)
    if not (single and supported):
        channels = 1 if image.ndim == 2 else image.shape[2]
        raise ConfigurationError(
            f"{name} must be single-channel 8-bit, 16-bit or float (got {image.dtype}, {channels} channels)"
        )


def _same_format(a: np.ndarray, b: np.ndarray) -> bool:
    ch_a = 1 if a.ndim == 2 else a.shape[2]
    ch_b = 1 if b.ndim == 2 else b.shape[2]
    return a.dtype == b.dtype and ch_a == ch_b


def _camera_from_dict(d: dict[str, Any], path: Path) -> CameraModel:
    try:
        cam = CameraModel(
            fx=float(d["fx"]),
            fy=float(d["fy"]),
            cx=float(d["cx"]),
            cy=float(d["cy"]),
            width_px=int(d["width_px"]),
            height_px=int(d["height_px"]),
            dist_coeffs=tuple(float(v) for v in d.get("dist", ())),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CalibrationLoadError(path, f"invalid camera entry: {e}") from e
    if not cam.is_valid_for_projection():
        raise CalibrationLoadError(path, "camera intrinsics must be > 0 and image size set")
    return cam


def _camera_to_dict(cam: CameraModel) -> dict[str, Any]:
    return {
        "fx": float(cam.fx),
        "fy": float(cam.fy),
        "cx": float(cam.cx),
        "cy": float(cam.cy),
        "width_px": int(cam.width_px),
        "height_px": int(cam.height_px),
        "dist": [float(v) for v in cam.dist_coeffs],
    }


def _read_calibration(path: str | Path) -> tuple[Path, dict[str, Any]]:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise CalibrationLoadError(p, str(e)) from e
    except json.JSONDecodeError as e:
        raise CalibrationLoadError(p, f"not valid JSON: {e}") from e
    if not isinstance(data, dict) or data.get("schema_version") != SCHEMA_VERSION:
        raise CalibrationLoadError(p, f"schema_version must be {SCHEMA_VERSION}")
    return p, data


def load_camera_model(path: str | Path) -> CameraModel:
    p, data = _read_calibration(path)
    if not isinstance(data.get("camera"), dict):
        raise CalibrationLoadError(p, "no mono 'camera' entry")
    return _camera_from_dict(data["camera"], p)


def load_stereo_camera_model(path: str | Path) -> StereoCameraModel:
    p, data = _read_calibration(path)
    stereo = data.get("stereo")
    if not isinstance(stereo, dict):
        raise CalibrationLoadError(p, "no 'stereo' entry")
    if not isinstance(stereo.get("left"), dict) or not isinstance(stereo.get("right"), dict):
        raise CalibrationLoadError(p, "stereo entry needs 'left' and 'right' cameras")
    left = _camera_from_dict(stereo["left"], p)
    right = _camera_from_dict(stereo["right"], p)
    try:
        baseline = float(stereo["baseline_m"])
    except (KeyError, TypeError, ValueError) as e:
        raise CalibrationLoadError(p, f"invalid stereo baseline: {e}") from e
    if baseline <= 0.0:
        raise CalibrationLoadError(p, "stereo baseline_m must be > 0")
    return StereoCameraModel(left=left, right=right, baseline_m=baseline)


def save_calibration(
    path: str | Path,
    camera: CameraModel | None = None,
    stereo: StereoCameraModel | None = None,
) -> Path:
    """Write a calibration file holding a mono camera, a stereo pair, or both."""
    if camera is None and stereo is None:
        raise ValueError("nothing to save")
    meta: dict[str, Any] = {"schema_version": SCHEMA_VERSION}
    if camera is not None:
        meta["camera"] = _camera_to_dict(camera)
    if stereo is not None:
        meta["stereo"] = {
            "left": _camera_to_dict(stereo.left),
            "right": _camera_to_dict(stereo.right),
            "baseline_m": float(stereo.baseline_m),
        }
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")
    return p


def resolve_calibration(
    image_size: tuple[int, int],
    calibration_path: str | Path | None,
    from_depth: np.ndarray | None,
    to_depth: np.ndarray | None,
) -> ResolvedCalibration:
    """
    Pick the calibration model for a run.

    `image_size` is (width, height) of the first image and only sizes the fake
    model. Depth inputs are expected to be normalized already (`normalize_depth`).
    """
    has_depth = from_depth is not None or to_depth is not None

    if calibration_path is None:
        if has_depth:
            raise ConfigurationError("calibration required when depth is supplied")
        w, h = int(image_size[0]), int(image_size[1])
        return ResolvedCalibration(kind="fake", model=fake_camera_model(w, h))

    for name, depth in (("from_depth", from_depth), ("to_depth", to_depth)):
        if depth is not None:
            _check_depth_format(depth, name)

    if to_depth is not None and (from_depth is None or not _same_format(from_depth, to_depth)):
        raise ConfigurationError("to_depth requires a from_depth of the same pixel format")

    if from_depth is not None and is_stereo_right_image(from_depth):
        stereo = load_stereo_camera_model(calibration_path)
        logger.info("Loaded stereo calibration from %s (baseline %.4f m)", calibration_path, stereo.baseline_m)
        return ResolvedCalibration(kind="stereo", model=stereo)

    mono = load_camera_model(calibration_path)
    logger.info("Loaded mono calibration from %s", calibration_path)
    return ResolvedCalibration(kind="mono", model=mono)
