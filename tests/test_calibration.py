from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

pytest.importorskip("cv2")

from viewmatch.calibration import (  # noqa: E402
    load_camera_model,
    load_stereo_camera_model,
    normalize_depth,
    resolve_calibration,
    save_calibration,
)
from viewmatch.core.camera import CameraModel, StereoCameraModel  # noqa: E402
from viewmatch.errors import CalibrationLoadError, ConfigurationError  # noqa: E402


def _camera() -> CameraModel:
    return CameraModel(fx=525.0, fy=525.0, cx=319.5, cy=239.5, width_px=640, height_px=480, dist_coeffs=(0.01, 0.0))


def _calibration_file(tmp_path: Path, mono: bool = True, stereo: bool = True) -> Path:
    cam = _camera()
    return save_calibration(
        tmp_path / "calib.json",
        camera=cam if mono else None,
        stereo=StereoCameraModel(left=cam, right=cam, baseline_m=0.12) if stereo else None,
    )


def test_no_calibration_no_depth_gives_fake_model() -> None:
    resolved = resolve_calibration((640, 480), None, None, None)
    assert resolved.kind == "fake"
    assert not resolved.is_stereo
    m = resolved.model
    assert (m.fx, m.fy, m.cx, m.cy) == (320.0, 320.0, 320.0, 240.0)
    assert m.image_size == (640, 480)


@pytest.mark.parametrize("which", ["from", "to"])
def test_depth_without_calibration_is_a_configuration_error(which: str) -> None:
    depth = np.zeros((480, 640), dtype=np.uint16)
    kwargs = {"from_depth": depth, "to_depth": None} if which == "from" else {"from_depth": None, "to_depth": depth}
    with pytest.raises(ConfigurationError, match="calibration required"):
        resolve_calibration((640, 480), None, **kwargs)


def test_single_channel_8_bit_selects_stereo(tmp_path: Path) -> None:
    path = _calibration_file(tmp_path)
    right = np.zeros((480, 640), dtype=np.uint8)
    resolved = resolve_calibration((640, 480), path, right, right.copy())
    assert resolved.kind == "stereo"
    assert resolved.is_stereo
    assert isinstance(resolved.model, StereoCameraModel)
    assert resolved.model.baseline_m == pytest.approx(0.12)


@pytest.mark.parametrize("dtype", [np.uint16, np.float32])
def test_depth_map_selects_mono(tmp_path: Path, dtype: type) -> None:
    path = _calibration_file(tmp_path)
    depth = np.ones((480, 640), dtype=dtype)
    resolved = resolve_calibration((640, 480), path, depth, None)
    assert resolved.kind == "mono"
    assert resolved.model == _camera()


def test_calibration_without_depth_is_mono(tmp_path: Path) -> None:
    resolved = resolve_calibration((640, 480), _calibration_file(tmp_path), None, None)
    assert resolved.kind == "mono"


def test_three_channel_right_image_is_normalized_to_gray(tmp_path: Path) -> None:
    rgb_right = np.zeros((480, 640, 3), dtype=np.uint8)
    gray = normalize_depth(rgb_right)
    assert gray.shape == (480, 640)
    resolved = resolve_calibration((640, 480), _calibration_file(tmp_path), gray, None)
    assert resolved.kind == "stereo"
    assert normalize_depth(None) is None


def test_to_depth_requires_matching_from_depth(tmp_path: Path) -> None:
    path = _calibration_file(tmp_path)
    depth16 = np.ones((480, 640), dtype=np.uint16)
    with pytest.raises(ConfigurationError):
        resolve_calibration((640, 480), path, None, depth16)
    with pytest.raises(ConfigurationError):
        resolve_calibration((640, 480), path, np.ones((480, 640), dtype=np.float32), depth16)


def test_missing_or_invalid_file_raises_with_path(tmp_path: Path) -> None:
    missing = tmp_path / "missing.json"
    with pytest.raises(CalibrationLoadError) as exc:
        resolve_calibration((640, 480), missing, None, None)
    assert exc.value.path == missing
    assert str(missing) in str(exc.value)

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(CalibrationLoadError):
        load_camera_model(bad)

    wrong_schema = tmp_path / "schema.json"
    wrong_schema.write_text('{"schema_version": "other"}', encoding="utf-8")
    with pytest.raises(CalibrationLoadError, match="schema_version"):
        load_camera_model(wrong_schema)


def test_requested_model_must_be_present(tmp_path: Path) -> None:
    stereo_only = _calibration_file(tmp_path, mono=False)
    with pytest.raises(CalibrationLoadError, match="mono"):
        resolve_calibration((640, 480), stereo_only, np.ones((480, 640), dtype=np.uint16), None)

    mono_only = _calibration_file(tmp_path, stereo=False)
    with pytest.raises(CalibrationLoadError, match="stereo"):
        load_stereo_camera_model(mono_only)


def test_save_load_round_trip(tmp_path: Path) -> None:
    path = _calibration_file(tmp_path)
    assert load_camera_model(path) == _camera()
    stereo = load_stereo_camera_model(path)
    assert stereo.left == _camera()
    with pytest.raises(ValueError):
        save_calibration(tmp_path / "empty.json")


def test_four_channel_input_is_normalized_to_gray() -> None:
    rgba = np.zeros((48, 64, 4), dtype=np.uint8)
    rgba[..., :3] = 90
    gray = normalize_depth(rgba)
    assert gray.shape == (48, 64)
    assert gray.dtype == np.uint8
    assert int(gray[0, 0]) == 90


@pytest.mark.parametrize(
    "depth",
    [
        np.zeros((48, 64), dtype=np.int16),
        np.zeros((48, 64), dtype=np.int32),
        np.zeros((48, 64, 2), dtype=np.uint16),
    ],
)
def test_unsupported_depth_format_is_a_configuration_error(tmp_path: Path, depth: np.ndarray) -> None:
    path = _calibration_file(tmp_path)
    with pytest.raises(ConfigurationError, match="from_depth"):
        resolve_calibration((64, 48), path, depth, None)
    with pytest.raises(ConfigurationError, match="to_depth"):
        resolve_calibration((64, 48), path, np.zeros((48, 64), dtype=np.uint16), depth)
