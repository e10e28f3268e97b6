from __future__ import annotations

import numpy as np
import pytest

pytest.importorskip("cv2")

from viewmatch.core.camera import CameraModel  # noqa: E402
from viewmatch.core.transform import Transform  # noqa: E402
from viewmatch.registration.motion import estimate_2d2d, estimate_3d2d, estimate_3d3d, rigid_fit  # noqa: E402


def _camera() -> CameraModel:
    return CameraModel(fx=500.0, fy=500.0, cx=320.0, cy=240.0, width_px=640, height_px=480)


def _scene(n: int = 80, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return np.stack(
        [rng.uniform(-1.5, 1.5, n), rng.uniform(-1.0, 1.0, n), rng.uniform(3.0, 6.0, n)],
        axis=-1,
    )


def test_rigid_fit_recovers_known_motion() -> None:
    T = Transform.from_xyz_rpy(0.2, -0.1, 0.3, 0.1, -0.05, 0.2)
    src = _scene(20)
    est = rigid_fit(src, T.apply(src))
    assert np.allclose(est.R, T.R, atol=1e-9)
    assert np.allclose(est.t, T.t, atol=1e-9)
    with pytest.raises(ValueError):
        rigid_fit(src[:2], src[:2])


def test_3d3d_rejects_outliers() -> None:
    pose = Transform.from_xyz_rpy(0.1, 0.0, -0.2, 0.0, 0.1, 0.0)
    XYZ_from = _scene(60)
    XYZ_to = pose.inverse().apply(XYZ_from)
    XYZ_to[:10] += 1.0

    est = estimate_3d3d(XYZ_from, XYZ_to, inlier_distance=0.05, iterations=200)
    assert est.transform is not None
    assert np.allclose(est.transform.matrix(), pose.matrix(), atol=1e-6)
    assert not np.any(est.inliers[:10])
    assert np.all(est.inliers[10:])
    assert est.variance < 1e-12


def test_3d3d_is_deterministic_and_fails_cleanly() -> None:
    XYZ = _scene(30)
    a = estimate_3d3d(XYZ, XYZ, 0.05, 50)
    b = estimate_3d3d(XYZ, XYZ, 0.05, 50)
    assert np.array_equal(a.inliers, b.inliers)
    assert np.allclose(a.transform.matrix(), b.transform.matrix())
    assert estimate_3d3d(XYZ[:2], XYZ[:2], 0.05, 50).transform is None


def test_3d2d_recovers_pose_of_second_camera() -> None:
    cam = _camera()
    pose = Transform.from_xyz_rpy(0.15, 0.05, 0.1, 0.02, -0.04, 0.03)
    XYZ_from = _scene(100)
    uv_to = cam.project(pose.inverse().apply(XYZ_from))

    est = estimate_3d2d(XYZ_from, uv_to, cam.K(), cam.dist(), threshold_px=1.0, iterations=300)
    assert est.transform is not None
    assert np.allclose(est.transform.R, pose.R, atol=1e-4)
    assert np.allclose(est.transform.t, pose.t, atol=1e-3)
    assert int(est.inliers.sum()) == 100
    assert estimate_3d2d(XYZ_from[:3], uv_to[:3], cam.K(), cam.dist(), 1.0, 10).transform is None


def test_2d2d_recovers_rotation_and_direction() -> None:
    cam = _camera()
    pose = Transform.from_xyz_rpy(0.3, 0.0, 0.05, 0.0, 0.03, 0.0)
    XYZ_from = _scene(150)
    uv_from = cam.project(XYZ_from)
    uv_to = cam.project(pose.inverse().apply(XYZ_from))

    est = estimate_2d2d(uv_from, uv_to, cam.K(), threshold_px=1.0)
    assert est.transform is not None
    assert np.allclose(est.transform.R, pose.R, atol=1e-3)
    direction = pose.t / np.linalg.norm(pose.t)
    assert est.transform.translation_norm() == pytest.approx(1.0)
    assert float(np.dot(est.transform.t, direction)) > 0.99


def test_2d2d_without_displacement_is_identity() -> None:
    cam = _camera()
    uv = cam.project(_scene(50))
    est = estimate_2d2d(uv, uv.copy(), cam.K(), threshold_px=1.0)
    assert est.transform is not None and est.transform.is_identity()
    assert np.all(est.inliers)
    assert estimate_2d2d(uv[:4], uv[:4], cam.K(), 1.0).transform is None
