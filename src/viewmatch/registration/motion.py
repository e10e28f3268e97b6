from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np
from scipy.spatial.transform import Rotation as Rot

from viewmatch.core.transform import Transform

# Below this median parallax (in pixels, after removing the rotation) the
# translation direction is not observable and is reported as zero.
_MIN_PARALLAX_PX = 0.5


@dataclass(frozen=True, eq=False)
class MotionEstimate:
    """
    Pose of the "to" camera expressed in the "from" camera frame
    (X_from = T X_to), or None, plus a per-correspondence inlier mask.
    """

    transform: Transform | None
    inliers: np.ndarray  # (N,) bool
    variance: float = float("nan")


def _failed(n: int) -> MotionEstimate:
    return MotionEstimate(transform=None, inliers=np.zeros((n,), dtype=bool))


def undistort_pixels(uv_px: np.ndarray, K: np.ndarray, dist: np.ndarray) -> np.ndarray:
    uv_px = np.asarray(uv_px, dtype=np.float64).reshape(-1, 2)
    if uv_px.shape[0] == 0 or not np.any(dist):
        return uv_px
    out = cv2.undistortPoints(uv_px.reshape(-1, 1, 2), K, dist, P=K)
    return out.reshape(-1, 2)


def _sampson_px2(F: np.ndarray, uv_from: np.ndarray, uv_to: np.ndarray) -> np.ndarray:
    x1 = np.concatenate([uv_from, np.ones((uv_from.shape[0], 1))], axis=1)
    x2 = np.concatenate([uv_to, np.ones((uv_to.shape[0], 1))], axis=1)
    Fx1 = x1 @ F.T
    Ftx2 = x2 @ F
    num = np.sum(x2 * Fx1, axis=1) ** 2
    den = Fx1[:, 0] ** 2 + Fx1[:, 1] ** 2 + Ftx2[:, 0] ** 2 + Ftx2[:, 1] ** 2
    return num / np.maximum(den, 1e-12)


def _rotation_parallax_px(K: np.ndarray, R: np.ndarray, uv_from: np.ndarray, uv_to: np.ndarray) -> float:
    Kinv = np.linalg.inv(K)
    x1 = np.concatenate([uv_from, np.ones((uv_from.shape[0], 1))], axis=1) @ Kinv.T
    rotated = (x1 @ R.T) @ K.T
    uv_rot = rotated[:, :2] / rotated[:, 2:3]
    return float(np.median(np.linalg.norm(uv_rot - uv_to, axis=1)))


def estimate_2d2d(
    uv_from: np.ndarray,
    uv_to: np.ndarray,
    K: np.ndarray,
    threshold_px: float,
    confidence: float = 0.999,
) -> MotionEstimate:
    """
    Essential-matrix motion between two undistorted pixel sets.

    The translation is a unit direction: scale is not observable from two
    monocular views.
    """
    uv_from = np.asarray(uv_from, dtype=np.float64).reshape(-1, 2)
    uv_to = np.asarray(uv_to, dtype=np.float64).reshape(-1, 2)
    n = uv_from.shape[0]
    if n < 5:
        return _failed(n)

    # No displacement at all: E is undefined, the views coincide.
    shift = np.linalg.norm(uv_to - uv_from, axis=1)
    if float(np.median(shift)) < _MIN_PARALLAX_PX:
        inliers = shift <= threshold_px
        return MotionEstimate(transform=Transform.identity(), inliers=inliers, variance=float(np.mean(shift[inliers] ** 2)))

    E, mask = cv2.findEssentialMat(uv_from, uv_to, K, method=cv2.RANSAC, prob=confidence, threshold=threshold_px)
    if E is None or mask is None:
        return _failed(n)
    # Several solutions may come back stacked; the first one has the most support.
    E = np.asarray(E, dtype=np.float64)[:3, :3]
    _n_good, R, t, pose_mask = cv2.recoverPose(E, uv_from, uv_to, K, mask=mask.copy())
    inliers = np.asarray(pose_mask).reshape(-1) > 0
    if not np.any(inliers):
        return _failed(n)

    if _rotation_parallax_px(K, R, uv_from[inliers], uv_to[inliers]) < _MIN_PARALLAX_PX:
        t = np.zeros((3,), dtype=np.float64)

    Kinv = np.linalg.inv(K)
    F = Kinv.T @ E @ Kinv
    variance = float(np.mean(_sampson_px2(F, uv_from[inliers], uv_to[inliers])))
    # recoverPose gives X_to = R X_from + t.
    pose = Transform(R, np.asarray(t, dtype=np.float64).reshape(3)).inverse()
    return MotionEstimate(transform=pose, inliers=inliers, variance=variance)


def estimate_3d2d(
    XYZ_from: np.ndarray,
    uv_to: np.ndarray,
    K: np.ndarray,
    dist: np.ndarray,
    threshold_px: float,
    iterations: int,
    guess: Transform | None = None,
    confidence: float = 0.99,
) -> MotionEstimate:
    """PnP-RANSAC of the "from" 3D points against the "to" image pixels."""
    XYZ_from = np.asarray(XYZ_from, dtype=np.float64).reshape(-1, 3)
    uv_to = np.asarray(uv_to, dtype=np.float64).reshape(-1, 2)
    n = XYZ_from.shape[0]
    if n < 4:
        return _failed(n)

    rvec0 = tvec0 = None
    if guess is not None:
        inv = guess.inverse()
        rvec0 = inv.rvec().reshape(3, 1)
        tvec0 = inv.t.reshape(3, 1).copy()
    ok, rvec, tvec, idx = cv2.solvePnPRansac(
        XYZ_from,
        uv_to,
        K,
        dist,
        rvec=rvec0,
        tvec=tvec0,
        useExtrinsicGuess=guess is not None,
        iterationsCount=int(iterations),
        reprojectionError=float(threshold_px),
        confidence=confidence,
        flags=cv2.SOLVEPNP_ITERATIVE,
    )
    if not ok or idx is None or len(idx) == 0:
        return _failed(n)

    inliers = np.zeros((n,), dtype=bool)
    inliers[np.asarray(idx, dtype=np.int64).reshape(-1)] = True
    proj, _ = cv2.projectPoints(XYZ_from[inliers], rvec, tvec, K, dist)
    err2 = np.sum((proj.reshape(-1, 2) - uv_to[inliers]) ** 2, axis=1)
    pose = Transform.from_rvec_tvec(rvec, tvec).inverse()
    return MotionEstimate(transform=pose, inliers=inliers, variance=float(np.mean(err2)))


def rigid_fit(src: np.ndarray, dst: np.ndarray) -> Transform:
    """Least-squares rigid transform with dst ~= R src + t (Kabsch)."""
    src = np.asarray(src, dtype=np.float64).reshape(-1, 3)
    dst = np.asarray(dst, dtype=np.float64).reshape(-1, 3)
    if src.shape != dst.shape or src.shape[0] < 3:
        raise ValueError("need >= 3 paired points")
    cs = src.mean(axis=0)
    cd = dst.mean(axis=0)
    rot, _rssd = Rot.align_vectors(dst - cd, src - cs)
    R = rot.as_matrix()
    return Transform(R, cd - R @ cs)


def _degenerate(P: np.ndarray) -> bool:
    return float(np.linalg.norm(np.cross(P[1] - P[0], P[2] - P[0]))) < 1e-9


def estimate_3d3d(
    XYZ_from: np.ndarray,
    XYZ_to: np.ndarray,
    inlier_distance: float,
    iterations: int,
    seed: int = 0,
) -> MotionEstimate:
    """
    RANSAC rigid alignment of paired 3D points (X_from = T X_to).

    The sampler is seeded so repeated calls on the same data agree.
    """
    XYZ_from = np.asarray(XYZ_from, dtype=np.float64).reshape(-1, 3)
    XYZ_to = np.asarray(XYZ_to, dtype=np.float64).reshape(-1, 3)
    n = XYZ_from.shape[0]
    if n < 3:
        return _failed(n)

    rng = np.random.default_rng(seed)
    best = np.zeros((n,), dtype=bool)
    for _ in range(int(iterations)):
        sample = rng.choice(n, size=3, replace=False)
        if _degenerate(XYZ_to[sample]) or _degenerate(XYZ_from[sample]):
            continue
        T = rigid_fit(XYZ_to[sample], XYZ_from[sample])
        err = np.linalg.norm(T.apply(XYZ_to) - XYZ_from, axis=1)
        inliers = err < inlier_distance
        if int(inliers.sum()) > int(best.sum()):
            best = inliers

    if int(best.sum()) < 3:
        return _failed(n)

    T = rigid_fit(XYZ_to[best], XYZ_from[best])
    err = np.linalg.norm(T.apply(XYZ_to) - XYZ_from, axis=1)
    inliers = err < inlier_distance
    if int(inliers.sum()) < 3:
        return _failed(n)
    return MotionEstimate(transform=T, inliers=inliers, variance=float(np.mean(err[inliers] ** 2)))
