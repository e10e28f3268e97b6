from __future__ import annotations

import cv2
import numpy as np

from viewmatch.core.camera import CameraModel, StereoCameraModel
from viewmatch.core.image_io import depth_to_meters, to_gray_u8
from viewmatch.observation import Observation

_LK_WIN = (21, 21)
_LK_LEVELS = 3
# Rectified pairs: the right match must stay on (almost) the same row.
_MAX_ROW_DRIFT_PX = 1.0


def _sample_depth(depth_m: np.ndarray, uv_px: np.ndarray, image_size: tuple[int, int]) -> np.ndarray:
    """Nearest-pixel depth lookup; depth maps may be decimated w.r.t. the color image."""
    w, h = image_size
    dh, dw = depth_m.shape[:2]
    sx = dw / float(w)
    sy = dh / float(h)
    u = np.round(uv_px[:, 0] * sx).astype(np.int64)
    v = np.round(uv_px[:, 1] * sy).astype(np.int64)
    inside = (u >= 0) & (u < dw) & (v >= 0) & (v < dh)
    z = np.zeros((uv_px.shape[0],), dtype=np.float64)
    z[inside] = depth_m[v[inside], u[inside]]
    return z


def _stereo_depth(obs: Observation, stereo: StereoCameraModel, uv_px: np.ndarray) -> np.ndarray:
    left = to_gray_u8(obs.image)
    right = to_gray_u8(obs.depth_or_right)
    pts = np.asarray(uv_px, dtype=np.float32).reshape(-1, 1, 2)
    if pts.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)
    right_pts, status, _err = cv2.calcOpticalFlowPyrLK(left, right, pts, None, winSize=_LK_WIN, maxLevel=_LK_LEVELS)
    right_pts = right_pts.reshape(-1, 2).astype(np.float64)
    ok = status.reshape(-1).astype(bool)
    disparity = uv_px[:, 0] - right_pts[:, 0]
    ok &= np.abs(uv_px[:, 1] - right_pts[:, 1]) <= _MAX_ROW_DRIFT_PX
    disparity = np.where(ok, disparity, 0.0)
    return stereo.disparity_to_depth(disparity)


def keypoints_3d(obs: Observation, uv_px: np.ndarray, max_depth: float = 0.0) -> np.ndarray:
    """
    3D points (N,3) in the optical frame of `obs` for pixel positions `uv_px`.

    Points without valid depth are NaN. `max_depth` > 0 discards farther points.
    """
    uv_px = np.asarray(uv_px, dtype=np.float64).reshape(-1, 2)
    out = np.full((uv_px.shape[0], 3), np.nan, dtype=np.float64)
    if obs.depth_or_right is None or uv_px.shape[0] == 0:
        return out

    cam: CameraModel = obs.camera
    if isinstance(obs.calibration, StereoCameraModel):
        z = _stereo_depth(obs, obs.calibration, uv_px)
    else:
        z = _sample_depth(depth_to_meters(obs.depth_or_right), uv_px, (obs.width_px, obs.height_px))

    good = np.isfinite(z) & (z > 0.0)
    if max_depth > 0.0:
        good &= z <= max_depth
    out[good] = cam.back_project(uv_px[good], z[good])
    return out


def stereo_disparity(obs: Observation, num_disparities: int = 64, block_size: int = 5) -> np.ndarray:
    """Dense disparity (px, float32) of a stereo observation with semi-global matching."""
    left = to_gray_u8(obs.image)
    right = to_gray_u8(obs.depth_or_right)
    sgbm = cv2.StereoSGBM_create(
        minDisparity=0,
        numDisparities=int(num_disparities),
        blockSize=int(block_size),
        P1=8 * block_size * block_size,
        P2=32 * block_size * block_size,
    )
    return sgbm.compute(left, right).astype(np.float32) / 16.0


def observation_depth_m(obs: Observation) -> np.ndarray | None:
    """Dense metric depth aligned with the color image, or None without depth input."""
    if obs.depth_or_right is None:
        return None
    if isinstance(obs.calibration, StereoCameraModel):
        return obs.calibration.disparity_to_depth(stereo_disparity(obs)).astype(np.float32)
    depth = depth_to_meters(obs.depth_or_right)
    if depth.shape[:2] != obs.image.shape[:2]:
        depth = cv2.resize(depth, (obs.width_px, obs.height_px), interpolation=cv2.INTER_NEAREST)
    return depth


def observation_cloud(obs: Observation, decimation: int = 4, max_depth: float = 0.0) -> tuple[np.ndarray, np.ndarray]:
    """
    Colored point cloud of an observation: (XYZ (N,3) metres, RGB (N,3) in [0,1]).

    Empty arrays when the observation carries no depth.
    """
    depth = observation_depth_m(obs)
    if depth is None:
        return np.zeros((0, 3), dtype=np.float64), np.zeros((0, 3), dtype=np.float64)
    step = max(1, int(decimation))
    vv, uu = np.mgrid[0 : obs.height_px : step, 0 : obs.width_px : step]
    z = depth[vv, uu].astype(np.float64).reshape(-1)
    uv = np.stack([uu.reshape(-1), vv.reshape(-1)], axis=-1).astype(np.float64)
    good = np.isfinite(z) & (z > 0.0)
    if max_depth > 0.0:
        good &= z <= max_depth
    XYZ = obs.camera.back_project(uv[good], z[good])
    image = obs.image if obs.image.ndim == 3 else cv2.cvtColor(obs.image, cv2.COLOR_GRAY2BGR)
    bgr = image[vv, uu, :3].reshape(-1, 3)[good]
    rgb = bgr[:, ::-1].astype(np.float64) / 255.0
    return XYZ, rgb
