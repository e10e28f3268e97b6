from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class CameraModel:
    """
    Pinhole intrinsics with optional Brown distortion (OpenCV order k1,k2,p1,p2,k3).

    Pixel convention follows OpenCV: origin at the center of the top-left pixel,
    x right, y down. The optical frame is x right, y down, z forward.
    """

    fx: float
    fy: float
    cx: float
    cy: float
    width_px: int = 0
    height_px: int = 0
    dist_coeffs: tuple[float, ...] = ()

    def is_valid_for_projection(self) -> bool:
        return (
            self.fx > 0.0
            and self.fy > 0.0
            and self.cx > 0.0
            and self.cy > 0.0
            and self.width_px > 0
            and self.height_px > 0
        )

    @property
    def image_size(self) -> tuple[int, int]:
        return int(self.width_px), int(self.height_px)

    def K(self) -> np.ndarray:
        return np.array(
            [[float(self.fx), 0.0, float(self.cx)], [0.0, float(self.fy), float(self.cy)], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    def dist(self) -> np.ndarray:
        d = np.zeros((5,), dtype=np.float64)
        coeffs = np.asarray(self.dist_coeffs, dtype=np.float64).reshape(-1)[:5]
        d[: coeffs.size] = coeffs
        return d

    def back_project(self, uv_px: np.ndarray, depth_m: np.ndarray) -> np.ndarray:
        """
        Lift pixels with metric depth to 3D points (N,3) in the optical frame.

        Distortion is ignored: depth images are expected to be registered to the
        rectified color image.
        """
        uv_px = np.asarray(uv_px, dtype=np.float64).reshape(-1, 2)
        z = np.asarray(depth_m, dtype=np.float64).reshape(-1)
        x = (uv_px[:, 0] - self.cx) * z / self.fx
        y = (uv_px[:, 1] - self.cy) * z / self.fy
        return np.stack([x, y, z], axis=-1)

    def project(self, XYZ: np.ndarray) -> np.ndarray:
        XYZ = np.asarray(XYZ, dtype=np.float64).reshape(-1, 3)
        uv = np.full((XYZ.shape[0], 2), np.nan, dtype=np.float64)
        Z = XYZ[:, 2]
        good = np.isfinite(Z) & (Z > 1e-12)
        uv[good, 0] = self.fx * XYZ[good, 0] / Z[good] + self.cx
        uv[good, 1] = self.fy * XYZ[good, 1] / Z[good] + self.cy
        return uv


@dataclass(frozen=True)
class StereoCameraModel:
    """
    Rectified stereo pair. The right camera sits `baseline_m` along +x of the left one.
    """

    left: CameraModel
    right: CameraModel
    baseline_m: float

    def is_valid_for_projection(self) -> bool:
        return self.left.is_valid_for_projection() and self.right.is_valid_for_projection() and self.baseline_m > 0.0

    def disparity_to_depth(self, disparity_px: np.ndarray) -> np.ndarray:
        d = np.asarray(disparity_px, dtype=np.float64)
        depth = np.zeros_like(d)
        good = np.isfinite(d) & (d > 0.0)
        depth[good] = self.left.fx * self.baseline_m / d[good]
        return depth


def fake_camera_model(width_px: int, height_px: int) -> CameraModel:
    """
    Heuristic intrinsics from the image size only (~90 degrees horizontal FOV).
    """
    w, h = int(width_px), int(height_px)
    if w <= 0 or h <= 0:
        raise ValueError("image size must be > 0")
    f = w / 2.0
    return CameraModel(fx=f, fy=f, cx=w / 2.0, cy=h / 2.0, width_px=w, height_px=h)
