from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from viewmatch.core.camera import CameraModel, StereoCameraModel


@dataclass(frozen=True, eq=False)
class Observation:
    """
    One calibrated snapshot fed to registration.

    `depth_or_right` is a depth map for mono calibrations and the rectified right
    image for stereo calibrations.
    """

    id: int
    image: np.ndarray  # (H,W,3) uint8 BGR
    depth_or_right: np.ndarray | None
    calibration: CameraModel | StereoCameraModel

    @property
    def is_stereo(self) -> bool:
        return isinstance(self.calibration, StereoCameraModel)

    @property
    def has_depth(self) -> bool:
        return self.depth_or_right is not None

    @property
    def camera(self) -> CameraModel:
        """Camera of the color image (left camera for stereo)."""
        if isinstance(self.calibration, StereoCameraModel):
            return self.calibration.left
        return self.calibration

    @property
    def width_px(self) -> int:
        return int(self.image.shape[1])

    @property
    def height_px(self) -> int:
        return int(self.image.shape[0])


def build_observation(
    obs_id: int,
    image: np.ndarray,
    depth_or_right: np.ndarray | None,
    calibration: CameraModel | StereoCameraModel,
) -> Observation:
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("image must not be empty")
    return Observation(id=int(obs_id), image=image, depth_or_right=depth_or_right, calibration=calibration)


def build_observations(
    image_from: np.ndarray,
    image_to: np.ndarray,
    depth_from: np.ndarray | None,
    depth_to: np.ndarray | None,
    calibration: CameraModel | StereoCameraModel,
) -> tuple[Observation, Observation]:
    """Both views share the same calibration; ids are 1 (from) and 2 (to)."""
    return (
        build_observation(1, image_from, depth_from, calibration),
        build_observation(2, image_to, depth_to, calibration),
    )
