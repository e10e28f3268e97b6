from __future__ import annotations

import logging

import numpy as np

from viewmatch.core.image_io import to_gray_u8
from viewmatch.core.transform import Transform
from viewmatch.observation import Observation
from viewmatch.params import RegistrationParams
from viewmatch.registration.depth import keypoints_3d
from viewmatch.registration.features import DETECTOR_LABELS, detect_features, keypoints_to_array
from viewmatch.registration.matching import create_matcher
from viewmatch.registration.motion import (
    MotionEstimate,
    estimate_2d2d,
    estimate_3d2d,
    estimate_3d3d,
    undistort_pixels,
)
from viewmatch.registration.result import Feature, RegistrationResult

logger = logging.getLogger(__name__)


def _features(keypoints: list, ids: np.ndarray) -> tuple[Feature, ...]:
    return tuple(
        Feature(id=int(i), x=float(kp.pt[0]), y=float(kp.pt[1]), size=float(kp.size))
        for kp, i in zip(keypoints, ids.tolist())
    )


def _assign_ids(n_from: int, n_to: int, pairs: list[tuple[int, int]]) -> tuple[np.ndarray, np.ndarray]:
    """
    Matched pair k gets id k+1 in both views; unmatched features get unique
    negative ids.
    """
    ids_from = -np.arange(1, n_from + 1, dtype=np.int64)
    ids_to = -np.arange(1, n_to + 1, dtype=np.int64)
    for k, (i, j) in enumerate(pairs):
        ids_from[i] = k + 1
        ids_to[j] = k + 1
    return ids_from, ids_to


class FeatureRegistration:
    """
    Feature-based motion estimation between two observations.

    Detects and matches keypoints, then estimates the pose of `obs_to` in the
    frame of `obs_from` with the configured estimation type. Estimation
    failures are returned as a result with `transform=None`, never raised.
    """

    def __init__(self, params: RegistrationParams | None = None) -> None:
        self.params = params or RegistrationParams()
        self.matcher = create_matcher(self.params)

    @property
    def detector_name(self) -> str:
        return DETECTOR_LABELS[self.params.feature_type]

    def _effective_type(self, obs_from: Observation, obs_to: Observation) -> str:
        wanted = self.params.estimation_type
        if wanted == "3d3d" and not obs_to.has_depth:
            logger.warning("3D->3D estimation needs depth on both sides, falling back to 3D->2D")
            wanted = "3d2d"
        if wanted in ("3d3d", "3d2d") and not obs_from.has_depth:
            logger.warning("%s estimation needs depth on the first image, falling back to 2D->2D", wanted)
            wanted = "2d2d"
        return wanted

    def compute_transformation(
        self,
        obs_from: Observation,
        obs_to: Observation,
        guess: Transform | None = None,
    ) -> RegistrationResult:
        p = self.params
        kp_from, desc_from = detect_features(to_gray_u8(obs_from.image), p.feature_type, p.max_features)
        kp_to, desc_to = detect_features(to_gray_u8(obs_to.image), p.feature_type, p.max_features)
        pairs = self.matcher.match(desc_from, desc_to) if desc_from is not None and desc_to is not None else []
        logger.debug("features from=%d to=%d matches=%d", len(kp_from), len(kp_to), len(pairs))

        ids_from, ids_to = _assign_ids(len(kp_from), len(kp_to), pairs)
        estimation_type = self._effective_type(obs_from, obs_to)

        idx_from = np.asarray([i for i, _j in pairs], dtype=np.int64)
        idx_to = np.asarray([j for _i, j in pairs], dtype=np.int64)
        uv_from = keypoints_to_array(kp_from)[idx_from] if pairs else np.zeros((0, 2))
        uv_to = keypoints_to_array(kp_to)[idx_to] if pairs else np.zeros((0, 2))
        pair_ids = np.arange(1, len(pairs) + 1, dtype=np.int64)

        estimate, used = self._estimate(estimation_type, obs_from, obs_to, uv_from, uv_to, guess)
        inlier_ids = frozenset(int(i) for i in pair_ids[used][estimate.inliers].tolist())

        transform = estimate.transform
        rejected = ""
        if transform is None:
            rejected = f"Not enough matches/inliers to estimate motion ({len(pairs)} matches)"
        elif len(inlier_ids) < p.min_inliers:
            rejected = f"Not enough inliers {len(inlier_ids)} < {p.min_inliers}"
            transform = None
        if rejected:
            logger.info(rejected)

        variance = estimate.variance
        if estimation_type == "2d2d" and p.epipolar_uncertain:
            variance = 1.0

        return RegistrationResult(
            transform=transform,
            matches=len(pairs),
            inliers=len(inlier_ids),
            inlier_ids=inlier_ids,
            estimation_type=estimation_type,
            detector=self.detector_name,
            matcher=p.matcher,
            nn_ratio=p.nn_ratio if p.is_ratio_matcher else None,
            features_from=_features(kp_from, ids_from),
            features_to=_features(kp_to, ids_to),
            variance=float(variance) if np.isfinite(variance) else 1.0,
            rejected_msg=rejected,
        )

    def _estimate(
        self,
        estimation_type: str,
        obs_from: Observation,
        obs_to: Observation,
        uv_from: np.ndarray,
        uv_to: np.ndarray,
        guess: Transform | None,
    ) -> tuple[MotionEstimate, np.ndarray]:
        """Run the solver; also returns which matched pairs were fed to it."""
        p = self.params
        cam = obs_from.camera
        n = uv_from.shape[0]

        if estimation_type == "2d2d":
            K = cam.K()
            a = undistort_pixels(uv_from, K, cam.dist())
            b = undistort_pixels(uv_to, obs_to.camera.K(), obs_to.camera.dist())
            return estimate_2d2d(a, b, K, p.reproj_error), np.ones((n,), dtype=bool)

        XYZ_from = keypoints_3d(obs_from, uv_from, p.max_depth)
        valid = np.all(np.isfinite(XYZ_from), axis=1)

        if estimation_type == "3d2d":
            cam_to = obs_to.camera
            est = estimate_3d2d(
                XYZ_from[valid], uv_to[valid], cam_to.K(), cam_to.dist(), p.reproj_error, p.ransac_iterations, guess
            )
            return est, valid

        XYZ_to = keypoints_3d(obs_to, uv_to, p.max_depth)
        valid &= np.all(np.isfinite(XYZ_to), axis=1)
        est = estimate_3d3d(XYZ_from[valid], XYZ_to[valid], p.inlier_distance, p.ransac_iterations)
        return est, valid
