from __future__ import annotations

import cv2
import numpy as np

DETECTOR_LABELS = {"orb": "ORB", "sift": "SIFT", "akaze": "AKAZE", "brisk": "BRISK", "kaze": "KAZE"}

# Detectors producing binary descriptors are matched with Hamming distance.
_BINARY = ("orb", "akaze", "brisk")


def create_detector(feature_type: str, max_features: int = 1000):
    feature_type = str(feature_type).lower()
    if feature_type == "orb":
        return cv2.ORB_create(nfeatures=int(max_features))
    if feature_type == "sift":
        return cv2.SIFT_create(nfeatures=int(max_features))
    if feature_type == "akaze":
        return cv2.AKAZE_create()
    if feature_type == "brisk":
        return cv2.BRISK_create()
    if feature_type == "kaze":
        return cv2.KAZE_create()
    raise ValueError(f"unknown feature_type: {feature_type}")


def descriptor_norm(feature_type: str) -> int:
    return cv2.NORM_HAMMING if str(feature_type).lower() in _BINARY else cv2.NORM_L2


def detect_features(
    gray: np.ndarray,
    feature_type: str,
    max_features: int = 1000,
    mask: np.ndarray | None = None,
) -> tuple[list, np.ndarray | None]:
    """
    Detect keypoints and descriptors on a gray uint8 image.

    Detectors without a feature budget (AKAZE, BRISK, KAZE) are trimmed to the
    `max_features` strongest responses.
    """
    detector = create_detector(feature_type, max_features)
    keypoints, descriptors = detector.detectAndCompute(gray, mask)
    keypoints = list(keypoints)
    if descriptors is None or not keypoints:
        return [], None
    if len(keypoints) > max_features:
        order = np.argsort([-kp.response for kp in keypoints], kind="stable")[:max_features]
        keypoints = [keypoints[i] for i in order]
        descriptors = descriptors[order]
    return keypoints, descriptors


def keypoints_to_array(keypoints: list) -> np.ndarray:
    if not keypoints:
        return np.zeros((0, 2), dtype=np.float64)
    return np.asarray([kp.pt for kp in keypoints], dtype=np.float64).reshape(-1, 2)
