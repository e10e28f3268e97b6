from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np

from viewmatch.params import RegistrationParams
from viewmatch.registration.features import descriptor_norm

MATCHER_LABELS = {
    "nndr_bruteforce": "NNDR/BruteForce",
    "nndr_flann": "NNDR/FLANN",
    "crosscheck": "BFCrossCheck",
}

# FLANN index ids (cv2.flann has no Python constants for them).
_FLANN_INDEX_KDTREE = 1
_FLANN_INDEX_LSH = 6


class Matcher(Protocol):
    name: str

    def match(self, desc_from: np.ndarray, desc_to: np.ndarray) -> list[tuple[int, int]]: ...


def _unique_targets(pairs: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Drop every pair whose "to" feature was claimed by more than one "from" feature."""
    counts = Counter(j for _i, j in pairs)
    return [(i, j) for i, j in pairs if counts[j] == 1]


@dataclass(frozen=True)
class RatioTestMatcher:
    """Nearest-neighbor matching filtered by the distance ratio to the second neighbor."""

    norm: int
    ratio: float = 0.8
    use_flann: bool = False
    name: str = "nndr_bruteforce"

    def _knn(self, desc_from: np.ndarray, desc_to: np.ndarray):
        if not self.use_flann:
            return cv2.BFMatcher(self.norm, crossCheck=False).knnMatch(desc_from, desc_to, k=2)
        if self.norm == cv2.NORM_HAMMING:
            index = dict(algorithm=_FLANN_INDEX_LSH, table_number=6, key_size=12, multi_probe_level=1)
        else:
            index = dict(algorithm=_FLANN_INDEX_KDTREE, trees=4)
            desc_from = np.asarray(desc_from, dtype=np.float32)
            desc_to = np.asarray(desc_to, dtype=np.float32)
        flann = cv2.FlannBasedMatcher(index, dict(checks=32))
        return flann.knnMatch(desc_from, desc_to, k=2)

    def match(self, desc_from: np.ndarray, desc_to: np.ndarray) -> list[tuple[int, int]]:
        if desc_from is None or desc_to is None or len(desc_from) == 0 or len(desc_to) < 2:
            return []
        pairs: list[tuple[int, int]] = []
        for nn in self._knn(desc_from, desc_to):
            if len(nn) < 2:
                continue
            best, second = nn[0], nn[1]
            if best.distance <= self.ratio * second.distance:
                pairs.append((int(best.queryIdx), int(best.trainIdx)))
        return _unique_targets(pairs)


@dataclass(frozen=True)
class CrossCheckMatcher:
    """Brute-force matches kept only when each descriptor is the other's nearest neighbor."""

    norm: int
    name: str = "crosscheck"

    def match(self, desc_from: np.ndarray, desc_to: np.ndarray) -> list[tuple[int, int]]:
        if desc_from is None or desc_to is None or len(desc_from) == 0 or len(desc_to) == 0:
            return []
        matches = cv2.BFMatcher(self.norm, crossCheck=True).match(desc_from, desc_to)
        matches = sorted(matches, key=lambda m: (m.queryIdx, m.trainIdx))
        return [(int(m.queryIdx), int(m.trainIdx)) for m in matches]


def create_matcher(params: RegistrationParams) -> Matcher:
    norm = descriptor_norm(params.feature_type)
    if params.matcher == "nndr_bruteforce":
        return RatioTestMatcher(norm=norm, ratio=params.nn_ratio, use_flann=False, name=params.matcher)
    if params.matcher == "nndr_flann":
        return RatioTestMatcher(norm=norm, ratio=params.nn_ratio, use_flann=True, name=params.matcher)
    if params.matcher == "crosscheck":
        return CrossCheckMatcher(norm=norm)
    raise ValueError(f"unknown matcher: {params.matcher}")
