from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from viewmatch.core.transform import Transform

if TYPE_CHECKING:
    from viewmatch.observation import Observation


@dataclass(frozen=True)
class Feature:
    """
    A detected keypoint. `id > 0` marks a feature matched across both views
    (the same id in both lists); unmatched features carry ids <= 0.
    """

    id: int
    x: float
    y: float
    size: float = 1.0

    @property
    def center(self) -> tuple[float, float]:
        return float(self.x), float(self.y)

    @property
    def rect(self) -> tuple[float, float, float, float]:
        """Bounding square (x, y, w, h) centered on the keypoint."""
        s = float(self.size)
        return float(self.x) - s / 2.0, float(self.y) - s / 2.0, s, s


@dataclass(frozen=True, eq=False)
class RegistrationResult:
    transform: Transform | None
    matches: int
    inliers: int
    inlier_ids: frozenset[int]
    estimation_type: str
    detector: str
    matcher: str
    nn_ratio: float | None = None
    features_from: tuple[Feature, ...] = ()
    features_to: tuple[Feature, ...] = ()
    variance: float = 1.0
    rejected_msg: str = ""

    @property
    def ok(self) -> bool:
        return self.transform is not None


class Registration(Protocol):
    """Anything that estimates the motion between two observations."""

    def compute_transformation(
        self,
        obs_from: "Observation",
        obs_to: "Observation",
        guess: Transform | None = None,
    ) -> RegistrationResult: ...
