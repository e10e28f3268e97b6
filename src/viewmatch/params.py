from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Literal, Mapping

from viewmatch.errors import UsageError

FeatureType = Literal["orb", "sift", "akaze", "brisk", "kaze"]
MatcherType = Literal["nndr_bruteforce", "nndr_flann", "crosscheck"]
EstimationType = Literal["3d3d", "3d2d", "2d2d"]

FEATURE_TYPES: tuple[str, ...] = ("orb", "sift", "akaze", "brisk", "kaze")
MATCHER_TYPES: tuple[str, ...] = ("nndr_bruteforce", "nndr_flann", "crosscheck")
RATIO_MATCHERS: tuple[str, ...] = ("nndr_bruteforce", "nndr_flann")
ESTIMATION_TYPES: tuple[str, ...] = ("3d3d", "3d2d", "2d2d")

ESTIMATION_LABELS = {"3d3d": "3D->3D", "3d2d": "3D->2D", "2d2d": "2D->2D"}


@dataclass(frozen=True)
class RegistrationParams:
    """
    Tuning of the feature-based registration.

    Built from a flat string mapping (see `parse_parameters`); every field has a
    default so an empty mapping is a valid configuration.
    """

    feature_type: FeatureType = "orb"
    max_features: int = 1000
    matcher: MatcherType = "nndr_bruteforce"
    nn_ratio: float = 0.8
    estimation_type: EstimationType = "3d2d"
    epipolar_uncertain: bool = False
    reproj_error: float = 2.0
    inlier_distance: float = 0.1
    min_inliers: int = 20
    ransac_iterations: int = 300
    max_depth: float = 0.0

    @property
    def is_ratio_matcher(self) -> bool:
        return self.matcher in RATIO_MATCHERS

    @property
    def estimation_label(self) -> str:
        return ESTIMATION_LABELS[self.estimation_type]

    def as_strings(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for k, v in asdict(self).items():
            out[k] = ("true" if v else "false") if isinstance(v, bool) else str(v)
        return out


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise UsageError(msg)


def _parse_bool(key: str, raw: str) -> bool:
    s = raw.strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise UsageError(f"{key} must be a boolean (got {raw!r})")


def _parse_number(key: str, raw: str, kind: type) -> float | int:
    try:
        return kind(raw.strip())
    except ValueError:
        raise UsageError(f"{key} must be {kind.__name__} (got {raw!r})") from None


def parse_parameters(mapping: Mapping[str, str], base: RegistrationParams | None = None) -> RegistrationParams:
    """
    Parse option name -> string value pairs on top of `base` (defaults if None).

    Unknown keys and malformed values raise `UsageError`.
    """
    base = base or RegistrationParams()
    known = {f.name: f for f in fields(RegistrationParams)}
    values = asdict(base)

    for key, raw in mapping.items():
        _require(key in known, f"unknown parameter: {key} (known: {', '.join(sorted(known))})")
        raw = str(raw)
        default = values[key]
        if isinstance(default, bool):
            values[key] = _parse_bool(key, raw)
        elif isinstance(default, int):
            values[key] = _parse_number(key, raw, int)
        elif isinstance(default, float):
            values[key] = _parse_number(key, raw, float)
        else:
            values[key] = raw.strip().lower()

    _require(values["feature_type"] in FEATURE_TYPES, f"feature_type must be one of {FEATURE_TYPES}")
    _require(values["matcher"] in MATCHER_TYPES, f"matcher must be one of {MATCHER_TYPES}")
    _require(values["estimation_type"] in ESTIMATION_TYPES, f"estimation_type must be one of {ESTIMATION_TYPES}")
    _require(0.0 < values["nn_ratio"] <= 1.0, "nn_ratio must be in (0, 1]")
    _require(values["reproj_error"] > 0.0, "reproj_error must be > 0")
    _require(values["inlier_distance"] > 0.0, "inlier_distance must be > 0")
    _require(values["max_features"] > 0, "max_features must be > 0")
    _require(values["min_inliers"] >= 4, "min_inliers must be >= 4")
    _require(values["ransac_iterations"] > 0, "ransac_iterations must be > 0")
    _require(values["max_depth"] >= 0.0, "max_depth must be >= 0")

    return RegistrationParams(**values)


def parse_assignments(items: list[str] | None) -> dict[str, str]:
    """Split `KEY=VALUE` command-line items into a mapping."""
    out: dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        _require(bool(sep) and bool(key.strip()), f"parameter must be KEY=VALUE (got {item!r})")
        out[key.strip()] = value
    return out
