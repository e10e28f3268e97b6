from __future__ import annotations

import pytest

from viewmatch.errors import UsageError
from viewmatch.params import RegistrationParams, parse_assignments, parse_parameters


def test_empty_mapping_gives_defaults() -> None:
    p = parse_parameters({})
    assert p == RegistrationParams()
    assert p.feature_type == "orb"
    assert p.estimation_type == "3d2d"
    assert p.is_ratio_matcher
    assert p.estimation_label == "3D->2D"


def test_values_are_parsed_by_field_type() -> None:
    p = parse_parameters(
        {
            "feature_type": "SIFT",
            "max_features": "500",
            "matcher": "crosscheck",
            "epipolar_uncertain": "yes",
            "reproj_error": "1.5",
            "min_inliers": "8",
        }
    )
    assert p.feature_type == "sift"
    assert p.max_features == 500
    assert p.matcher == "crosscheck"
    assert not p.is_ratio_matcher
    assert p.epipolar_uncertain is True
    assert p.reproj_error == pytest.approx(1.5)
    assert p.min_inliers == 8


def test_base_is_overridden_not_reset() -> None:
    base = parse_parameters({"nn_ratio": "0.6"})
    p = parse_parameters({"estimation_type": "2d2d"}, base=base)
    assert p.nn_ratio == pytest.approx(0.6)
    assert p.estimation_type == "2d2d"


@pytest.mark.parametrize(
    "mapping",
    [
        {"no_such_key": "1"},
        {"max_features": "many"},
        {"epipolar_uncertain": "maybe"},
        {"feature_type": "surf"},
        {"matcher": "nearest"},
        {"estimation_type": "3d"},
        {"nn_ratio": "1.5"},
        {"min_inliers": "3"},
        {"reproj_error": "0"},
        {"max_depth": "-1"},
    ],
)
def test_invalid_values_raise_usage_error(mapping: dict[str, str]) -> None:
    with pytest.raises(UsageError):
        parse_parameters(mapping)


def test_usage_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_parameters({"nn_ratio": "x"})


def test_as_strings_round_trips() -> None:
    p = parse_parameters({"epipolar_uncertain": "true", "max_depth": "4.5"})
    assert parse_parameters(p.as_strings()) == p
    assert p.as_strings()["epipolar_uncertain"] == "true"


def test_parse_assignments() -> None:
    assert parse_assignments(["a=1", " b = x=y"]) == {"a": "1", "b": " x=y"}
    assert parse_assignments(None) == {}
    with pytest.raises(UsageError):
        parse_assignments(["novalue"])
    with pytest.raises(UsageError):
        parse_assignments(["=1"])
