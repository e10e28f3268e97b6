from __future__ import annotations

import numpy as np
import pytest

from viewmatch.core.transform import Transform


def test_identity() -> None:
    T = Transform.identity()
    assert T.is_identity()
    assert T.rotation_angle() == pytest.approx(0.0)
    assert T.pretty().startswith("xyz=[0.000000 0.000000 0.000000] rpy=[")


def test_inverse_and_composition() -> None:
    T = Transform.from_xyz_rpy(0.3, -0.1, 1.2, 0.05, -0.2, 0.4)
    assert (T @ T.inverse()).is_identity(atol=1e-12)
    assert (T.inverse() @ T).is_identity(atol=1e-12)
    P = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 2.0]])
    assert np.allclose(T.inverse().apply(T.apply(P)), P)


def test_matrix_round_trip() -> None:
    T = Transform.from_xyz_rpy(1.0, 2.0, 3.0, 0.1, 0.2, 0.3)
    T2 = Transform.from_matrix(T.matrix())
    assert np.allclose(T2.R, T.R)
    assert np.allclose(T2.t, T.t)
    assert T2.rpy() == pytest.approx((0.1, 0.2, 0.3))


def test_rvec_tvec() -> None:
    T = Transform.from_rvec_tvec(np.array([0.0, 0.0, np.pi / 2]), np.array([1.0, 0.0, 0.0]))
    assert np.allclose(T.apply(np.array([1.0, 0.0, 0.0])), [[1.0, 1.0, 0.0]])
    assert T.rotation_angle() == pytest.approx(np.pi / 2)
    assert T.translation_norm() == pytest.approx(1.0)


def test_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        Transform(np.eye(3), np.array([np.nan, 0.0, 0.0]))
    with pytest.raises(ValueError):
        Transform.from_matrix(np.eye(3))
