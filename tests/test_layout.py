from __future__ import annotations

import pytest

from viewmatch.registration.result import Feature
from viewmatch.viz.layout import (
    CANDIDATE_COLOR,
    FEATURE_COLOR,
    MATCH_COLOR,
    CanvasFrame,
    ViewCanvas,
    choose_orientation,
    eligible_ids,
    feature_colors,
    fit_scale,
    layout_correspondences,
    layout_frames,
    map_point,
)


def _to_layout(point: tuple[float, float], frame: CanvasFrame) -> tuple[float, float]:
    return point[0] * frame.scale + frame.origin[0], point[1] * frame.scale + frame.origin[1]


def test_orientation_from_first_image() -> None:
    assert choose_orientation(640, 480) == "vertical"
    assert choose_orientation(480, 640) == "horizontal"
    assert choose_orientation(500, 500) == "horizontal"


def test_fit_scale_keeps_aspect() -> None:
    assert fit_scale(640, 480, 320, 320) == pytest.approx(0.5)
    assert fit_scale(480, 640, 320, 320) == pytest.approx(0.5)
    with pytest.raises(ValueError):
        fit_scale(0, 480, 320, 320)


def test_map_point_identity_for_shared_canvas() -> None:
    frame = CanvasFrame(scale=1.0)
    for p in [(0.0, 0.0), (12.5, 3.25), (639.0, 479.0)]:
        assert map_point(p, frame, frame) == p


def test_vertical_offsets() -> None:
    a = ViewCanvas(640.0, 480.0, 1.0)
    b = ViewCanvas(640.0, 480.0, 0.5)
    fa, fb = layout_frames(a, b, "vertical")
    assert fb.origin == (0.0, 480.0)
    # B point in A space: pB * (sB/sA) + A height / sA.
    assert map_point((10.0, 20.0), fb, fa) == pytest.approx((5.0, 490.0))
    # A point in B space: pA * (sA/sB) - A height / sB.
    assert map_point((5.0, 490.0), fa, fb) == pytest.approx((10.0, 20.0))


def test_horizontal_offsets() -> None:
    a = ViewCanvas(480.0, 640.0, 2.0)
    b = ViewCanvas(480.0, 640.0, 1.0)
    fa, fb = layout_frames(a, b, "horizontal")
    assert fb.origin == (480.0, 0.0)
    assert map_point((10.0, 20.0), fb, fa) == pytest.approx((245.0, 10.0))


def test_layout_frames_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        layout_frames(ViewCanvas(1.0, 1.0, 0.0), ViewCanvas(1.0, 1.0, 1.0), "vertical")
    with pytest.raises(ValueError):
        layout_frames(ViewCanvas(1.0, 1.0, 1.0), ViewCanvas(1.0, 1.0, 1.0), "diagonal")  # type: ignore[arg-type]


def test_only_unambiguous_positive_ids_are_correspondences() -> None:
    features_a = [Feature(1, 1, 1), Feature(2, 2, 2), Feature(2, 3, 3), Feature(3, 4, 4), Feature(0, 5, 5), Feature(-1, 6, 6)]
    features_b = [Feature(1, 1, 1), Feature(2, 2, 2), Feature(4, 4, 4), Feature(0, 5, 5), Feature(-1, 6, 6)]
    assert eligible_ids(features_a, features_b) == [1]

    lines = layout_correspondences(
        ViewCanvas(100.0, 100.0, 1.0, tuple(features_a)),
        ViewCanvas(100.0, 100.0, 1.0, tuple(features_b)),
        inlier_ids={1, 2, 3},
        orientation="vertical",
    )
    assert [ln.id for ln in lines] == [1]


def test_segments_meet_in_the_shared_layout() -> None:
    features_a = tuple(Feature(i, 10.0 * i, 5.0 * i) for i in range(1, 6))
    features_b = tuple(Feature(i, 7.0 * i + 3.0, 2.0 * i) for i in range(1, 6))
    for orientation in ("vertical", "horizontal"):
        a = ViewCanvas(320.0, 240.0, 0.8, features_a)
        b = ViewCanvas(320.0, 240.0, 0.3, features_b)
        fa, fb = layout_frames(a, b, orientation)
        for ln in layout_correspondences(a, b, {2, 4}, orientation):
            # A's segment ends where B's feature is drawn, and vice versa.
            assert _to_layout(ln.line_a[1], fa) == pytest.approx(_to_layout(ln.line_b[1], fb))
            assert _to_layout(ln.line_b[0], fb) == pytest.approx(_to_layout(ln.line_a[0], fa))


def test_colors_and_idempotence() -> None:
    features_a = (Feature(1, 1, 1), Feature(2, 2, 2), Feature(-1, 3, 3))
    features_b = (Feature(2, 20, 20), Feature(1, 10, 10), Feature(-2, 30, 30))
    a = ViewCanvas(64.0, 48.0, 1.0, features_a)
    b = ViewCanvas(64.0, 48.0, 2.0, features_b)

    first = layout_correspondences(a, b, frozenset({2}), "vertical")
    second = layout_correspondences(a, b, frozenset({2}), "vertical")
    assert first == second

    by_id = {ln.id: ln for ln in first}
    assert by_id[2].inlier and by_id[2].color == MATCH_COLOR
    assert not by_id[1].inlier and by_id[1].color == CANDIDATE_COLOR
    assert feature_colors(features_b, first) == [MATCH_COLOR, CANDIDATE_COLOR, FEATURE_COLOR]
