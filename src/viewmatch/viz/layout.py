"""
Geometry of correspondence lines between two image canvases.

Inlier correspondences are drawn magenta (`MATCH_COLOR`), matched features that
are not inliers cyan (`CANDIDATE_COLOR`) and unmatched features yellow
(`FEATURE_COLOR`).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Literal

from viewmatch.registration.result import Feature

Orientation = Literal["vertical", "horizontal"]
Point = tuple[float, float]
Segment = tuple[Point, Point]
Color = tuple[float, float, float, float]

MATCH_COLOR: Color = (1.0, 0.0, 1.0, 1.0)
CANDIDATE_COLOR: Color = (0.0, 1.0, 1.0, 1.0)
FEATURE_COLOR: Color = (1.0, 1.0, 0.0, 1.0)


@dataclass(frozen=True)
class ViewCanvas:
    """
    One image pane: its rendered size in layout pixels, its zoom (layout pixels
    per image pixel) and the features drawn on it (image pixels).
    """

    width_px: float
    height_px: float
    scale: float
    features: tuple[Feature, ...] = ()


@dataclass(frozen=True)
class CanvasFrame:
    """
    Local coordinate system of a canvas: image pixels, zoomed by `scale`, with the
    image origin placed at `origin` in the shared layout (layout pixels).
    """

    scale: float
    origin: Point = (0.0, 0.0)
    orientation: Orientation = "vertical"


@dataclass(frozen=True)
class CorrespondenceLines:
    id: int
    inlier: bool
    color: Color
    line_a: Segment  # in canvas A image coordinates
    line_b: Segment  # in canvas B image coordinates


def choose_orientation(width_px: int, height_px: int) -> Orientation:
    """Wide images are stacked vertically, tall or square ones side by side."""
    return "vertical" if width_px > height_px else "horizontal"


def fit_scale(image_w: float, image_h: float, canvas_w: float, canvas_h: float) -> float:
    """Zoom that fits an image inside a canvas while keeping its aspect ratio."""
    if image_w <= 0 or image_h <= 0:
        raise ValueError("image size must be > 0")
    return min(float(canvas_w) / float(image_w), float(canvas_h) / float(image_h))


def layout_frames(canvas_a: ViewCanvas, canvas_b: ViewCanvas, orientation: Orientation) -> tuple[CanvasFrame, CanvasFrame]:
    """
    Canvas A sits at the layout origin; canvas B follows it below (vertical) or
    to the right (horizontal).
    """
    if canvas_a.scale <= 0 or canvas_b.scale <= 0:
        raise ValueError("canvas scales must be > 0")
    if orientation == "vertical":
        origin_b = (0.0, float(canvas_a.height_px))
    elif orientation == "horizontal":
        origin_b = (float(canvas_a.width_px), 0.0)
    else:
        raise ValueError(f"unknown orientation: {orientation}")
    return (
        CanvasFrame(scale=float(canvas_a.scale), origin=(0.0, 0.0), orientation=orientation),
        CanvasFrame(scale=float(canvas_b.scale), origin=origin_b, orientation=orientation),
    )


def map_point(point: Point, from_frame: CanvasFrame, to_frame: CanvasFrame) -> Point:
    """Express an image point of one canvas in the image coordinates of another."""
    x = (float(point[0]) * from_frame.scale + from_frame.origin[0] - to_frame.origin[0]) / to_frame.scale
    y = (float(point[1]) * from_frame.scale + from_frame.origin[1] - to_frame.origin[1]) / to_frame.scale
    return x, y


def _first_by_id(features: Iterable[Feature]) -> dict[int, Feature]:
    out: dict[int, Feature] = {}
    for f in features:
        out.setdefault(int(f.id), f)
    return out


def eligible_ids(features_a: Iterable[Feature], features_b: Iterable[Feature]) -> list[int]:
    """Ids > 0 present exactly once in both feature lists, ascending."""
    count_a = Counter(int(f.id) for f in features_a)
    count_b = Counter(int(f.id) for f in features_b)
    return sorted(i for i, c in count_a.items() if i > 0 and c == 1 and count_b.get(i, 0) == 1)


def layout_correspondences(
    canvas_a: ViewCanvas,
    canvas_b: ViewCanvas,
    inlier_ids: Iterable[int],
    orientation: Orientation,
) -> list[CorrespondenceLines]:
    """
    For each correspondence, one segment per canvas, both in that canvas' own
    image coordinates: own feature center -> other feature center mapped in.
    Drawn independently, the two segments meet at the same layout point.
    """
    frame_a, frame_b = layout_frames(canvas_a, canvas_b, orientation)
    inliers = frozenset(int(i) for i in inlier_ids)
    by_id_a = _first_by_id(canvas_a.features)
    by_id_b = _first_by_id(canvas_b.features)

    lines: list[CorrespondenceLines] = []
    for fid in eligible_ids(canvas_a.features, canvas_b.features):
        ca = by_id_a[fid].center
        cb = by_id_b[fid].center
        is_inlier = fid in inliers
        lines.append(
            CorrespondenceLines(
                id=fid,
                inlier=is_inlier,
                color=MATCH_COLOR if is_inlier else CANDIDATE_COLOR,
                line_a=(ca, map_point(cb, frame_b, frame_a)),
                line_b=(map_point(ca, frame_a, frame_b), cb),
            )
        )
    return lines


def feature_colors(features: Iterable[Feature], lines: Iterable[CorrespondenceLines]) -> list[Color]:
    """Marker color of each feature, in input order."""
    by_id = {ln.id: ln.color for ln in lines}
    return [by_id.get(int(f.id), FEATURE_COLOR) for f in features]
