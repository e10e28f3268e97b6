from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure

from viewmatch.core.image_io import depth_to_meters
from viewmatch.core.transform import Transform
from viewmatch.observation import Observation
from viewmatch.registration.depth import observation_cloud
from viewmatch.registration.result import Feature
from viewmatch.viz.layout import (
    CorrespondenceLines,
    Orientation,
    ViewCanvas,
    choose_orientation,
    feature_colors,
    fit_scale,
    layout_correspondences,
)

logger = logging.getLogger(__name__)

_DPI = 100
_TITLE_PX = 48
_IMAGE_ALPHA = 200 / 255.0
_FROM_CLOUD_COLOR = (1.0, 0.0, 1.0)
_TO_CLOUD_COLOR = (0.0, 1.0, 1.0)
_MAX_CLOUD_POINTS = 20000


@dataclass(frozen=True)
class PaneGeometry:
    orientation: Orientation
    pane_w: float
    pane_h: float
    region_w: float
    region_h: float


def pane_geometry(width_px: int, height_px: int, canvas_px: int = 640) -> PaneGeometry:
    """
    Size of each image pane (figure pixels). The long side of the first image
    spans `canvas_px`; the two panes share the same size.
    """
    orientation = choose_orientation(width_px, height_px)
    if orientation == "vertical":
        pane_w = float(canvas_px)
        pane_h = float(canvas_px) * height_px / width_px
        return PaneGeometry(orientation, pane_w, pane_h, pane_w, 2.0 * pane_h)
    pane_h = float(canvas_px)
    pane_w = float(canvas_px) * width_px / height_px
    return PaneGeometry(orientation, pane_w, pane_h, 2.0 * pane_w, pane_h)


def _image_axes(fig: Figure, geo: PaneGeometry, fig_w: float, fig_h: float, second: bool):
    top = fig_h - _TITLE_PX
    left = 0.0
    bottom = top - geo.pane_h
    if second:
        if geo.orientation == "vertical":
            bottom -= geo.pane_h
        else:
            left += geo.pane_w
    ax = fig.add_axes((left / fig_w, bottom / fig_h, geo.pane_w / fig_w, geo.pane_h / fig_h))
    ax.set_axis_off()
    return ax


def _draw_view(
    ax,
    obs: Observation,
    canvas: ViewCanvas,
    segments: list,
    line_colors: list,
    marker_colors: list,
) -> None:
    h, w = obs.height_px, obs.width_px
    extent = (0.0, float(w), float(h), 0.0)
    if obs.depth_or_right is not None:
        if obs.is_stereo:
            ax.imshow(obs.depth_or_right, cmap="gray", extent=extent, interpolation="nearest")
        else:
            depth = np.ma.masked_less_equal(depth_to_meters(obs.depth_or_right), 0.0)
            ax.imshow(depth, cmap="jet_r", extent=extent, interpolation="nearest")
    rgb = obs.image[:, :, ::-1] if obs.image.ndim == 3 else obs.image
    ax.imshow(
        rgb,
        cmap=None if obs.image.ndim == 3 else "gray",
        extent=extent,
        alpha=_IMAGE_ALPHA if obs.depth_or_right is not None else 1.0,
        interpolation="nearest",
    )
    # Image origin at the pane's top-left corner, zoomed by the canvas scale.
    ax.set_xlim(0.0, canvas.width_px / canvas.scale)
    ax.set_ylim(canvas.height_px / canvas.scale, 0.0)

    if canvas.features:
        xy = np.asarray([f.center for f in canvas.features], dtype=np.float64)
        ax.scatter(xy[:, 0], xy[:, 1], s=14, facecolors="none", edgecolors=marker_colors, linewidths=0.8)
    if segments:
        # Segments leave the pane to reach the other view.
        ax.add_collection(LineCollection(segments, colors=line_colors, linewidths=0.8, clip_on=False))


def _draw_frame(ax, T: Transform, length: float) -> None:
    o = T.t
    for axis, color in zip(np.eye(3), ("r", "g", "b")):
        tip = T.apply(axis[None, :] * length)[0]
        ax.plot([o[0], tip[0]], [o[1], tip[1]], [o[2], tip[2]], color=color, linewidth=1.5)


def _subsample(XYZ: np.ndarray, rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    if XYZ.shape[0] <= _MAX_CLOUD_POINTS:
        return XYZ, rgb
    step = int(np.ceil(XYZ.shape[0] / _MAX_CLOUD_POINTS))
    return XYZ[::step], rgb[::step]


def _draw_clouds(ax, obs_from: Observation, obs_to: Observation, transform: Transform, max_depth: float) -> None:
    cloud_from, _ = _subsample(*observation_cloud(obs_from, max_depth=max_depth))
    cloud_to, _ = _subsample(*observation_cloud(obs_to, max_depth=max_depth))
    if cloud_from.shape[0]:
        ax.scatter(cloud_from[:, 0], cloud_from[:, 1], cloud_from[:, 2], s=0.5, color=_FROM_CLOUD_COLOR, label=f"cloud_{obs_from.id}")
    if cloud_to.shape[0]:
        moved = transform.apply(cloud_to)
        ax.scatter(moved[:, 0], moved[:, 1], moved[:, 2], s=0.5, color=_TO_CLOUD_COLOR, label=f"cloud_{obs_to.id}")
    _draw_frame(ax, Transform.identity(), 0.2)
    _draw_frame(ax, transform, 0.2)
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_zlabel("z")
    ax.grid(True)
    if cloud_from.shape[0] or cloud_to.shape[0]:
        ax.legend(loc="upper right", fontsize="small")


def draw_matches(
    fig: Figure,
    obs_from: Observation,
    obs_to: Observation,
    features_from: tuple[Feature, ...],
    features_to: tuple[Feature, ...],
    inlier_ids: frozenset[int],
    transform: Transform | None,
    title: str,
    canvas_px: int = 640,
    max_depth: float = 0.0,
) -> list[CorrespondenceLines]:
    """
    Draw both views with their features and correspondence lines into `fig`
    (resized to fit), plus the aligned clouds when a transform is given.
    """
    geo = pane_geometry(obs_from.width_px, obs_from.height_px, canvas_px)
    fig_w = geo.region_w * (2.0 if transform is not None else 1.0)
    fig_h = geo.region_h + _TITLE_PX
    fig.set_size_inches(fig_w / _DPI, fig_h / _DPI)
    fig.set_dpi(_DPI)
    fig.suptitle(title, fontsize="small")

    canvas_a = ViewCanvas(
        width_px=geo.pane_w,
        height_px=geo.pane_h,
        scale=fit_scale(obs_from.width_px, obs_from.height_px, geo.pane_w, geo.pane_h),
        features=tuple(features_from),
    )
    canvas_b = ViewCanvas(
        width_px=geo.pane_w,
        height_px=geo.pane_h,
        scale=fit_scale(obs_to.width_px, obs_to.height_px, geo.pane_w, geo.pane_h),
        features=tuple(features_to),
    )
    lines = layout_correspondences(canvas_a, canvas_b, inlier_ids, geo.orientation)
    line_colors = [ln.color for ln in lines]

    ax_a = _image_axes(fig, geo, fig_w, fig_h, second=False)
    ax_b = _image_axes(fig, geo, fig_w, fig_h, second=True)
    _draw_view(ax_a, obs_from, canvas_a, [ln.line_a for ln in lines], line_colors, feature_colors(canvas_a.features, lines))
    _draw_view(ax_b, obs_to, canvas_b, [ln.line_b for ln in lines], line_colors, feature_colors(canvas_b.features, lines))

    if transform is not None:
        rect = (geo.region_w / fig_w, 0.0, geo.region_w / fig_w, geo.region_h / fig_h)
        ax3d = fig.add_axes(rect, projection="3d")
        _draw_clouds(ax3d, obs_from, obs_to, transform, max_depth)
    return lines


def save_figure(fig: Figure, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(p, dpi=_DPI)
    logger.info("Wrote %s", p)
    return p
