from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, TextIO

from viewmatch.calibration import ResolvedCalibration, normalize_depth, resolve_calibration
from viewmatch.core.image_io import load_color_u8, load_depth
from viewmatch.driver import Estimate, RegistrationDriver, RegistrationFactory
from viewmatch.errors import ConfigurationError, ImageLoadError
from viewmatch.log import configure_logging
from viewmatch.observation import Observation, build_observations
from viewmatch.params import parse_parameters
from viewmatch.registration.visual import FeatureRegistration
from viewmatch.report import format_calibration, format_options, format_report, format_timing, format_title
from viewmatch.viz.layout import CorrespondenceLines

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MatchSession:
    calibration: ResolvedCalibration
    obs_from: Observation
    obs_to: Observation
    estimate: Estimate
    title: str
    report: str
    lines: tuple[CorrespondenceLines, ...] = ()
    figure_path: Path | None = None


def _load_images(from_path: str | Path, to_path: str | Path):
    try:
        image_from = load_color_u8(from_path)
        image_to = load_color_u8(to_path)
    except ImageLoadError:
        raise ImageLoadError(from_path, to_path) from None
    return image_from, image_to


def run_matcher(
    from_path: str | Path,
    to_path: str | Path,
    calibration: str | Path | None = None,
    from_depth: str | Path | None = None,
    to_depth: str | Path | None = None,
    parameters: Mapping[str, str] | None = None,
    log_level: str = "warning",
    show: bool = True,
    save_path: str | Path | None = None,
    factory: RegistrationFactory = FeatureRegistration,
    out: TextIO | None = None,
) -> MatchSession:
    """
    Match one image pair end to end: load inputs, resolve the calibration,
    estimate the motion of "to" relative to "from", print the report, then
    draw the correspondences (shown and/or saved).

    Raises the `viewmatch.errors` exceptions for unusable inputs. A failed
    estimation is not an error: the session carries a null transform.
    """
    out = out if out is not None else sys.stdout
    configure_logging(log_level)
    params = parse_parameters(parameters or {})

    print(format_options(calibration, from_depth, to_depth, params), file=out)

    if calibration is None and (from_depth is not None or to_depth is not None):
        # Checked on the paths: an undecodable depth file still needs a calibration.
        raise ConfigurationError("calibration required when depth is supplied")

    image_from, image_to = _load_images(from_path, to_path)
    depth_from = normalize_depth(load_depth(from_depth)) if from_depth is not None else None
    depth_to = normalize_depth(load_depth(to_depth)) if to_depth is not None else None
    if depth_from is None and depth_to is not None:
        # A "to" depth alone cannot pick the calibration model; both sides go 2D.
        logger.warning("No usable from-depth, ignoring to-depth %s", to_depth)
        depth_to = None
    logger.debug(
        "from %s %s, to %s %s",
        image_from.shape,
        None if depth_from is None else (depth_from.shape, depth_from.dtype),
        image_to.shape,
        None if depth_to is None else (depth_to.shape, depth_to.dtype),
    )

    resolved = resolve_calibration((image_from.shape[1], image_from.shape[0]), calibration, depth_from, depth_to)
    print(format_calibration(resolved), file=out)

    obs_from, obs_to = build_observations(image_from, image_to, depth_from, depth_to, resolved.model)

    driver = RegistrationDriver(params, factory=factory)
    est = driver.estimate(obs_from, obs_to)
    print(format_timing(est.elapsed_s), file=out)

    title = format_title(est.info, est.elapsed_s)
    report = format_report(est.transform, est.info, len(est.result.features_from), len(est.result.features_to))
    print(report, file=out)

    lines: list[CorrespondenceLines] = []
    figure_path: Path | None = None
    if show or save_path is not None:
        lines, figure_path = _render(obs_from, obs_to, est, title, show=show, save_path=save_path)

    return MatchSession(
        calibration=resolved,
        obs_from=obs_from,
        obs_to=obs_to,
        estimate=est,
        title=title,
        report=report,
        lines=tuple(lines),
        figure_path=figure_path,
    )


def _render(
    obs_from: Observation,
    obs_to: Observation,
    est: Estimate,
    title: str,
    *,
    show: bool,
    save_path: str | Path | None,
) -> tuple[list[CorrespondenceLines], Path | None]:
    from viewmatch.viz.render import draw_matches, save_figure

    if show:
        import matplotlib.pyplot as plt

        fig = plt.figure()
    else:
        from matplotlib.figure import Figure

        fig = Figure()

    lines = draw_matches(
        fig,
        obs_from,
        obs_to,
        est.result.features_from,
        est.result.features_to,
        est.info.inlier_ids,
        est.transform,
        title,
        max_depth=est.params.max_depth,
    )
    figure_path = save_figure(fig, save_path) if save_path is not None else None
    if show:
        plt.show()
    return lines, figure_path
