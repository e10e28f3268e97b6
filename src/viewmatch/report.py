from __future__ import annotations

from pathlib import Path

from viewmatch.calibration import ResolvedCalibration
from viewmatch.core.transform import Transform
from viewmatch.driver import Diagnostics
from viewmatch.params import RegistrationParams


def _fmt_num(v: float) -> str:
    return f"{float(v):g}"


def format_title(info: Diagnostics, elapsed_s: float) -> str:
    """One-line summary used as the figure title."""
    matcher = f"matcher={info.matcher_label}"
    if info.nn_ratio is not None:
        matcher += f" nn_ratio={_fmt_num(info.nn_ratio)}"
    return (
        f"Matches ({info.inliers}/{info.matches}) {elapsed_s:.6f} sec "
        f"[feature_type={info.detector} {matcher} "
        f"estimation_type={info.estimation_label} reproj_error={_fmt_num(info.reproj_error)}]"
    )


def format_report(transform: Transform | None, info: Diagnostics, n_features_from: int, n_features_to: int) -> str:
    lines = [
        f"Transform: {transform.pretty() if transform is not None else 'null'}",
        f"Features: from={int(n_features_from)} to={int(n_features_to)}",
        f"Matches: {info.matches}",
        f"Inliers: {info.inliers} (min_inliers={info.min_inliers})",
    ]
    if transform is None and info.rejected_msg:
        lines.append(f"Rejected: {info.rejected_msg}")
    return "\n".join(lines)


def format_timing(elapsed_s: float) -> str:
    return f"Time matching and motion estimation: {elapsed_s:f}s"


def format_options(
    calibration: str | Path | None,
    from_depth: str | Path | None,
    to_depth: str | Path | None,
    params: RegistrationParams | None = None,
) -> str:
    def q(v: str | Path | None) -> str:
        return f'"{v if v is not None else ""}"'

    lines = [
        "Options",
        f"  --calibration = {q(calibration)}",
        f"  --from-depth  = {q(from_depth)}",
        f"  --to-depth    = {q(to_depth)}",
    ]
    if params is not None:
        lines.append("Parameters")
        lines.extend(f"  {k} = {v}" for k, v in sorted(params.as_strings().items()))
    return "\n".join(lines)


def format_calibration(resolved: ResolvedCalibration) -> str:
    if resolved.kind == "fake":
        m = resolved.model
        return (
            f"Using fake calibration model (image size={m.width_px}x{m.height_px}): "
            f"fx={_fmt_num(m.fx)} fy={_fmt_num(m.fy)} cx={_fmt_num(m.cx)} cy={_fmt_num(m.cy)}"
        )
    if resolved.kind == "stereo":
        return "Stereo calibration model detected."
    return "Mono calibration model detected."
