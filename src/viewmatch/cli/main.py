from __future__ import annotations

import argparse
import sys
from pathlib import Path

from viewmatch.errors import UsageError, ViewMatchError
from viewmatch.log import LEVELS
from viewmatch.params import RegistrationParams, parse_assignments
from viewmatch.pipeline import run_matcher


def build_parser() -> argparse.ArgumentParser:
    defaults = RegistrationParams().as_strings()
    param_help = ", ".join(f"{k} (default {v})" for k, v in sorted(defaults.items()))
    parser = argparse.ArgumentParser(
        prog="viewmatch",
        description="Match features between two images and estimate the motion of the second view relative to the first.",
    )
    parser.add_argument("from_image", type=Path, help="First image (reference view).")
    parser.add_argument("to_image", type=Path, help="Second image.")
    parser.add_argument(
        "--calibration",
        type=Path,
        default=None,
        help="Calibration JSON. Required with depth images; without it a fake model is used.",
    )
    parser.add_argument(
        "--from-depth",
        type=Path,
        default=None,
        help="Depth of the first image (16-bit mm or float m), or its rectified right image (8-bit) for stereo.",
    )
    parser.add_argument("--to-depth", type=Path, default=None, help="Depth or right image of the second image.")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help=f"Registration parameter, repeatable. Known: {param_help}.",
    )
    parser.add_argument("--log-level", type=str, default="warning", choices=sorted(LEVELS))
    parser.add_argument("--save", type=Path, default=None, help="Write the figure to this path.")
    parser.add_argument("--no-show", action="store_true", help="Do not open the interactive window.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        run_matcher(
            args.from_image,
            args.to_image,
            calibration=args.calibration,
            from_depth=args.from_depth,
            to_depth=args.to_depth,
            parameters=parse_assignments(args.param),
            log_level=args.log_level,
            show=not args.no_show,
            save_path=args.save,
        )
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ViewMatchError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
