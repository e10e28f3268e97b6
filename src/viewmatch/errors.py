from __future__ import annotations

from pathlib import Path


class ViewMatchError(Exception):
    """Base class for errors that abort a matcher run."""


class UsageError(ViewMatchError, ValueError):
    """Missing arguments or a malformed option value."""


class ConfigurationError(ViewMatchError, ValueError):
    """Inputs that cannot be combined, e.g. depth images without a calibration."""


class CalibrationLoadError(ViewMatchError, OSError):
    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        msg = f'Failed to load calibration file "{self.path}"'
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ImageLoadError(ViewMatchError, OSError):
    def __init__(self, *paths: str | Path) -> None:
        self.paths = tuple(Path(p) for p in paths)
        names = " and ".join(str(p) for p in self.paths)
        super().__init__(f"Failed loading images {names}")
