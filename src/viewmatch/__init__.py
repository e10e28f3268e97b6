from viewmatch.calibration import ResolvedCalibration, resolve_calibration
from viewmatch.core.camera import CameraModel, StereoCameraModel
from viewmatch.core.transform import Transform
from viewmatch.driver import RegistrationDriver
from viewmatch.errors import CalibrationLoadError, ConfigurationError, ImageLoadError, UsageError, ViewMatchError
from viewmatch.observation import Observation, build_observations
from viewmatch.params import RegistrationParams, parse_parameters
from viewmatch.pipeline import MatchSession, run_matcher

__version__ = "0.1.0"

__all__ = [
    "CalibrationLoadError",
    "CameraModel",
    "ConfigurationError",
    "ImageLoadError",
    "MatchSession",
    "Observation",
    "RegistrationDriver",
    "RegistrationParams",
    "ResolvedCalibration",
    "StereoCameraModel",
    "Transform",
    "UsageError",
    "ViewMatchError",
    "build_observations",
    "parse_parameters",
    "resolve_calibration",
    "run_matcher",
]
