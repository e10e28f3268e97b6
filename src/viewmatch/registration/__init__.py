"""
Feature-based registration between two observations.

`FeatureRegistration` is the default implementation of the `Registration`
interface consumed by `viewmatch.driver`.
"""

from viewmatch.registration.result import Feature, Registration, RegistrationResult
from viewmatch.registration.visual import FeatureRegistration

__all__ = ["Feature", "FeatureRegistration", "Registration", "RegistrationResult"]
