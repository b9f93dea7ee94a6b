"""
Error taxonomy shared by all scryforge modules.
"""


class ScryForgeError(Exception):
    """Base class for all scryforge errors."""


class CaptureError(ScryForgeError):
    """Frame acquisition failed."""


class DetectionError(ScryForgeError):
    """Vision service call failed or returned malformed data."""


class AuthenticationError(DetectionError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class RateLimitError(DetectionError):
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message)


class ServiceUnavailableError(DetectionError):
    def __init__(self, message: str = "Service unavailable"):
        super().__init__(message)


class BadRequestError(DetectionError):
    def __init__(self, message: str = "Bad request"):
        super().__init__(message)


class DegenerateGeometryError(ScryForgeError, ValueError):
    """Transformer input violates the four-point precondition."""


class NotCalibratedError(ScryForgeError):
    """Transform requested before a homography was computed."""


class CalibrationFinishedError(ScryForgeError):
    """Calibration already produced its terminal result."""


class ScryingError(ScryForgeError):
    """Scrying requested without the required collaborators."""
