"""
Core module - shared data types, errors, YAML I/O and configuration.
"""
from .types import (
    clamp,
    Point,
    Corner,
    CORNER_ORDER,
    MarkerSet,
    Viewport,
    NormalizedRegion,
    CartesianRegion,
    CalibrationStatus,
    CalibrationResult,
    Category,
    CategoryPosition,
    TrackedActor,
    ActorPosition,
    ScryData,
    AuthStatus,
    TokenStatusResult,
    AuthResponse,
    Frame,
)
from .errors import (
    ScryForgeError,
    CaptureError,
    DetectionError,
    AuthenticationError,
    RateLimitError,
    ServiceUnavailableError,
    BadRequestError,
    DegenerateGeometryError,
    NotCalibratedError,
    CalibrationFinishedError,
    ScryingError,
)
from .io_utils import (
    atomic_write_yaml,
    load_yaml,
)
from .config_loader import Config

__all__ = [
    # Types
    "clamp",
    "Point",
    "Corner",
    "CORNER_ORDER",
    "MarkerSet",
    "Viewport",
    "NormalizedRegion",
    "CartesianRegion",
    "CalibrationStatus",
    "CalibrationResult",
    "Category",
    "CategoryPosition",
    "TrackedActor",
    "ActorPosition",
    "ScryData",
    "AuthStatus",
    "TokenStatusResult",
    "AuthResponse",
    "Frame",
    # Errors
    "ScryForgeError",
    "CaptureError",
    "DetectionError",
    "AuthenticationError",
    "RateLimitError",
    "ServiceUnavailableError",
    "BadRequestError",
    "DegenerateGeometryError",
    "NotCalibratedError",
    "CalibrationFinishedError",
    "ScryingError",
    # I/O
    "atomic_write_yaml",
    "load_yaml",
    # Config
    "Config",
]
