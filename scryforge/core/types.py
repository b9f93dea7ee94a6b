"""
Core data types for the scryforge tabletop tracker.
Defines contracts between modules to ensure stable interfaces.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import numpy as np
from numpy.typing import NDArray


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return min(max(value, low), high)


@dataclass(frozen=True)
class Point:
    """2D point. The coordinate space is implied by the caller."""
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


class Corner(str, Enum):
    """Names of the four corner fiducials."""
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"


# Order shared by marker points and overlay corners (clockwise from top-left)
CORNER_ORDER: Tuple[Corner, ...] = (
    Corner.TOP_LEFT,
    Corner.TOP_RIGHT,
    Corner.BOTTOM_RIGHT,
    Corner.BOTTOM_LEFT,
)


@dataclass
class MarkerSet:
    """
    Corner markers detected in one camera frame (camera pixel space).
    A corner set to None was not detected in that frame.
    """
    top_left: Optional[Point] = None
    top_right: Optional[Point] = None
    bottom_left: Optional[Point] = None
    bottom_right: Optional[Point] = None

    @classmethod
    def from_positions(cls, positions: Dict[str, Any]) -> "MarkerSet":
        """
        Build a marker set from the vision service payload.

        Args:
            positions: Mapping like {"top_left": [x, y], ...}; missing or
                null entries mean "not detected"

        Returns:
            Parsed MarkerSet

        Raises:
            ValueError: If the payload is not a mapping or a position is malformed
        """
        if not isinstance(positions, dict):
            raise ValueError(f"Marker positions must be a mapping, got {type(positions).__name__}")

        found: Dict[str, Point] = {}
        for corner in Corner:
            raw = positions.get(corner.value)
            if raw is None:
                continue
            if not isinstance(raw, (list, tuple)) or len(raw) != 2:
                raise ValueError(f"Malformed position for {corner.value}: {raw!r}")
            try:
                found[corner.value] = Point(float(raw[0]), float(raw[1]))
            except (TypeError, ValueError) as e:
                raise ValueError(f"Malformed position for {corner.value}: {raw!r}") from e

        return cls(**found)

    def get(self, corner: Corner) -> Optional[Point]:
        return getattr(self, Corner(corner).value)

    def has(self, *corners: Corner) -> bool:
        """True if every given corner was detected."""
        return all(self.get(corner) is not None for corner in corners)

    @property
    def all_visible(self) -> bool:
        return self.has(*Corner)

    @property
    def visible_count(self) -> int:
        return sum(1 for corner in Corner if self.get(corner) is not None)

    def to_points(self) -> List[Point]:
        """Detected points in CORNER_ORDER, skipping absent corners."""
        return [p for p in (self.get(c) for c in CORNER_ORDER) if p is not None]


@dataclass(frozen=True)
class Viewport:
    """Screen rectangle in pixels that a normalized region is laid over."""
    x: float
    y: float
    width: float
    height: float


@dataclass
class NormalizedRegion:
    """
    Region of the reference frame as fractions in [0, 1] (origin + size).
    """
    x: float
    y: float
    width: float
    height: float
    markers: Optional[List[Point]] = None

    def corner_points(self, viewport: Viewport) -> List[Point]:
        """
        Pixel positions of the region corners inside a viewport.

        Args:
            viewport: Screen rectangle the region is relative to

        Returns:
            [top-left, top-right, bottom-right, bottom-left], matching
            the order of MarkerSet.to_points()
        """
        left = viewport.x + self.x * viewport.width
        right = viewport.x + (self.x + self.width) * viewport.width
        top = viewport.y + self.y * viewport.height
        bottom = viewport.y + (self.y + self.height) * viewport.height
        return [
            Point(left, top),
            Point(right, top),
            Point(right, bottom),
            Point(left, bottom),
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": float(self.x),
            "y": float(self.y),
            "width": float(self.width),
            "height": float(self.height),
            "markers": None if self.markers is None else [[p.x, p.y] for p in self.markers],
        }


@dataclass
class CartesianRegion:
    """
    Candidate region in calibration units: 0-100 percent of the camera frame,
    described by its center and full width/height.
    """
    center: Point
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.center.x - self.width / 2

    @property
    def right(self) -> float:
        return self.center.x + self.width / 2

    @property
    def top(self) -> float:
        return self.center.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.center.y + self.height / 2

    def to_normalized(self, markers: Optional[List[Point]] = None) -> NormalizedRegion:
        """Convert to origin + size fractions, each clamped to [0, 1]."""
        return NormalizedRegion(
            x=clamp(self.left / 100, 0.0, 1.0),
            y=clamp(self.top / 100, 0.0, 1.0),
            width=clamp(self.width / 100, 0.0, 1.0),
            height=clamp(self.height / 100, 0.0, 1.0),
            markers=markers,
        )


class CalibrationStatus(Enum):
    CALIBRATING = "Calibrating"
    CALIBRATED = "Calibrated"
    FAILED = "Failed"


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of one calibration step."""
    status: CalibrationStatus
    region: NormalizedRegion

    @property
    def is_terminal(self) -> bool:
        return self.status != CalibrationStatus.CALIBRATING


class Category(str, Enum):
    """Token categories recognized by the vision service."""
    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    VIOLET = "violet"
    YELLOW = "yellow"
    ORANGE = "orange"
    TURQUOISE = "turquoise"
    PINK = "pink"
    WHITE = "white"
    BLACK = "black"
    LIME_GREEN_VIOLET = "lime_green_violet"
    PINK_GREEN = "pink_green"
    YELLOW_NIGHT_BLUE = "yellow_night_blue"
    LIGHT_BLUE_ORANGE = "light_blue_orange"
    BROWN_TURQUOISE = "brown_turquoise"
    GIANT_RED_OCTOPUS = "giant_red_octopus"
    TREANT = "treant"
    ANCIENT_GOLD_DRAGON = "ancient_gold_dragon"
    ANCIENT_SILVER_DRAGON = "ancient_silver_dragon"
    ANCIENT_BLUE_DRAGON = "ancient_blue_dragon"
    ANCIENT_GREEN_DRAGON = "ancient_green_dragon"
    BLUE_DRACO_LICH = "blue_dragolich"
    ANCIENT_RED_DRAGON = "ancient_red_dragon"
    ANCIENT_WHITE_DRAGON = "ancient_white_dragon"
    ANCIENT_BLACK_DRAGON = "ancient_black_dragon"
    ANCIENT_GREY_DRAGON = "ancient_grey_dragon"
    ANCIENT_PURPLE_DRAGON = "ancient_purple_dragon"


@dataclass(frozen=True)
class CategoryPosition:
    """Token detection in camera pixel space."""
    category: Category
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryPosition":
        """
        Raises:
            ValueError: Unknown category or missing/non-numeric fields
        """
        try:
            return cls(
                category=Category(data["category"]),
                x=float(data["x"]),
                y=float(data["y"]),
                width=float(data.get("width", 0.0)),
                height=float(data.get("height", 0.0)),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed category position: {data!r}") from e


@dataclass(frozen=True)
class TrackedActor:
    actor_id: str
    category: Category


@dataclass(frozen=True)
class ActorPosition:
    """Actor location in target (scene) space."""
    actor_id: str
    x: float
    y: float


@dataclass
class ScryData:
    """Everything one capture yields: token detections and marker points."""
    category_positions: List[CategoryPosition] = field(default_factory=list)
    marker_points: List[Point] = field(default_factory=list)


@dataclass
class AuthStatus:
    is_authenticated: bool
    last_checked: float
    error: Optional[str] = None
    token: Optional[str] = None


@dataclass(frozen=True)
class TokenStatusResult:
    fulfilled: bool
    token: Optional[str] = None
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class AuthResponse:
    status: str
    message: str
    token: str
    refresh_token: str


@dataclass
class Frame:
    """
    Represents a single captured frame with metadata.
    """
    image: NDArray[np.uint8]  # Raw image data (H, W, C) or (H, W)
    timestamp: float  # Unix timestamp
    frame_id: int  # Sequential frame counter
    fps: Optional[float] = None  # Frames per second at capture time

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.image.shape

    @property
    def is_grayscale(self) -> bool:
        return len(self.image.shape) == 2
