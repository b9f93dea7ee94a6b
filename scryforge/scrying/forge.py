"""
ScryForge orchestrator: maps detected tokens into scene coordinates.
"""
import threading
from typing import Dict, List, Optional, Sequence
import logging

from scryforge.core import (
    ActorPosition,
    Category,
    NormalizedRegion,
    Point,
    ScryingError,
    TrackedActor,
)
from scryforge.capture.frame_source import FrameSource
from scryforge.geometry import WorldTransformerFactory
from .orb import SimpleScryingOrb

logger = logging.getLogger(__name__)


class ScryForge:
    """
    Owns the camera, the completed calibration and the actor assignments.

    Each scry() builds a fresh transformer from the detected corner markers
    to the on-screen overlay corners and maps every tracked token through it.
    """

    def __init__(
            self,
            scrying_orb: SimpleScryingOrb,
            transformer_factory: Optional[WorldTransformerFactory] = None
    ):
        self.scrying_orb = scrying_orb
        self.transformer_factory = transformer_factory or WorldTransformerFactory()

        self._tracked_actors: Dict[Category, TrackedActor] = {}
        self._camera: Optional[FrameSource] = None
        self._calibration: Optional[NormalizedRegion] = None

        # Held for the duration of one scry; contenders get [] instead of waiting
        self._in_flight = threading.Lock()

    async def scry(self, corners: Sequence[Point]) -> List[ActorPosition]:
        """
        Capture, detect and map tokens.

        Args:
            corners: Overlay corner positions in target space, in the
                order top-left, top-right, bottom-right, bottom-left

        Returns:
            Positions of tracked actors; [] when another scry is in flight
            or fewer than four markers were seen

        Raises:
            ScryingError: No camera attached
            CaptureError, DetectionError: Collaborator failures
        """
        if self._camera is None:
            raise ScryingError("Camera not set")

        if not self._in_flight.acquire(blocking=False):
            logger.debug("Scry already in progress, skipping")
            return []

        try:
            scry_data = await self.scrying_orb.scry(self._camera)

            if len(scry_data.marker_points) < 4:
                logger.debug(f"Only {len(scry_data.marker_points)} markers visible, skipping")
                return []

            transformer = self.transformer_factory.create_transformer(scry_data.marker_points, list(corners))

            positions = []
            for detection in scry_data.category_positions:
                actor = self._tracked_actors.get(detection.category)
                if actor is None:
                    continue
                world = transformer.transform(detection.x, detection.y)
                positions.append(ActorPosition(actor_id=actor.actor_id, x=world.x, y=world.y))
            return positions
        finally:
            self._in_flight.release()

    @property
    def is_scrying(self) -> bool:
        return self._in_flight.locked()

    def can_scry(self) -> bool:
        return self._camera is not None

    def update_actor_category(self, actor_id: str, category: Category) -> None:
        """Assign a category to an actor (one actor per category)."""
        self._tracked_actors[Category(category)] = TrackedActor(actor_id=actor_id, category=Category(category))

    def remove_actor_category(self, actor_id: str) -> None:
        for category in [c for c, a in self._tracked_actors.items() if a.actor_id == actor_id]:
            del self._tracked_actors[category]

    def get_tracked_actor(self, actor_id: str) -> Optional[TrackedActor]:
        return next((a for a in self._tracked_actors.values() if a.actor_id == actor_id), None)

    def get_tracked_actors(self) -> List[TrackedActor]:
        return list(self._tracked_actors.values())

    def get_available_categories(self) -> List[Category]:
        return list(self._tracked_actors.keys())

    def set_camera(self, camera: Optional[FrameSource]) -> None:
        self._camera = camera

    def get_camera(self) -> Optional[FrameSource]:
        return self._camera

    def set_calibration(self, calibration: Optional[NormalizedRegion]) -> None:
        self._calibration = calibration

    def get_calibration(self) -> Optional[NormalizedRegion]:
        return self._calibration
