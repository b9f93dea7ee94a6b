"""
Fixed-interval polling of the ScryForge orchestrator.
"""
import asyncio
from typing import Callable, List, Optional, Sequence, Set
import logging

from scryforge.core import ActorPosition, Point, ScryForgeError
from .forge import ScryForge

logger = logging.getLogger(__name__)

CornerProvider = Callable[[], Optional[Sequence[Point]]]
PositionHandler = Callable[[List[ActorPosition]], None]


class ScryingLoop:
    """
    Starts a scry every poll_interval seconds without waiting for the
    previous one, like a UI timer would. Slow detections therefore overlap
    and are shed by the orchestrator's in-flight guard.
    """

    def __init__(
            self,
            forge: ScryForge,
            corners: CornerProvider,
            on_positions: PositionHandler,
            poll_interval: float = 1.0
    ):
        """
        Args:
            forge: Orchestrator to poll
            corners: Returns overlay corners in target space, or None while uncalibrated
            on_positions: Receives every non-empty result
            poll_interval: Seconds between ticks
        """
        self.forge = forge
        self.corners = corners
        self.on_positions = on_positions
        self.poll_interval = poll_interval

        self._stop_event = asyncio.Event()
        self._pending: Set[asyncio.Task] = set()
        self.ticks = 0

    async def tick(self) -> List[ActorPosition]:
        """One polling cycle; errors are logged, never raised."""
        self.ticks += 1
        corners = self.corners()
        if corners is None:
            logger.info("No calibration yet, skipping scry")
            return []
        if not self.forge.can_scry():
            return []

        try:
            positions = await self.forge.scry(corners)
        except ScryForgeError as e:
            logger.error(f"Error while scrying token positions: {e}")
            return []
        except Exception:
            logger.exception("Unexpected error while scrying token positions")
            return []

        if positions:
            self.on_positions(positions)
        return positions

    async def run(self) -> None:
        """Poll until stop() is called."""
        logger.info(f"Scrying every {self.poll_interval:.2f}s")
        self._stop_event.clear()

        while not self._stop_event.is_set():
            task = asyncio.ensure_future(self.tick())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        if self._pending:
            await asyncio.gather(*self._pending)
        logger.info(f"Scrying stopped after {self.ticks} ticks")

    def stop(self) -> None:
        self._stop_event.set()
