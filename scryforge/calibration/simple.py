"""
Binary-search viewport calibration.

Bisects between the largest region known to hide a marker and the
largest region known to show all four, working directly in normalized
coordinates. Coarser than the staged controller but needs fewer steps.
"""
import asyncio
from typing import Optional
import logging

from scryforge.core import (
    CalibrationResult,
    CalibrationStatus,
    MarkerSet,
    NormalizedRegion,
    clamp,
)
from scryforge.capture.frame_source import FrameSource
from scryforge.server.base import ScryForgeServer
from .base import CalibrationStepper, ViewportCalibrator

logger = logging.getLogger(__name__)


def _average(a: float, b: float) -> float:
    return (a + b) / 2


def _midpoint(a: NormalizedRegion, b: NormalizedRegion) -> NormalizedRegion:
    return NormalizedRegion(
        x=clamp(_average(a.x, b.x), 0.0, 1.0),
        y=clamp(_average(a.y, b.y), 0.0, 1.0),
        width=clamp(_average(a.width, b.width), 0.0, 1.0),
        height=clamp(_average(a.height, b.height), 0.0, 1.0),
    )


class SimpleCalibrationController(CalibrationStepper):
    """Bisection calibrator."""

    TOLERANCE = 0.10
    PADDING = 0.05
    MAX_ATTEMPTS = 10

    def __init__(
            self,
            server: ScryForgeServer,
            camera: FrameSource,
            attempt_delay: float = 0.5
    ):
        """
        Args:
            server: Marker detection collaborator
            camera: Frame source
            attempt_delay: Seconds between detection attempts within one step
        """
        super().__init__()
        self.server = server
        self.camera = camera
        self.attempt_delay = attempt_delay

        self.current: Optional[NormalizedRegion] = None
        self.success_found = False

        # Full screen is the largest region; an empty one at the center the smallest
        self.known_max = NormalizedRegion(x=0.0, y=0.0, width=1.0, height=1.0)
        self.known_min = NormalizedRegion(x=0.5, y=0.5, width=0.0, height=0.0)

    async def _step(self) -> CalibrationResult:
        if self.current is None:
            self.current = NormalizedRegion(x=0.05, y=0.05, width=0.8, height=0.8)
            return CalibrationResult(CalibrationStatus.CALIBRATING, self.current)

        try:
            markers = await self._detect_all_markers()
        except Exception:
            logger.exception("Calibration error")
            return CalibrationResult(CalibrationStatus.FAILED, self.current)

        if markers is not None:
            self.current.markers = markers.to_points()
            return self._bisect(seen=True)
        return self._bisect(seen=False)

    async def _detect_all_markers(self) -> Optional[MarkerSet]:
        """Up to MAX_ATTEMPTS captures; returns the first complete marker set."""
        for attempt in range(self.MAX_ATTEMPTS):
            image = await self.camera.capture_frame()
            markers = await self.server.detect_markers(image)
            if markers.all_visible:
                return markers
            logger.debug(f"Attempt {attempt + 1}/{self.MAX_ATTEMPTS}: {markers.visible_count}/4 markers")
            if attempt < self.MAX_ATTEMPTS - 1:
                await asyncio.sleep(self.attempt_delay)
        return None

    def _bisect(self, seen: bool) -> CalibrationResult:
        current = self.current

        if seen:
            self.success_found = True
            if (self.known_max.width - current.width > self.TOLERANCE
                    and self.known_max.height - current.height > self.TOLERANCE):
                logger.info(f"All markers seen, growing from {current}")
                self.known_min = current
                self.current = _midpoint(current, self.known_max)
                return CalibrationResult(CalibrationStatus.CALIBRATING, self.current)

            logger.info("Close enough to the largest failing region")
            padded = NormalizedRegion(
                x=clamp(current.x + self.PADDING, 0.0, 1.0),
                y=clamp(current.y + self.PADDING, 0.0, 1.0),
                width=clamp(current.width - 4 * self.PADDING, 0.0, 1.0),
                height=clamp(current.height - 4 * self.PADDING, 0.0, 1.0),
                markers=current.markers,
            )
            return CalibrationResult(CalibrationStatus.CALIBRATED, padded)

        self.known_max = current
        if (current.width - self.known_min.width > self.TOLERANCE
                and current.height - self.known_min.height > self.TOLERANCE):
            logger.info(f"Markers missing, shrinking from {current}")
            self.current = _midpoint(current, self.known_min)
            return CalibrationResult(CalibrationStatus.CALIBRATING, self.current)

        if self.success_found:
            return CalibrationResult(CalibrationStatus.CALIBRATED, self.known_min)
        return CalibrationResult(CalibrationStatus.FAILED, self.known_min)


class SimpleViewportCalibrator(ViewportCalibrator):
    """Bisection strategy."""

    def __init__(self, server: ScryForgeServer, attempt_delay: float = 0.5):
        self.server = server
        self.attempt_delay = attempt_delay

    def create_stepper(self, camera: FrameSource) -> SimpleCalibrationController:
        return SimpleCalibrationController(self.server, camera, self.attempt_delay)
